# router/gemini.py
import logging

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from babelcore.router.base import BaseModel
from babelcore.router.errors import CapabilityError, RateLimitedError, TranslationTimeout
from babelcore.router.models import ModelConfig, ModelResponse
from babelcore.router.response_parser import parse_model_response

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gemini-2.0-flash"

_TRANSIENT_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.InternalServerError,
    google_exceptions.Aborted,
)


class GeminiAdapter(BaseModel):

    def __init__(self, config: ModelConfig):
        self._config = config
        genai.configure(api_key=config.api_key)
        self._model = genai.GenerativeModel(
            model_name        = config.model_id or _DEFAULT_MODEL,
            generation_config = genai.GenerationConfig(
                temperature        = config.temperature,
                response_mime_type = "application/json",   # Gemini soporta forzar JSON nativo
            ),
        )

    @property
    def name(self) -> str:
        return self._config.name   # "gemini"

    def translate(self, chunk: str, system_prompt: str) -> ModelResponse:
        full_prompt = f"{system_prompt}\n\n{chunk}"

        try:
            response = self._model.generate_content(
                full_prompt,
                request_options={"timeout": self._config.timeout_seconds},
            )
        except google_exceptions.ResourceExhausted as e:   # 429
            logger.warning("Gemini rate limited: %s", e)
            self._cool_down()
            raise RateLimitedError(str(e)) from e

        except google_exceptions.DeadlineExceeded as e:
            logger.warning("Gemini timeout: %s", e)
            raise TranslationTimeout(str(e)) from e

        except _TRANSIENT_ERRORS as e:
            logger.warning("Gemini error transitorio: %s", e)
            raise CapabilityError(str(e), transient=True) from e

        except google_exceptions.InvalidArgument as e:
            logger.error("Gemini InvalidArgument en chunk: %s", e)
            raise CapabilityError(str(e), transient=False) from e

        raw_text = response.text
        # Gemini devuelve tokens en usage_metadata
        tokens_input  = response.usage_metadata.prompt_token_count
        tokens_output = response.usage_metadata.candidates_token_count

        parsed = parse_model_response(raw_text, self.name)

        return ModelResponse(
            translation   = parsed["translation"],
            confidence    = parsed["confidence"],
            notes         = parsed["notes"],
            model_used    = self.name,
            tokens_input  = tokens_input,
            tokens_output = tokens_output,
        )
