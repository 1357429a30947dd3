# router/claude.py
import logging
from typing import Optional

import anthropic

from babelcore.router.base import BaseModel
from babelcore.router.errors import CapabilityError, RateLimitedError, TranslationTimeout
from babelcore.router.models import ModelConfig, ModelResponse
from babelcore.router.response_parser import parse_model_response

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "claude-haiku-4-5-20251001"


class ClaudeAdapter(BaseModel):

    def __init__(self, config: ModelConfig):
        self._config = config
        self._client = anthropic.Anthropic(
            api_key     = config.api_key,
            timeout     = config.timeout_seconds,
            max_retries = 0,   # los reintentos los decide el Executor
        )

    @property
    def name(self) -> str:
        return self._config.name   # "claude"

    def translate(self, chunk: str, system_prompt: str) -> ModelResponse:
        try:
            response = self._client.messages.create(
                model       = self._config.model_id or _DEFAULT_MODEL,
                max_tokens  = 4096,
                temperature = self._config.temperature,
                system      = system_prompt,
                messages    = [{"role": "user", "content": chunk}],
            )
        except anthropic.RateLimitError as e:
            retry_after = _retry_after(e.response)
            logger.warning("Claude rate limited (retry-after=%s): %s", retry_after, e)
            self._cool_down(retry_after)
            raise RateLimitedError(str(e), retry_after=retry_after) from e

        # APITimeoutError hereda de APIConnectionError: va primero
        except anthropic.APITimeoutError as e:
            logger.warning("Claude timeout: %s", e)
            raise TranslationTimeout(str(e)) from e

        except anthropic.APIConnectionError as e:
            logger.warning("Claude error de conexión: %s", e)
            raise CapabilityError(str(e), transient=True) from e

        except anthropic.BadRequestError as e:
            # El chunk en sí tiene problemas (ej: contenido bloqueado)
            logger.error("Claude BadRequest en chunk: %s", e)
            raise CapabilityError(str(e), transient=False) from e

        except anthropic.APIStatusError as e:
            transient = e.status_code >= 500
            logger.warning("Claude HTTP %d: %s", e.status_code, e)
            raise CapabilityError(str(e), transient=transient) from e

        raw_text      = response.content[0].text
        tokens_input  = response.usage.input_tokens
        tokens_output = response.usage.output_tokens

        parsed = parse_model_response(raw_text, self.name)

        return ModelResponse(
            translation   = parsed["translation"],
            confidence    = parsed["confidence"],
            notes         = parsed["notes"],
            model_used    = self.name,
            tokens_input  = tokens_input,
            tokens_output = tokens_output,
        )


def _retry_after(response) -> Optional[float]:
    """Lee la cabecera retry-after si viene en segundos."""
    try:
        value = response.headers.get("retry-after")
        return float(value) if value is not None else None
    except (AttributeError, TypeError, ValueError):
        return None
