import pytest
from unittest.mock import MagicMock, patch

import anthropic
from google.api_core import exceptions as google_exceptions

from babelcore.router.claude import ClaudeAdapter
from babelcore.router.gemini import GeminiAdapter
from babelcore.router.errors import CapabilityError, RateLimitedError, TranslationTimeout
from babelcore.router.models import ModelConfig


_JSON_OK = '{"translation": "Hola", "confidence": 0.9, "notes": ""}'


def _status_response(status_code: int, headers: dict | None = None):
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    return response


# ------------------------------------------------------------------
# Claude
# ------------------------------------------------------------------

@pytest.fixture
def claude():
    with patch("babelcore.router.claude.anthropic.Anthropic") as client_cls:
        adapter = ClaudeAdapter(ModelConfig(name="claude", priority=1, api_key="k"))
        adapter.client = client_cls.return_value
        yield adapter


class TestClaudeAdapter:

    def test_respuesta_ok(self, claude):
        message = MagicMock()
        message.content = [MagicMock(text=_JSON_OK)]
        message.usage.input_tokens = 10
        message.usage.output_tokens = 4
        claude.client.messages.create.return_value = message

        response = claude.translate("Hello", "system")

        assert response.translation == "Hola"
        assert response.model_used == "claude"
        assert response.tokens_input == 10
        kwargs = claude.client.messages.create.call_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["messages"] == [{"role": "user", "content": "Hello"}]

    def test_rate_limit_mapea_retry_after_y_enfria(self, claude):
        claude.client.messages.create.side_effect = anthropic.RateLimitError(
            message  = "slow down",
            response = _status_response(429, {"retry-after": "7"}),
            body     = None,
        )

        with pytest.raises(RateLimitedError) as exc:
            claude.translate("Hello", "system")

        assert exc.value.retry_after == 7.0
        assert not claude.is_available()

    def test_timeout_mapea_translation_timeout(self, claude):
        claude.client.messages.create.side_effect = anthropic.APITimeoutError(request=MagicMock())

        with pytest.raises(TranslationTimeout):
            claude.translate("Hello", "system")

    def test_bad_request_no_es_transitorio(self, claude):
        claude.client.messages.create.side_effect = anthropic.BadRequestError(
            message="content policy", response=_status_response(400), body=None,
        )

        with pytest.raises(CapabilityError) as exc:
            claude.translate("Hello", "system")

        assert exc.value.transient is False

    def test_error_5xx_es_transitorio(self, claude):
        claude.client.messages.create.side_effect = anthropic.InternalServerError(
            message="boom", response=_status_response(500), body=None,
        )

        with pytest.raises(CapabilityError) as exc:
            claude.translate("Hello", "system")

        assert exc.value.transient is True


# ------------------------------------------------------------------
# Gemini
# ------------------------------------------------------------------

@pytest.fixture
def gemini():
    with patch("babelcore.router.gemini.genai") as genai:
        adapter = GeminiAdapter(ModelConfig(name="gemini", priority=2, api_key="k"))
        adapter.model = genai.GenerativeModel.return_value
        yield adapter


class TestGeminiAdapter:

    def test_respuesta_ok(self, gemini):
        result = MagicMock()
        result.text = _JSON_OK
        result.usage_metadata.prompt_token_count = 12
        result.usage_metadata.candidates_token_count = 3
        gemini.model.generate_content.return_value = result

        response = gemini.translate("Hello", "system")

        assert response.translation == "Hola"
        assert response.tokens_output == 3
        prompt = gemini.model.generate_content.call_args.args[0]
        assert prompt == "system\n\nHello"

    def test_resource_exhausted_es_rate_limit(self, gemini):
        gemini.model.generate_content.side_effect = google_exceptions.ResourceExhausted("quota")

        with pytest.raises(RateLimitedError):
            gemini.translate("Hello", "system")

        assert not gemini.is_available()

    def test_deadline_exceeded_es_timeout(self, gemini):
        gemini.model.generate_content.side_effect = google_exceptions.DeadlineExceeded("lento")

        with pytest.raises(TranslationTimeout):
            gemini.translate("Hello", "system")

    def test_service_unavailable_es_transitorio(self, gemini):
        gemini.model.generate_content.side_effect = google_exceptions.ServiceUnavailable("caído")

        with pytest.raises(CapabilityError) as exc:
            gemini.translate("Hello", "system")

        assert exc.value.transient is True

    def test_invalid_argument_no_es_transitorio(self, gemini):
        gemini.model.generate_content.side_effect = google_exceptions.InvalidArgument("malo")

        with pytest.raises(CapabilityError) as exc:
            gemini.translate("Hello", "system")

        assert exc.value.transient is False
