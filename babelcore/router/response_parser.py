# router/response_parser.py
import json
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

# JSON dentro de un bloque ```json ... ``` o ``` ... ```
_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)

# Primer objeto JSON que aparezca en texto libre
_EMBEDDED_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)

_FALLBACK_CONFIDENCE = 0.3


def parse_model_response(raw_text: str, model_name: str) -> dict:
    """
    Convierte la respuesta cruda del modelo en {translation, confidence, notes}.

    Degradación progresiva: JSON directo → bloque markdown → JSON embebido →
    texto entero como traducción con confidence baja.
    Nunca lanza excepción: una traducción vacía la detecta el Executor.
    """
    text = raw_text.strip()
    if not text:
        return {"translation": "", "confidence": 0.0, "notes": f"{model_name} devolvió una respuesta vacía."}

    data = _load_object(text)
    if data is None:
        fenced = _FENCED_JSON_RE.search(text)
        if fenced:
            data = _load_object(fenced.group(1))
            if data is not None:
                logger.warning("%s envolvió la respuesta en markdown", model_name)
    if data is None:
        embedded = _EMBEDDED_JSON_RE.search(text)
        if embedded:
            data = _load_object(embedded.group(0))
            if data is not None:
                logger.warning("%s devolvió JSON con texto extra alrededor", model_name)

    if data is not None:
        return _normalize(data)

    logger.error(
        "%s devolvió respuesta no estructurada; se usa el texto como traducción (confidence %.1f)",
        model_name, _FALLBACK_CONFIDENCE,
    )
    return {
        "translation": text,
        "confidence":  _FALLBACK_CONFIDENCE,
        "notes":       f"Respuesta no estructurada de {model_name}.",
    }


def _load_object(text: str) -> Optional[dict]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _normalize(data: dict) -> dict:
    """Garantiza las tres claves con tipos correctos. confidence se acota a [0, 1]."""
    translation = str(data.get("translation") or data.get("text") or "").strip()

    try:
        confidence = max(0.0, min(1.0, float(data.get("confidence", 0.5))))
    except (TypeError, ValueError):
        confidence = 0.5

    notes = str(data.get("notes") or "").strip()

    return {"translation": translation, "confidence": confidence, "notes": notes}
