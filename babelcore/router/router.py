# router/router.py
import logging

from babelcore.router.base import BaseModel
from babelcore.router.errors import AllModelsExhaustedError, CapabilityError
from babelcore.router.models import ModelResponse
from babelcore.router.prompt_builder import build_translate_prompt

logger = logging.getLogger(__name__)


class Router:
    """
    La capacidad de traducción tal como la ve el core:
    translate(text, source_lang, target_lang) → ModelResponse.

    Responsabilidades:
    - Construir el prompt y elegir el modelo disponible de mayor prioridad
    - Hacer failover si el modelo falla por un error transitorio
    - Propagar errores de contenido (no son de disponibilidad)

    No reintenta con espera: eso es política del Executor.
    """

    def __init__(self, models: list[BaseModel]):
        # La lista ya viene ordenada por prioridad desde el config
        if not models:
            raise ValueError("El Router necesita al menos un modelo")
        self._models = models

    def translate(
        self,
        text:        str,
        source_lang: str | None,
        target_lang: str,
        file_type:   str = "txt",
    ) -> ModelResponse:
        """
        Lanza el último error transitorio si todos los modelos disponibles
        fallaron, o AllModelsExhaustedError si ninguno estaba disponible.
        """
        system_prompt = build_translate_prompt(source_lang, target_lang, file_type)
        last_error: CapabilityError | None = None

        for model in self._models:
            if not model.is_available():
                logger.info("Modelo %s en cooldown, saltando", model.name)
                continue

            try:
                logger.debug("Intentando traducción con %s", model.name)
                response = model.translate(text, system_prompt)
                logger.debug(
                    "Chunk traducido con %s | tokens: %d+%d | confidence: %.2f",
                    model.name,
                    response.tokens_input,
                    response.tokens_output,
                    response.confidence,
                )
                return response

            except CapabilityError as e:
                if not e.transient:
                    logger.error(
                        "Error de contenido en %s, no se hace failover: %s",
                        model.name, e,
                    )
                    raise
                logger.warning(
                    "Modelo %s falló con error transitorio: %s. Pasando al siguiente.",
                    model.name, e,
                )
                last_error = e

        if last_error is not None:
            raise last_error
        raise AllModelsExhaustedError("Ningún modelo disponible: todos en cooldown")

    def available_models(self) -> list[str]:
        """Útil para logging y para la CLI."""
        return [m.name for m in self._models if m.is_available()]
