# router/base.py
import time
from abc import ABC, abstractmethod
from typing import Optional

from babelcore.router.models import ModelConfig, ModelResponse


class BaseModel(ABC):
    """
    Contrato que deben cumplir todos los adaptadores.
    El Router y el Executor solo hablan con esta interfaz.
    Nunca importan claude.py ni gemini.py directamente.
    """

    _config: ModelConfig

    @abstractmethod
    def translate(self, chunk: str, system_prompt: str) -> ModelResponse:
        """
        Envía el chunk al modelo y devuelve una ModelResponse.
        Nunca lanza excepción por JSON inválido: el parseo degrada a
        confidence baja.
        SÍ puede lanzar la taxonomía de router.errors:
        TranslationTimeout, RateLimitedError, CapabilityError.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Identificador del modelo. Es lo que se guarda en chunk.model_used."""
        ...

    def is_available(self) -> bool:
        """¿Está fuera de cooldown? No hace llamadas de red."""
        until = self._config._unavailable_until
        if until is not None:
            if time.time() < until:
                return False
            self._config._unavailable_until = None  # cooldown expirado
        return True

    def _cool_down(self, retry_after: Optional[float] = None) -> None:
        seconds = retry_after if retry_after is not None else self._config.cooldown_seconds
        self._config._unavailable_until = time.time() + seconds
