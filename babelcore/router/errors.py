# router/errors.py
from typing import Optional


class CapabilityError(Exception):
    """
    Fallo de la capacidad de traducción para un chunk.
    transient=True → reintentable (red, 5xx); False → error de contenido,
    reintentar daría el mismo resultado en cualquier modelo.
    """

    def __init__(self, message: str, transient: bool = True):
        super().__init__(message)
        self.transient = transient


class TranslationTimeout(CapabilityError):
    """La llamada superó el timeout por llamada."""

    def __init__(self, message: str = "timeout"):
        super().__init__(message, transient=True)


class RateLimitedError(CapabilityError):
    """El proveedor pidió frenar (429). retry_after en segundos si lo informa."""

    def __init__(self, message: str = "rate limited", retry_after: Optional[float] = None):
        super().__init__(message, transient=True)
        self.retry_after = retry_after


class AllModelsExhaustedError(CapabilityError):
    """Se lanza cuando ningún modelo está disponible (todos en cooldown)."""

    def __init__(self, message: str):
        super().__init__(message, transient=True)


def error_kind(error: BaseException) -> str:
    """Nombre corto y estable para persistir en last_error."""
    if isinstance(error, TranslationTimeout):
        return "Timeout"
    if isinstance(error, RateLimitedError):
        return "RateLimited"
    if isinstance(error, CapabilityError):
        return "CapabilityError"
    return type(error).__name__
