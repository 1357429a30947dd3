from abc import ABC, abstractmethod


class TokenEstimator(ABC):
    @abstractmethod
    def estimate(self, text: str) -> int: ...


class WhitespaceTokenEstimator(TokenEstimator):
    """
    Cuenta tokens delimitados por whitespace.
    Es la unidad del presupuesto de la política: determinista y sin dependencias.
    """
    def estimate(self, text: str) -> int:
        return len(text.split())
