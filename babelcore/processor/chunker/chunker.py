from dataclasses import replace

from .detector import BoundaryDetector
from .normalizer import ChunkNormalizer
from .models import ChunkPolicy
from .token_estimator import TokenEstimator, WhitespaceTokenEstimator
from ..models import ChunkSpec


class ChunkingError(Exception):
    """El contenido no se puede dividir: bytes no decodificables o texto corrupto."""
    pass


class Chunker:

    def __init__(
        self,
        policy: ChunkPolicy | None = None,
        estimator: TokenEstimator | None = None,
    ):
        self._policy = policy or ChunkPolicy()
        self._estimator = estimator or WhitespaceTokenEstimator()

    @property
    def policy(self) -> ChunkPolicy:
        return self._policy

    def policy_for(self, file_type: str) -> ChunkPolicy:
        """Misma política base, ajustada al tipo de archivo del proyecto."""
        return replace(self._policy, file_type=(file_type or "txt").lower())

    def split(self, content: str | bytes, policy: ChunkPolicy | None = None) -> list[ChunkSpec]:
        """
        Divide el contenido en unidades ordenadas. Determinista: mismo
        contenido + misma política → mismas fronteras.
        Contenido vacío → lista vacía (no es un error).
        """
        policy = policy or self._policy
        text = _as_text(content)

        if not text.strip():
            return []

        detector = BoundaryDetector(policy, self._estimator)
        normalizer = ChunkNormalizer(policy, self._estimator, detector)
        return normalizer.normalize(detector.detect(text))

    @staticmethod
    def reassemble(specs: list[ChunkSpec]) -> str:
        """Concatena en orden de secuencia. Reproduce el original sin su whitespace inicial."""
        ordered = sorted(specs, key=lambda s: s.index)
        return "".join(spec.text + spec.separator for spec in ordered)


def _as_text(content: str | bytes) -> str:
    if isinstance(content, (bytes, bytearray)):
        try:
            content = bytes(content).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ChunkingError(f"Contenido no decodificable como UTF-8: {e}") from e

    if not isinstance(content, str):
        raise ChunkingError(
            f"El Chunker debe recibir texto, no {type(content).__name__}. "
            f"La capa de subida falló en la decodificación."
        )

    if "\x00" in content:
        raise ChunkingError("El contenido tiene caracteres NUL: probablemente es un binario")

    return content
