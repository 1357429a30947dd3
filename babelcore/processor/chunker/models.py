# chunker/models.py
from dataclasses import dataclass, field
from enum import Enum


class BoundaryType(Enum):
    """Qué tipo de límite cierra este segmento."""
    PARAGRAPH = "paragraph"
    SENTENCE  = "sentence"
    HARD      = "hard"        # corte duro por presupuesto, sin frontera semántica


@dataclass
class TextSegment:
    """
    Resultado de la pasada 1.
    Fragmento semánticamente coherente, SIN restricciones de tamaño todavía.

    separator guarda el whitespace exacto que sigue al fragmento en el
    original: concatenar text + separator de todos los segmentos reproduce
    el documento sin perder ni reordenar caracteres.
    """
    text:            str
    separator:       str
    boundary_type:   BoundaryType
    token_estimated: int = 0


# Formatos donde cada bloque (cue de subtítulo) es indivisible por oraciones
_BLOCK_FILE_TYPES = ("srt", "vtt")


@dataclass
class ChunkPolicy:
    """
    Política de tamaño del chunker. Centralizada y explícita.

    target_unit_size se mide en tokens delimitados por whitespace.
    slack es la tolerancia antes del corte duro: un fragmento sin frontera
    interna se acepta entero mientras no supere target * (1 + slack).
    """
    target_unit_size: int   = 1000
    slack:            float = 0.2
    file_type:        str   = "txt"
    prefer:           str   = "sentence"     # "sentence" | "paragraph"

    paragraph_pattern: str = r'[ \t]*\n[ \t]*\n\s*'     # línea en blanco (párrafo estándar)
    sentence_patterns: list[str] = field(default_factory=lambda: [
        r'(?:(?<=[.!?…])|(?<=[.!?…]["\'”’»)\]]))\s+',   # puntuación (y cierre opcional) + espacio
        r'(?<=[。！？])\s*',                                  # CJK: no exige espacio
    ])

    def __post_init__(self):
        if self.target_unit_size < 1:
            raise ValueError("target_unit_size debe ser >= 1")
        if self.slack < 0:
            raise ValueError("slack no puede ser negativo")
        if self.prefer not in ("sentence", "paragraph"):
            raise ValueError(f"prefer inválido: '{self.prefer}'")

    @property
    def hard_limit(self) -> int:
        """Máximo de tokens que se tolera antes de cortar sin frontera."""
        return max(self.target_unit_size, int(self.target_unit_size * (1 + self.slack)))

    @property
    def splits_sentences(self) -> bool:
        return self.file_type.lower() not in _BLOCK_FILE_TYPES
