from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass
class SourceFile:
    """Un archivo ya decodificado a texto, tal como lo entrega la capa de subida."""
    name:        str
    content:     str
    size:        Optional[int] = None
    file_type:   Optional[str] = None
    uploaded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def __post_init__(self):
        if self.size is None:
            self.size = len(self.content.encode("utf-8"))
        if self.file_type is None:
            _, _, ext = self.name.rpartition(".")
            self.file_type = ext.lower() if ext and ext != self.name else "txt"


@dataclass
class RawDocument:
    """Lo que entra al chunker: contenido combinado + metadata del proyecto."""
    name:      str
    content:   str
    file_type: str = "txt"
    files:     list[SourceFile] = field(default_factory=list)


# los chunks: unidades de trabajo
@dataclass(frozen=True)
class ChunkSpec:
    """
    Unidad de traducción producida por el Chunker, todavía sin idioma destino.
    separator es el whitespace original que sigue al chunk (para reconstrucción).
    """
    index:           int
    text:            str
    separator:       str
    token_estimated: int
