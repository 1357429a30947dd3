# storage/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ProjectPhase(Enum):
    """
    Intención de ciclo de vida que se persiste.
    El status visible NO se guarda: se deriva de phase + outcomes de los chunks.
    """
    DRAFT     = "draft"
    READY     = "ready"
    RUNNING   = "running"
    PAUSED    = "paused"
    CANCELLED = "cancelled"
    ERROR     = "error"


class ProjectStatus(Enum):
    DRAFT      = "draft"
    READY      = "ready"
    PROCESSING = "processing"
    PAUSED     = "paused"
    COMPLETED  = "completed"
    PARTIAL    = "partial"
    CANCELLED  = "cancelled"
    ERROR      = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProjectStatus.COMPLETED, ProjectStatus.CANCELLED, ProjectStatus.ERROR)

    @property
    def is_settled(self) -> bool:
        """Sin progreso automático pendiente (partial espera un retry manual)."""
        return self.is_terminal or self is ProjectStatus.PARTIAL


class ChunkOutcome(Enum):
    PENDING   = "pending"
    IN_FLIGHT = "in_flight"
    SUCCESS   = "success"
    FAILED    = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ChunkOutcome.SUCCESS, ChunkOutcome.FAILED)


@dataclass
class StoredFile:
    name:        str
    size:        int
    content:     str
    file_type:   str
    uploaded_at: str


@dataclass
class StoredChunk:
    project_id:      str
    sequence:        int
    target_lang:     str
    source_text:     str
    outcome:         ChunkOutcome
    separator:       str            = ""
    token_estimated: Optional[int]  = None
    translated_text: Optional[str]  = None
    attempts:        int            = 0
    last_error:      Optional[str]  = None
    model_used:      Optional[str]  = None
    updated_at:      Optional[str]  = None

    @property
    def key(self) -> tuple[int, str]:
        return (self.sequence, self.target_lang)


@dataclass
class StoredProject:
    id:                str
    name:              str
    source_lang:       str
    target_langs:      list[str]
    file_type:         str
    phase:             ProjectPhase
    created_at:        str
    updated_at:        str
    content:           str                = ""
    extraction_method: str                = "ai"
    last_error:        Optional[str]      = None
    files:             list[StoredFile]   = field(default_factory=list)
    chunks:            list[StoredChunk]  = field(default_factory=list)

    @property
    def status(self) -> ProjectStatus:
        # Propiedad calculada: nunca se asigna, siempre se deriva
        from babelcore.progress import derive_status
        return derive_status(self.phase, self.chunks)

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)

    @property
    def completed_chunks(self) -> int:
        return sum(1 for c in self.chunks if c.outcome is ChunkOutcome.SUCCESS)

    @property
    def progress(self) -> float:
        total = self.total_chunks
        return self.completed_chunks / total if total else 0.0
