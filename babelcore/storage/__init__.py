# storage/__init__.py
from babelcore.storage.repository import Repository
from babelcore.storage.models import (
    ChunkOutcome, ProjectPhase, ProjectStatus,
    StoredChunk, StoredFile, StoredProject,
)

__all__ = [
    "Repository",
    "ChunkOutcome", "ProjectPhase", "ProjectStatus",
    "StoredChunk", "StoredFile", "StoredProject",
]
