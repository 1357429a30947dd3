# babelcore/progress.py
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from babelcore.storage.models import (
    ChunkOutcome, ProjectPhase, ProjectStatus, StoredChunk, StoredProject,
)

_FIXED_STATUS = {
    ProjectPhase.DRAFT:     ProjectStatus.DRAFT,
    ProjectPhase.READY:     ProjectStatus.READY,
    ProjectPhase.CANCELLED: ProjectStatus.CANCELLED,
    ProjectPhase.ERROR:     ProjectStatus.ERROR,
}


@dataclass(frozen=True)
class ProgressSnapshot:
    """
    Lectura inmutable del progreso de un proyecto en un instante.
    sequence la asigna quien emite (contador monótono por proyecto) y es lo
    que el feed compara para descartar snapshots viejos.
    """
    project_id:       str
    completed_chunks: int
    total_chunks:     int
    failed_chunks:    int
    progress:         float
    status:           ProjectStatus
    last_updated:     str
    sequence:         int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict:
        return {
            "project_id":       self.project_id,
            "completed_chunks": self.completed_chunks,
            "total_chunks":     self.total_chunks,
            "failed_chunks":    self.failed_chunks,
            "progress":         round(self.progress, 4),
            "status":           self.status.value,
            "last_updated":     self.last_updated,
            "sequence":         self.sequence,
        }


def derive_status(phase: ProjectPhase, chunks: Iterable[StoredChunk]) -> ProjectStatus:
    """
    El status es función pura de la fase persistida y de los outcomes.

    running/paused:
    - queda algún chunk pending o in_flight → processing (o paused)
    - todos terminales y alguno failed      → partial
    - todos success (o ningún chunk)        → completed
    """
    fixed = _FIXED_STATUS.get(phase)
    if fixed is not None:
        return fixed

    has_open = False
    has_failed = False
    for chunk in chunks:
        if chunk.outcome is ChunkOutcome.FAILED:
            has_failed = True
        elif not chunk.outcome.is_terminal:
            has_open = True
            break

    if has_open:
        return ProjectStatus.PROCESSING if phase is ProjectPhase.RUNNING else ProjectStatus.PAUSED
    if has_failed:
        return ProjectStatus.PARTIAL
    return ProjectStatus.COMPLETED


class ProgressAggregator:
    """
    Deriva el ProgressSnapshot de un proyecto a partir de sus chunks.
    Sin estado propio: la misma lectura del repositorio da el mismo snapshot.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def snapshot(self, project: StoredProject, sequence: int = 0) -> ProgressSnapshot:
        total = len(project.chunks)
        completed = 0
        failed = 0
        for chunk in project.chunks:
            if chunk.outcome is ChunkOutcome.SUCCESS:
                completed += 1
            elif chunk.outcome is ChunkOutcome.FAILED:
                failed += 1

        return ProgressSnapshot(
            project_id       = project.id,
            completed_chunks = completed,
            total_chunks     = total,
            failed_chunks    = failed,
            progress         = completed / total if total else 0.0,
            status           = derive_status(project.phase, project.chunks),
            last_updated     = self._clock().isoformat(),
            sequence         = sequence,
        )
