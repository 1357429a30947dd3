# babelcore/batch.py
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


class BatchAction(Enum):
    START        = "start"
    PAUSE        = "pause"
    CANCEL       = "cancel"
    RETRY_FAILED = "retry_failed"
    DELETE       = "delete"


class BatchStatus(Enum):
    RUNNING          = "running"
    COMPLETED        = "completed"
    PARTIALLY_FAILED = "partially_failed"


@dataclass
class ProjectOutcome:
    project_id: str
    ok:         bool
    message:    str           = ""
    error_kind: Optional[str] = None


class BatchPartialFailure(Exception):
    """Al menos un proyecto del lote falló. Lista TODOS los errores, no solo el primero."""

    def __init__(self, operation: "BatchOperation"):
        self.operation = operation
        self.failures = operation.failures
        detail = "; ".join(
            f"{f.project_id}: {f.error_kind}: {f.message}" for f in self.failures
        )
        super().__init__(
            f"Lote {operation.action.value}: {len(self.failures)} de "
            f"{len(operation.project_ids)} proyectos fallaron ({detail})"
        )


@dataclass
class BatchOperation:
    """
    Resultado efímero de una acción sobre varios proyectos.
    No es transaccional entre proyectos: solo atómica por proyecto.
    """
    action:      BatchAction
    project_ids: list[str]
    id:          str                        = field(default_factory=lambda: uuid.uuid4().hex)
    results:     dict[str, ProjectOutcome]  = field(default_factory=dict)
    status:      BatchStatus                = BatchStatus.RUNNING

    @property
    def failures(self) -> list[ProjectOutcome]:
        return [self.results[pid] for pid in self.project_ids
                if pid in self.results and not self.results[pid].ok]

    @property
    def succeeded(self) -> list[str]:
        return [pid for pid in self.project_ids
                if pid in self.results and self.results[pid].ok]

    def raise_for_failures(self) -> None:
        if self.failures:
            raise BatchPartialFailure(self)


class BatchCoordinator:
    """
    Aplica una acción del Orchestrator a muchos proyectos en paralelo acotado.

    Cada tarea captura su propio (project_id, outcome): el error de un
    proyecto nunca aborta ni revierte lo ya aplicado a los demás.
    """

    _METHODS = {
        BatchAction.START:        "start",
        BatchAction.PAUSE:        "pause",
        BatchAction.CANCEL:       "cancel",
        BatchAction.RETRY_FAILED: "retry_failed",
        BatchAction.DELETE:       "delete",
    }

    def __init__(self, orchestrator, max_parallel: int = 4):
        if max_parallel < 1:
            raise ValueError("max_parallel debe ser >= 1")
        self._orchestrator = orchestrator
        self._max_parallel = max_parallel

    def apply(self, action: BatchAction | str, project_ids: Iterable[str]) -> BatchOperation:
        action = BatchAction(action)
        ids = list(dict.fromkeys(project_ids))   # sin duplicados, orden estable
        operation = BatchOperation(action=action, project_ids=ids)
        if not ids:
            operation.status = BatchStatus.COMPLETED
            return operation

        method = getattr(self._orchestrator, self._METHODS[action])
        logger.info("Lote %s: %s sobre %d proyectos", operation.id[:8], action.value, len(ids))

        with ThreadPoolExecutor(
            max_workers=min(self._max_parallel, len(ids)),
            thread_name_prefix="babelcore-batch",
        ) as pool:
            futures = [pool.submit(_apply_one, method, pid) for pid in ids]
            for future in as_completed(futures):
                outcome = future.result()
                operation.results[outcome.project_id] = outcome

        operation.status = (
            BatchStatus.PARTIALLY_FAILED if operation.failures else BatchStatus.COMPLETED
        )
        if operation.failures:
            logger.warning(
                "Lote %s: %d/%d proyectos fallaron",
                operation.id[:8], len(operation.failures), len(ids),
            )
        return operation


def _apply_one(method, project_id: str) -> ProjectOutcome:
    try:
        method(project_id)
    except Exception as e:
        logger.info("Lote: %s falló con %s: %s", project_id, type(e).__name__, e)
        return ProjectOutcome(project_id, ok=False, message=str(e), error_kind=type(e).__name__)
    return ProjectOutcome(project_id, ok=True, message="ok")
