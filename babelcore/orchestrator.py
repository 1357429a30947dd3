# babelcore/orchestrator.py
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

from babelcore.batch import BatchAction, BatchCoordinator, BatchOperation
from babelcore.executor import TranslateOptions, TranslationExecutor
from babelcore.feed import LiveProgressFeed, Subscription
from babelcore.pool import WorkerPool
from babelcore.processor.chunker import Chunker, ChunkingError, ChunkPolicy
from babelcore.processor.intake import build_document
from babelcore.processor.language import detect_language
from babelcore.processor.models import SourceFile
from babelcore.progress import ProgressAggregator, ProgressSnapshot
from babelcore.reconstructor import Reconstructor
from babelcore.storage.repository import Repository
from babelcore.storage.models import (
    ChunkOutcome, ProjectPhase, ProjectStatus,
    StoredChunk, StoredFile, StoredProject,
)

logger = logging.getLogger(__name__)

AUTO_LANGUAGE = "auto"
_EXTRACTION_METHODS = ("traditional", "ai")

# Cada cuánto el dispatcher bloqueado esperando slot vuelve a mirar pause/cancel
_SLOT_POLL_SECONDS = 0.1


# ------------------------------------------------------------------
# Errores propios del Orchestrator
# ------------------------------------------------------------------

class InvalidTransition(Exception):
    """La acción no es válida en el estado actual. El estado no cambia."""

    def __init__(self, project_id: str, action: str, status: ProjectStatus):
        self.project_id = project_id
        self.action     = action
        self.status     = status
        super().__init__(
            f"No se puede aplicar '{action}' al proyecto {project_id} en estado '{status.value}'"
        )


class ProjectNotFound(Exception):
    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Proyecto {project_id} no encontrado")


# ------------------------------------------------------------------
# Estado en memoria de un proyecto en ejecución
# ------------------------------------------------------------------

class ProjectRun:
    """
    Todo lo que el proceso sabe de un proyecto además de lo persistido.

    - lock: serializa las mutaciones del proyecto (lecturas del agregador incluidas)
    - generation: cambia con cada start/pause/cancel/retry/delete; un
      dispatcher de una generación vieja termina en su siguiente chequeo
    - in_flight: pares (sequence, lang) con un worker vivo
    - sequence: contador de emisiones de snapshots
    """

    def __init__(self, project_id: str):
        self.project_id  = project_id
        self.lock        = threading.RLock()
        self.cond        = threading.Condition(self.lock)
        self.generation  = 0
        self.dispatchers = 0
        self.in_flight: set[tuple[int, str]] = set()
        self.sequence    = 0

    @property
    def idle(self) -> bool:
        return self.dispatchers == 0 and not self.in_flight


# ------------------------------------------------------------------
# Orchestrator
# ------------------------------------------------------------------

class Orchestrator:
    """
    Dueño del ciclo de vida de los proyectos.
    No tiene lógica de traducción propia: coordina módulos.

    Responsabilidades:
    - Crear proyectos y chunkearlos
    - Validar las transiciones de estado (start/pause/cancel/retry/delete)
    - Despachar chunks pendientes al pool compartido, sin duplicados
    - Persistir cada resultado y emitir el snapshot de progreso
    """

    def __init__(
        self,
        repo:              Repository,
        chunker:           Chunker,
        executor:          TranslationExecutor,
        pool:              WorkerPool,
        feed:              Optional[LiveProgressFeed]   = None,
        aggregator:        Optional[ProgressAggregator] = None,
        reconstructor:     Optional[Reconstructor]      = None,
        language_detector: Callable[[str], Optional[str]] = detect_language,
        batch_parallel:    int = 4,
    ):
        self._repo          = repo
        self._chunker       = chunker
        self._executor      = executor
        self._pool          = pool
        self._feed          = feed or LiveProgressFeed()
        self._aggregator    = aggregator or ProgressAggregator()
        self._reconstructor = reconstructor or Reconstructor(repo)
        self._detect        = language_detector
        self._batch         = BatchCoordinator(self, max_parallel=batch_parallel)

        self._runs: dict[str, ProjectRun] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def feed(self) -> LiveProgressFeed:
        return self._feed

    # ------------------------------------------------------------------
    # Creación
    # ------------------------------------------------------------------

    def create_project(
        self,
        files:             Optional[list[SourceFile]] = None,
        *,
        content:           str | bytes | None = None,
        target_langs:      Iterable[str],
        source_lang:       str                = AUTO_LANGUAGE,
        name:              Optional[str]      = None,
        file_type:         Optional[str]      = None,
        extraction_method: str                = "ai",
        policy:            Optional[ChunkPolicy] = None,
    ) -> StoredProject:
        """
        draft → ready si el chunking funciona, draft → error si no.
        Un error de chunking NO se lanza aquí: queda en el proyecto
        (status error + last_error) y start() lo lanza como ChunkingError.
        """
        targets = list(dict.fromkeys(lang.strip() for lang in target_langs if lang and lang.strip()))
        if not targets:
            raise ValueError("Un proyecto necesita al menos un idioma destino")
        if extraction_method not in _EXTRACTION_METHODS:
            raise ValueError(f"extraction_method debe ser uno de {_EXTRACTION_METHODS}")

        if files:
            document  = build_document(files, name)
            content   = document.content
            name      = document.name
            file_type = file_type or document.file_type
        elif content is None:
            raise ValueError("Hay que pasar files o content")

        file_type = (file_type or "txt").lower()
        now = _now()
        project = StoredProject(
            id                = uuid.uuid4().hex,
            name              = name or "Untitled",
            source_lang       = source_lang or AUTO_LANGUAGE,
            target_langs      = targets,
            file_type         = file_type,
            phase             = ProjectPhase.DRAFT,
            created_at        = now,
            updated_at        = now,
            content           = _storable(content),
            extraction_method = extraction_method,
            files             = [
                StoredFile(f.name, f.size, f.content, f.file_type, f.uploaded_at)
                for f in (files or [])
            ],
        )
        self._repo.create(project)
        logger.info("Nuevo proyecto '%s' (%s) → %s", project.name, project.id, ", ".join(targets))

        run = self._run_for(project.id)
        with run.lock:
            try:
                specs = self._chunker.split(content, policy or self._chunker.policy_for(file_type))
            except ChunkingError as e:
                logger.warning("Proyecto %s: chunking falló: %s", project.id, e)
                self._repo.update(project.id, phase=ProjectPhase.ERROR, last_error=str(e))
            else:
                self._repo.save_chunks(project.id, specs, targets)
                self._repo.update(project.id, phase=ProjectPhase.READY)
                logger.info("Proyecto %s: %d chunks × %d idiomas", project.id, len(specs), len(targets))

        self._emit(run)
        return self._get(project.id)

    # ------------------------------------------------------------------
    # Transiciones
    # ------------------------------------------------------------------

    def start(self, project_id: str) -> ProgressSnapshot:
        """
        ready/paused → processing. También recupera un proyecto que quedó
        en processing sin dispatcher vivo (proceso interrumpido).
        Un proyecto sin chunks pasa directo a completed.
        """
        run = self._run_for(project_id)
        with run.lock:
            project = self._get(project_id, include_files=False)
            status = project.status

            if status is ProjectStatus.ERROR:
                raise ChunkingError(project.last_error or "El chunking del proyecto falló")
            recovering = status is ProjectStatus.PROCESSING and run.dispatchers == 0 and not run.in_flight
            if status not in (ProjectStatus.READY, ProjectStatus.PAUSED) and not recovering:
                raise InvalidTransition(project_id, "start", status)

            patch = {"phase": ProjectPhase.RUNNING}
            if project.source_lang == AUTO_LANGUAGE:
                detected = self._detect(project.content)
                if detected:
                    patch["source_lang"] = detected
                    logger.info("Proyecto %s: idioma fuente detectado '%s'", project_id, detected)
                else:
                    logger.info("Proyecto %s: idioma fuente no detectado, lo resolverá el modelo", project_id)

            self._repo.release_stale_chunks(project_id, keep=run.in_flight)
            self._repo.update(project_id, **patch)
            self._spawn_dispatcher(run)

        logger.info("Proyecto %s: %s", project_id, "reanudado" if status is not ProjectStatus.READY else "iniciado")
        return self._emit(run)

    def pause(self, project_id: str) -> ProgressSnapshot:
        """processing → paused. Lo que está en vuelo termina; no se despacha nada nuevo."""
        run = self._run_for(project_id)
        with run.lock:
            status = self._get(project_id, include_files=False).status
            if status is not ProjectStatus.PROCESSING:
                raise InvalidTransition(project_id, "pause", status)
            self._repo.update(project_id, phase=ProjectPhase.PAUSED)
            run.generation += 1
        logger.info("Proyecto %s: pausado", project_id)
        return self._emit(run)

    def cancel(self, project_id: str) -> ProgressSnapshot:
        """
        Cualquier estado no terminal → cancelled. Lo que estaba en vuelo termina:
        su resultado se guarda en el chunk pero no cuenta como completado.
        """
        run = self._run_for(project_id)
        with run.lock:
            status = self._get(project_id, include_files=False).status
            if status.is_terminal:
                raise InvalidTransition(project_id, "cancel", status)
            self._repo.update(project_id, phase=ProjectPhase.CANCELLED)
            run.generation += 1
        logger.info("Proyecto %s: cancelado", project_id)
        return self._emit(run)

    def retry_failed(self, project_id: str) -> ProgressSnapshot:
        """partial → processing. Solo los chunks failed vuelven a la cola, con attempts a 0."""
        run = self._run_for(project_id)
        with run.lock:
            status = self._get(project_id, include_files=False).status
            if status is not ProjectStatus.PARTIAL:
                raise InvalidTransition(project_id, "retry_failed", status)
            reset = self._repo.reset_failed_chunks(project_id)
            self._repo.update(project_id, phase=ProjectPhase.RUNNING)
            self._spawn_dispatcher(run)
        logger.info("Proyecto %s: %d chunks fallidos reencolados", project_id, reset)
        return self._emit(run)

    def delete(self, project_id: str) -> None:
        """Borra el proyecto en cualquier estado. Los workers en vuelo terminan sin efecto."""
        run = self._run_for(project_id)
        with run.lock:
            run.generation += 1
            if not self._repo.delete(project_id):
                self._forget_run(project_id)
                raise ProjectNotFound(project_id)
        self._forget_run(project_id)
        self._feed.forget(project_id)
        logger.info("Proyecto %s: eliminado", project_id)

    def apply_batch(self, action: BatchAction | str, project_ids: Iterable[str]) -> BatchOperation:
        return self._batch.apply(action, project_ids)

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    def get_project(self, project_id: str) -> StoredProject:
        return self._get(project_id)

    def list_projects(self, status: Optional[ProjectStatus] = None) -> list[StoredProject]:
        return self._repo.list(status=status)

    def snapshot(self, project_id: str) -> ProgressSnapshot:
        run = self._run_for(project_id)
        with run.lock:
            return self._aggregator.snapshot(self._get(project_id, include_files=False), run.sequence)

    def subscribe(self, project_id: str) -> Subscription:
        """Suscripción al feed. El primer snapshot se entrega de inmediato."""
        run = self._run_for(project_id)
        if self._feed.latest(project_id) is None:
            with run.lock:
                self._get(project_id, include_files=False)
            self._emit(run)
        return self._feed.subscribe(project_id)

    def wait(self, project_id: str, timeout: Optional[float] = None) -> bool:
        """Bloquea hasta que no quede dispatcher ni worker del proyecto. False si vence el timeout."""
        run = self._run_for(project_id)
        with run.cond:
            return run.cond.wait_for(lambda: run.idle, timeout)

    def active_count(self) -> int:
        return len(self._repo.list(status=ProjectStatus.PROCESSING))

    def export(self, project_id: str, target_lang: str, output_path: Optional[Path] = None) -> Path:
        self._get(project_id, include_files=False)
        return self._reconstructor.build(project_id, target_lang, output_path)

    def shutdown(self, wait: bool = True) -> None:
        """Detiene los dispatchers. Los proyectos quedan en su fase persistida."""
        with self._lock:
            self._closed = True
            runs = list(self._runs.values())
        for run in runs:
            with run.lock:
                run.generation += 1
        self._pool.shutdown(wait=wait)
        self._executor.shutdown()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _spawn_dispatcher(self, run: ProjectRun) -> None:
        # llamado con run.lock tomado
        run.generation += 1
        run.dispatchers += 1
        thread = threading.Thread(
            target = self._dispatch_loop,
            args   = (run, run.generation),
            name   = f"babelcore-dispatch-{run.project_id[:8]}",
            daemon = True,
        )
        thread.start()

    def _dispatch_loop(self, run: ProjectRun, generation: int) -> None:
        try:
            project = self._repo.get(run.project_id, include_files=False)
            if project is None:
                return
            options = TranslateOptions(
                source_lang = None if project.source_lang == AUTO_LANGUAGE else project.source_lang,
                file_type   = project.file_type,
            )
            lang_order = {lang: i for i, lang in enumerate(project.target_langs)}
            pending = sorted(
                (c for c in project.chunks if c.outcome is ChunkOutcome.PENDING),
                key=lambda c: (lang_order.get(c.target_lang, len(lang_order)), c.sequence),
            )
            logger.debug("Proyecto %s: %d chunks por despachar", run.project_id, len(pending))

            for chunk in pending:
                if not self._acquire_slot(run, generation):
                    return
                with run.lock:
                    if not self._may_dispatch(run, generation):
                        self._pool.release()
                        return
                    if chunk.key in run.in_flight or not self._repo.claim_chunk(
                        run.project_id, chunk.sequence, chunk.target_lang,
                    ):
                        self._pool.release()
                        continue
                    run.in_flight.add(chunk.key)

                try:
                    self._pool.submit(self._process_chunk, run, chunk, options)
                except RuntimeError:
                    # pool cerrado: el chunk queda in_flight y start() lo recupera
                    logger.warning("Proyecto %s: pool cerrado, se detiene el despacho", run.project_id)
                    with run.lock:
                        run.in_flight.discard(chunk.key)
                    return
        except Exception:
            logger.exception("Proyecto %s: el dispatcher terminó con error", run.project_id)
        finally:
            with run.lock:
                run.dispatchers -= 1
                run.cond.notify_all()

    def _acquire_slot(self, run: ProjectRun, generation: int) -> bool:
        while not self._pool.acquire(timeout=_SLOT_POLL_SECONDS):
            with run.lock:
                if not self._may_dispatch(run, generation):
                    return False
        return True

    def _may_dispatch(self, run: ProjectRun, generation: int) -> bool:
        # La fase persistida también cuenta: otro proceso pudo pausar o cancelar
        return (
            not self._closed
            and run.generation == generation
            and self._repo.get_phase(run.project_id) is ProjectPhase.RUNNING
        )

    def _process_chunk(self, run: ProjectRun, chunk: StoredChunk, options: TranslateOptions) -> None:
        try:
            result = self._executor.translate(chunk, chunk.target_lang, options)
            with run.lock:
                if self._repo.get_phase(run.project_id) is ProjectPhase.CANCELLED:
                    self._repo.record_late_result(
                        run.project_id, chunk.sequence, chunk.target_lang,
                        attempts   = result.attempts,
                        translated = result.translation,
                        model_used = result.model_used,
                        error      = result.error,
                    )
                elif result.ok:
                    self._repo.record_success(
                        run.project_id, chunk.sequence, chunk.target_lang,
                        translated = result.translation,
                        model_used = result.model_used,
                        attempts   = result.attempts,
                    )
                else:
                    self._repo.record_failure(
                        run.project_id, chunk.sequence, chunk.target_lang,
                        error    = result.error or "error desconocido",
                        attempts = result.attempts,
                    )
        except Exception:
            # Un chunk nunca tumba el proyecto: queda in_flight y start() lo recupera
            logger.exception("Proyecto %s: error guardando el chunk %s/%s",
                             run.project_id, chunk.sequence, chunk.target_lang)
        finally:
            # el snapshot sale antes de liberar el par: wait() ya lo ve publicado
            try:
                self._emit(run)
            finally:
                with run.lock:
                    run.in_flight.discard(chunk.key)
                    run.cond.notify_all()

    # ------------------------------------------------------------------
    # Helpers internos
    # ------------------------------------------------------------------

    def _emit(self, run: ProjectRun) -> Optional[ProgressSnapshot]:
        """
        Lee el proyecto y numera el snapshot bajo el lock del proyecto;
        publica fuera del lock. El feed descarta lo que llegue desordenado.
        """
        with run.lock:
            project = self._repo.get(run.project_id, include_files=False)
            if project is None:
                return None
            run.sequence += 1
            snapshot = self._aggregator.snapshot(project, run.sequence)
        self._feed.publish(snapshot)
        return snapshot

    def _get(self, project_id: str, include_files: bool = True) -> StoredProject:
        project = self._repo.get(project_id, include_files=include_files)
        if project is None:
            raise ProjectNotFound(project_id)
        return project

    def _run_for(self, project_id: str) -> ProjectRun:
        with self._lock:
            run = self._runs.get(project_id)
            if run is None:
                run = self._runs[project_id] = ProjectRun(project_id)
            return run

    def _forget_run(self, project_id: str) -> None:
        with self._lock:
            self._runs.pop(project_id, None)


def _storable(content) -> str:
    if isinstance(content, (bytes, bytearray)):
        return bytes(content).decode("utf-8", errors="replace")
    return content if isinstance(content, str) else ""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
