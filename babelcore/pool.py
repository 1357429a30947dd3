# babelcore/pool.py
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

logger = logging.getLogger(__name__)


class WorkerPool:
    """
    Pool de workers compartido por TODOS los proyectos del proceso.

    La capacidad es el único recurso compartido entre proyectos y se protege
    con un semáforo contado: quien despacha primero adquiere un slot y el
    slot se libera al terminar la tarea. Así el total de llamadas
    concurrentes a la capacidad externa nunca supera `concurrency`, sin
    importar cuántos proyectos estén activos.
    """

    def __init__(self, concurrency: int = 4):
        if concurrency < 1:
            raise ValueError("concurrency debe ser >= 1")
        self._concurrency = concurrency
        self._slots = threading.BoundedSemaphore(concurrency)
        self._executor = ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix="babelcore-worker",
        )
        self._in_use = 0
        self._lock = threading.Lock()

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def in_use(self) -> int:
        with self._lock:
            return self._in_use

    def acquire(self, timeout: float | None = None) -> bool:
        """Reserva un slot. False si no se consiguió dentro del timeout."""
        acquired = self._slots.acquire(timeout=timeout) if timeout is not None else self._slots.acquire()
        if acquired:
            with self._lock:
                self._in_use += 1
        return acquired

    def release(self) -> None:
        with self._lock:
            self._in_use -= 1
        self._slots.release()

    def submit(self, fn: Callable, *args) -> Future:
        """
        Ejecuta fn en el pool. Requiere un slot ya adquirido con acquire():
        el slot se libera al terminar fn, con éxito o con excepción.
        """
        def _run():
            try:
                return fn(*args)
            finally:
                self.release()

        try:
            return self._executor.submit(_run)
        except RuntimeError:
            # pool cerrado: el slot nunca llegará a _run
            self.release()
            raise

    def shutdown(self, wait: bool = True) -> None:
        logger.debug("Cerrando WorkerPool (wait=%s)", wait)
        self._executor.shutdown(wait=wait)
