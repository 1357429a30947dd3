# babelcore/feed.py
import logging
import threading
from typing import Iterator, Optional

from babelcore.progress import ProgressSnapshot

logger = logging.getLogger(__name__)


class Subscription:
    """
    Canal de un observador para un proyecto.
    Guarda solo el último snapshot no entregado (at-most-latest): un
    observador lento se salta estados intermedios, nunca recibe uno viejo.
    """

    def __init__(self, feed: "LiveProgressFeed", project_id: str):
        self.project_id = project_id
        self._feed = feed
        self._cond = threading.Condition()
        self._latest: Optional[ProgressSnapshot] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, snapshot: ProgressSnapshot) -> None:
        with self._cond:
            if self._closed:
                return
            self._latest = snapshot
            self._cond.notify_all()

    def get(self, timeout: Optional[float] = None) -> Optional[ProgressSnapshot]:
        """
        Bloquea hasta que haya un snapshot nuevo. None si se agota el timeout
        o la suscripción se cerró.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._latest is not None or self._closed, timeout):
                return None
            if self._closed:
                return None
            snapshot, self._latest = self._latest, None

        if snapshot.is_terminal:
            self.close()
        return snapshot

    def __iter__(self) -> Iterator[ProgressSnapshot]:
        """Stream sin fin mientras el proyecto no sea terminal; termina tras el terminal."""
        while True:
            snapshot = self.get()
            if snapshot is None:
                return
            yield snapshot

    def close(self) -> None:
        self._feed.unsubscribe(self)

    def _mark_closed(self) -> None:
        with self._cond:
            self._closed = True
            self._latest = None
            self._cond.notify_all()


class LiveProgressFeed:
    """
    Republica los snapshots del agregador a los suscriptores de cada proyecto.

    Orden: por proyecto se entrega solo lo que sea más nuevo que lo último
    publicado (sequence mayor) y, mientras el proyecto está activo, nunca un
    completed_chunks menor. Los snapshots que llegan tarde desde otro worker
    se descartan.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[str, set[Subscription]] = {}
        self._latest: dict[str, ProgressSnapshot] = {}

    def subscribe(self, project_id: str) -> Subscription:
        """
        Registra un observador. Si ya hay un snapshot conocido se le entrega
        de inmediato (re-suscribirse es la forma de reanudar el stream).
        """
        subscription = Subscription(self, project_id)
        with self._lock:
            self._subscribers.setdefault(project_id, set()).add(subscription)
            latest = self._latest.get(project_id)
        if latest is not None:
            subscription.offer(latest)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.project_id)
            if subscribers is not None:
                subscribers.discard(subscription)
                if not subscribers:
                    del self._subscribers[subscription.project_id]
        subscription._mark_closed()

    def publish(self, snapshot: ProgressSnapshot) -> bool:
        """Devuelve False si el snapshot se descartó por viejo o por retroceder."""
        with self._lock:
            previous = self._latest.get(snapshot.project_id)
            if previous is not None and not _is_newer(snapshot, previous):
                logger.debug(
                    "Snapshot descartado para %s (seq %d <= %d o retroceso)",
                    snapshot.project_id, snapshot.sequence, previous.sequence,
                )
                return False
            self._latest[snapshot.project_id] = snapshot
            targets = list(self._subscribers.get(snapshot.project_id, ()))

        for subscription in targets:
            subscription.offer(snapshot)
        return True

    def latest(self, project_id: str) -> Optional[ProgressSnapshot]:
        with self._lock:
            return self._latest.get(project_id)

    def forget(self, project_id: str) -> None:
        """El proyecto ya no existe: cierra sus suscripciones."""
        with self._lock:
            subscribers = self._subscribers.pop(project_id, set())
            self._latest.pop(project_id, None)
        for subscription in subscribers:
            subscription._mark_closed()


def _is_newer(candidate: ProgressSnapshot, previous: ProgressSnapshot) -> bool:
    if candidate.sequence <= previous.sequence:
        return False
    if not previous.is_terminal and candidate.completed_chunks < previous.completed_chunks:
        return False
    return True
