# babelcore/executor.py
import concurrent.futures
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from babelcore.router.errors import CapabilityError, TranslationTimeout, error_kind
from babelcore.router.models import ModelResponse

logger = logging.getLogger(__name__)


class TranslationCapability(Protocol):
    """Lo que el Executor necesita de la capacidad externa (el Router la cumple)."""

    def translate(
        self, text: str, source_lang: str | None, target_lang: str, file_type: str = "txt",
    ) -> ModelResponse: ...


@dataclass
class RetryPolicy:
    """
    max_attempts cuenta el intento inicial: 3 → como mucho 3 llamadas.
    Espera entre intentos: base_delay * 2^(n-1), acotada por max_delay.
    """
    max_attempts:    int   = 3
    timeout_seconds: float = 30.0
    base_delay:      float = 1.0
    max_delay:       float = 30.0

    def delay_for(self, attempt: int, error: Exception) -> float:
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            return min(float(retry_after), self.max_delay)
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


@dataclass
class TranslateOptions:
    source_lang: str | None = None
    file_type:   str = "txt"


@dataclass
class ChunkResult:
    """Resultado terminal de un chunk. El Executor nunca lanza la taxonomía."""
    ok:          bool
    attempts:    int
    translation: Optional[str] = None
    model_used:  Optional[str] = None
    error:       Optional[str] = None

    @classmethod
    def success(cls, response: ModelResponse, attempts: int) -> "ChunkResult":
        return cls(ok=True, attempts=attempts, translation=response.translation,
                   model_used=response.model_used)

    @classmethod
    def failure(cls, error: Exception, attempts: int) -> "ChunkResult":
        return cls(ok=False, attempts=attempts, error=f"{error_kind(error)}: {error}")


class TranslationExecutor:
    """
    Envuelve UNA llamada lógica a la capacidad de traducción para un chunk:
    timeout por llamada + reintentos con backoff exponencial.

    No toca estado compartido: el Orchestrator persiste lo que devuelve.
    Cada translate() tiene como mucho una llamada viva: un reintento nunca se
    solapa con la llamada vencida anterior, así que con call_workers igual a la
    concurrencia del WorkerPool ninguna llamada espera en cola.
    sleep y el tamaño del pool de llamadas son inyectables para tests.
    """

    def __init__(
        self,
        capability: TranslationCapability,
        policy:     RetryPolicy | None = None,
        sleep:      Callable[[float], None] = time.sleep,
        call_workers: int = 8,
    ):
        self._capability = capability
        self._policy = policy or RetryPolicy()
        self._sleep = sleep
        self._calls = concurrent.futures.ThreadPoolExecutor(
            max_workers=call_workers, thread_name_prefix="babelcore-call",
        )

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def translate(self, chunk, target_lang: str, options: TranslateOptions | None = None) -> ChunkResult:
        """
        chunk: cualquier objeto con source_text (StoredChunk).
        Devuelve ChunkResult(ok=False) al agotar intentos o ante un error
        no transitorio; nunca propaga CapabilityError/TranslationTimeout.
        """
        options = options or TranslateOptions()
        attempts = 0
        last_error: Exception | None = None

        while attempts < self._policy.max_attempts:
            attempts += 1
            try:
                response = self._call(chunk.source_text, options, target_lang)
                if not response.translation.strip() and chunk.source_text.strip():
                    raise CapabilityError("el modelo devolvió una traducción vacía", transient=True)
                return ChunkResult.success(response, attempts)

            except CapabilityError as e:
                last_error = e
                if not e.transient:
                    logger.warning("Chunk %s/%s: error no reintentable: %s",
                                   _label(chunk), target_lang, e)
                    break
                if attempts >= self._policy.max_attempts:
                    break
                delay = self._policy.delay_for(attempts, e)
                logger.warning(
                    "Chunk %s/%s: intento %d/%d falló (%s). Reintentando en %.1fs",
                    _label(chunk), target_lang, attempts, self._policy.max_attempts,
                    error_kind(e), delay,
                )
                self._sleep(delay)

            except Exception as e:
                # Error inesperado del adaptador: se registra en el chunk, no se reintenta
                logger.warning("Chunk %s/%s: error inesperado %s: %s",
                               _label(chunk), target_lang, type(e).__name__, e)
                last_error = e
                break

        logger.warning("Chunk %s/%s falló tras %d intento(s): %s",
                       _label(chunk), target_lang, attempts, last_error)
        return ChunkResult.failure(last_error, attempts)

    def shutdown(self) -> None:
        self._calls.shutdown(wait=False)

    def _call(self, text: str, options: TranslateOptions, target_lang: str) -> ModelResponse:
        timeout = self._policy.timeout_seconds
        if not timeout:
            return self._capability.translate(text, options.source_lang, target_lang, options.file_type)

        future = self._calls.submit(
            self._capability.translate, text, options.source_lang, target_lang, options.file_type,
        )
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError as e:
            # El intento ya cuenta como timeout, pero la llamada sigue hablando con
            # el proveedor: el worker (y su slot del pool) espera a que termine antes
            # de reintentar o devolver. Su resultado se descarta.
            if not future.cancel():
                logger.debug("Llamada vencida tras %gs, esperando a que el SDK la cierre", timeout)
                concurrent.futures.wait([future])
            raise TranslationTimeout(f"sin respuesta tras {timeout:g}s") from e


def _label(chunk) -> str:
    return str(getattr(chunk, "sequence", "?"))
