# babelcore/factory.py
import logging
from pathlib import Path
from typing import Optional

import click

from babelcore.executor import RetryPolicy, TranslationExecutor
from babelcore.feed import LiveProgressFeed
from babelcore.orchestrator import Orchestrator
from babelcore.pool import WorkerPool
from babelcore.processor.chunker import Chunker, ChunkPolicy
from babelcore.progress import ProgressAggregator
from babelcore.reconstructor import Reconstructor
from babelcore.router.router import Router
from babelcore.router.config_loader import load_model_configs
from babelcore.router.errors import CapabilityError
from babelcore.settings import load_orchestrator_config
from babelcore.storage.repository import Repository

logger = logging.getLogger(__name__)

# target_unit_size en tokens (palabras)
_CHUNK_PRESETS: dict[str, int] = {
    "small":    400,
    "standard": 1000,
    "large":    2000,
}


class _UnconfiguredCapability:
    """
    Capacidad para comandos de control (pause, cancel, status...)
    que nunca traducen: no exige modelos configurados.
    """

    def translate(self, text, source_lang, target_lang, file_type="txt"):
        raise CapabilityError("No hay modelos configurados en este proceso", transient=False)


def build_orchestrator(
    db_path:        Optional[str]  = None,
    config_path:    Optional[str]  = None,
    output_dir:     Optional[Path] = None,
    chunk_size:     str            = "standard",
    require_models: bool           = True,
) -> Orchestrator:
    """
    Ensambla el Orchestrator con todas sus dependencias.
    Punto de entrada único para el CLI y los tests de integración.

    chunk_size: "small" | "standard" | "large". Si el config define
    orchestrator.unit_size, ese valor manda.
    require_models=False permite operar proyectos sin api_keys (comandos
    que no traducen).
    """
    settings = load_orchestrator_config(config_path)
    repo     = Repository(db_path=db_path)

    if require_models:
        capability = Router(_build_models(config_path))
    else:
        capability = _UnconfiguredCapability()

    unit_size = settings.unit_size or _CHUNK_PRESETS.get(chunk_size, _CHUNK_PRESETS["standard"])
    policy    = RetryPolicy(
        max_attempts    = settings.max_attempts,
        timeout_seconds = settings.timeout_seconds,
        base_delay      = settings.backoff_base,
        max_delay       = settings.backoff_max,
    )

    return Orchestrator(
        repo           = repo,
        chunker        = Chunker(policy=ChunkPolicy(target_unit_size=unit_size)),
        executor       = TranslationExecutor(
            capability, policy=policy, call_workers=settings.concurrency,
        ),
        pool           = WorkerPool(concurrency=settings.concurrency),
        feed           = LiveProgressFeed(),
        aggregator     = ProgressAggregator(),
        reconstructor  = Reconstructor(repo, output_dir),
        batch_parallel = settings.batch_parallel,
    )


def _build_models(config_path: Optional[str]) -> list:
    """
    Carga el config y construye los adaptadores disponibles.
    Si un adaptador no tiene api_key configurada, lo omite.
    """
    configs  = load_model_configs(config_path)
    adapters = _adapter_classes()
    models = []

    for config in configs:
        adapter_class = adapters.get(config.name)
        if not adapter_class:
            logger.warning("Modelo '%s' desconocido en el config, omitiendo", config.name)
            continue
        if not config.api_key:
            click.echo(f"[babelcore] ⚠ {config.name}: sin api_key, omitiendo", err=True)
            continue
        models.append(adapter_class(config))

    if not models:
        raise RuntimeError(
            "Ningún modelo configurado. "
            "Revisa ~/.babelcore/config.yaml y tus variables de entorno."
        )

    return models


def _adapter_classes() -> dict:
    # Import diferido: los SDKs solo se cargan cuando hace falta traducir
    from babelcore.router.claude import ClaudeAdapter
    from babelcore.router.gemini import GeminiAdapter
    return {
        "claude": ClaudeAdapter,
        "gemini": GeminiAdapter,
    }
