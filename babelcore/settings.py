# babelcore/settings.py
from dataclasses import dataclass, fields
from typing import Optional

from babelcore.router.config_loader import read_config


@dataclass
class OrchestratorConfig:
    """
    Sección `orchestrator` del config.yaml. Todo es opcional:
    sin config se usan estos defaults.
    """
    concurrency:     int   = 4
    max_attempts:    int   = 3
    timeout_seconds: float = 30.0
    backoff_base:    float = 1.0
    backoff_max:     float = 30.0
    batch_parallel:  int   = 4
    unit_size:       Optional[int] = None

    def __post_init__(self):
        for name in ("concurrency", "max_attempts", "batch_parallel"):
            if getattr(self, name) < 1:
                raise ValueError(f"orchestrator.{name} debe ser >= 1")
        if self.timeout_seconds < 0:
            raise ValueError("orchestrator.timeout_seconds no puede ser negativo")
        if self.unit_size is not None and self.unit_size < 1:
            raise ValueError("orchestrator.unit_size debe ser >= 1")


def load_orchestrator_config(config_path: Optional[str] = None) -> OrchestratorConfig:
    """Lee la sección orchestrator. Claves desconocidas se ignoran."""
    raw = read_config(config_path, required=False).get("orchestrator") or {}
    known = {f.name for f in fields(OrchestratorConfig)}
    return OrchestratorConfig(**{k: v for k, v in raw.items() if k in known})
