# router/models.py
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ModelResponse:
    translation:   str
    confidence:    float
    notes:         str
    model_used:    str
    tokens_input:  int = 0
    tokens_output: int = 0


@dataclass
class ModelConfig:
    """
    Configuración de un modelo individual.
    Se carga desde ~/.babelcore/config.yaml (sección models).
    """
    name:             str
    priority:         int
    api_key:          Optional[str] = None
    model_id:         Optional[str] = None   # None → el default del adaptador
    timeout_seconds:  int = 30
    temperature:      float = 0.3
    cooldown_seconds: int = 60               # pausa tras un 429 sin retry-after

    # Control de cooldown temporal (no viene del YAML, es runtime)
    _unavailable_until: Optional[float] = field(
        default=None, compare=False, repr=False
    )
