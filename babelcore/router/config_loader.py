# router/config_loader.py
import os
from pathlib import Path
from typing import Optional

import yaml

from babelcore.router.models import ModelConfig

_DEFAULT_CONFIG_PATH = Path.home() / ".babelcore" / "config.yaml"


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    return Path(config_path or os.environ.get("BABELCORE_CONFIG_PATH") or _DEFAULT_CONFIG_PATH)


def read_config(config_path: Optional[str] = None, required: bool = True) -> dict:
    """
    Lee el YAML completo. Si no existe y required=False devuelve {}.
    """
    path = resolve_config_path(config_path)

    if not path.exists():
        if not required:
            return {}
        raise FileNotFoundError(
            f"Config no encontrada en {path}. "
            f"Copia config.example.yaml a ~/.babelcore/config.yaml"
        )

    with path.open(encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_model_configs(config_path: Optional[str] = None) -> list[ModelConfig]:
    """
    Carga la configuración de modelos desde YAML.
    Resuelve variables de entorno en los api_key (${VAR}).
    Devuelve la lista ordenada por prioridad ascendente.
    """
    raw = read_config(config_path)

    configs = []
    for entry in raw.get("models", []):
        configs.append(ModelConfig(
            name             = entry["name"],
            priority         = entry.get("priority", 99),
            api_key          = _resolve_env(entry.get("api_key")),
            model_id         = entry.get("model"),
            timeout_seconds  = entry.get("timeout_seconds", 30),
            temperature      = entry.get("temperature", 0.3),
            cooldown_seconds = entry.get("cooldown_seconds", 60),
        ))

    return sorted(configs, key=lambda c: c.priority)


def _resolve_env(value: Optional[str]) -> Optional[str]:
    """Expande ${VAR_NAME} desde el entorno."""
    if not value or not value.startswith("${"):
        return value
    var_name = value.strip("${}").strip()
    return os.environ.get(var_name)
