from babelcore.router.router import Router
from babelcore.router.base import BaseModel
from babelcore.router.errors import (
    AllModelsExhaustedError,
    CapabilityError,
    RateLimitedError,
    TranslationTimeout,
)
from babelcore.router.models import ModelResponse, ModelConfig
from babelcore.router.config_loader import load_model_configs

__all__ = [
    "Router",
    "BaseModel",
    "AllModelsExhaustedError",
    "CapabilityError",
    "RateLimitedError",
    "TranslationTimeout",
    "ModelResponse",
    "ModelConfig",
    "load_model_configs",
]
