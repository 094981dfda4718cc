"""Locale resolution and redirect-decision engine."""

__version__ = "0.1.0"

from .config import Config, EngineConfig, get_config, load_config
from .engine import LocaleEngine
from .policy.models import Action, PipelineResult, RedirectReason, RedirectStatus

__all__ = [
    "Action",
    "Config",
    "EngineConfig",
    "LocaleEngine",
    "PipelineResult",
    "RedirectReason",
    "RedirectStatus",
    "get_config",
    "load_config",
]
