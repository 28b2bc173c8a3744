"""Configuration: default templates and engine settings."""
from .defaults import DEFAULT_THRESHOLDS, create_default_trigger, default_config, new_trigger_id
from .settings import EngineSettings

__all__ = [
    "DEFAULT_THRESHOLDS",
    "create_default_trigger",
    "default_config",
    "new_trigger_id",
    "EngineSettings",
]
