"""Triggers - configuration types and the pure trigger evaluator."""
from .evaluate import TriggerEvaluation, check_trigger, evaluate_triggers
from .types import (
    THRESHOLD_KEYS,
    ConfigError,
    DuplicationConfig,
    Trigger,
    TriggerType,
    parse_trigger_type,
)

__all__ = [
    "ConfigError",
    "DuplicationConfig",
    "THRESHOLD_KEYS",
    "Trigger",
    "TriggerEvaluation",
    "TriggerType",
    "check_trigger",
    "evaluate_triggers",
    "parse_trigger_type",
]
