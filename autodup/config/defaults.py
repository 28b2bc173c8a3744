"""Default duplication config and trigger templates.

Every read of a default hands out a fresh deep copy, so two sessions that
both fall back to the template never share trigger lists.
"""
import copy
import time
import uuid

from autodup.constants import (
    DEFAULT_AUTO_CREATE_GROUP,
    DEFAULT_CONTEXT_PERCENTAGE,
    DEFAULT_COST_THRESHOLD,
    DEFAULT_DOCUMENT_COUNT_THRESHOLD,
    DEFAULT_DUPLICATE_COUNT,
    DEFAULT_LOOP_ITERATION,
    DEFAULT_MAX_DUPLICATES,
    DEFAULT_NOTIFY_ON_DUPLICATION,
    DEFAULT_TASK_COUNT_THRESHOLD,
    DEFAULT_TIME_ELAPSED_MS,
)
from autodup.triggers.types import DuplicationConfig, Trigger, TriggerType, parse_trigger_type

_DEFAULT_TEMPLATE = DuplicationConfig(
    enabled=False,
    triggers=[],
    max_duplicates=DEFAULT_MAX_DUPLICATES,
    auto_create_group=DEFAULT_AUTO_CREATE_GROUP,
    notify_on_duplication=DEFAULT_NOTIFY_ON_DUPLICATION,
)

DEFAULT_THRESHOLDS = {
    TriggerType.TASK_COUNT: DEFAULT_TASK_COUNT_THRESHOLD,
    TriggerType.TIME_ELAPSED: DEFAULT_TIME_ELAPSED_MS,
    TriggerType.CONTEXT_THRESHOLD: DEFAULT_CONTEXT_PERCENTAGE,
    TriggerType.COST_THRESHOLD: DEFAULT_COST_THRESHOLD,
    TriggerType.DOCUMENT_COUNT: DEFAULT_DOCUMENT_COUNT_THRESHOLD,
    TriggerType.LOOP_ITERATION: DEFAULT_LOOP_ITERATION,
    TriggerType.MANUAL: None,
}


def default_config() -> DuplicationConfig:
    """Return an independent copy of the default config."""
    return copy.deepcopy(_DEFAULT_TEMPLATE)


def new_trigger_id() -> str:
    return f"trigger-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def create_default_trigger(trigger_type: str | TriggerType) -> Trigger:
    """Create a trigger of the given type with sensible defaults.

    Raises ConfigError for unknown types.
    """
    trigger_type = parse_trigger_type(trigger_type)
    return Trigger(
        id=new_trigger_id(),
        type=trigger_type,
        enabled=True,
        threshold=DEFAULT_THRESHOLDS[trigger_type],
        duplicate_count=DEFAULT_DUPLICATE_COUNT,
        preserve_context=True,
        preserve_auto_run_docs=True,
        group_duplicates=True,
        distribute_tasks=False,
        sequential_execution=False,
    )
