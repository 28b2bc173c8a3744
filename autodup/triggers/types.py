"""Trigger and configuration types.

A trigger carries a single threshold whose meaning is fixed by its type:

- TASK_COUNT: completed tasks across all documents
- TIME_ELAPSED: accumulated batch time in milliseconds
- CONTEXT_THRESHOLD: context window usage, 0-100 percent
- COST_THRESHOLD: accumulated cost in USD
- DOCUMENT_COUNT: documents in the batch
- LOOP_ITERATION: current loop iteration
- MANUAL: no threshold, only fired by an explicit caller

Serialized triggers carry exactly one type-specific threshold key
(see THRESHOLD_KEYS).
"""

from dataclasses import dataclass, field
from enum import Enum

from autodup.constants import (
    DEFAULT_AUTO_CREATE_GROUP,
    DEFAULT_DUPLICATE_COUNT,
    DEFAULT_NOTIFY_ON_DUPLICATION,
)


class ConfigError(ValueError):
    """Raised when a configuration payload cannot be parsed."""
    pass


class TriggerType(Enum):
    """Kinds of duplication triggers."""
    TASK_COUNT = "task_count"
    TIME_ELAPSED = "time_elapsed"
    CONTEXT_THRESHOLD = "context_threshold"
    COST_THRESHOLD = "cost_threshold"
    DOCUMENT_COUNT = "document_count"
    LOOP_ITERATION = "loop_iteration"
    MANUAL = "manual"


# Serialized key holding the threshold for each trigger type
THRESHOLD_KEYS = {
    TriggerType.TASK_COUNT: "task_count_threshold",
    TriggerType.TIME_ELAPSED: "time_elapsed_ms",
    TriggerType.CONTEXT_THRESHOLD: "context_percentage",
    TriggerType.COST_THRESHOLD: "cost_threshold",
    TriggerType.DOCUMENT_COUNT: "document_count_threshold",
    TriggerType.LOOP_ITERATION: "loop_iteration",
}


def parse_trigger_type(value: "str | TriggerType") -> TriggerType:
    """Coerce a string into a TriggerType, raising ConfigError if unknown."""
    if isinstance(value, TriggerType):
        return value
    try:
        return TriggerType(value)
    except ValueError:
        valid = ", ".join(t.value for t in TriggerType)
        raise ConfigError(f"unknown trigger type {value!r} (expected one of: {valid})")


@dataclass
class Trigger:
    """A single duplication trigger."""
    id: str
    type: TriggerType
    enabled: bool = True
    threshold: int | float | None = None

    # Duplication behavior
    duplicate_count: int = DEFAULT_DUPLICATE_COUNT
    preserve_context: bool = True
    preserve_auto_run_docs: bool = True
    group_duplicates: bool = True
    custom_group_name: str | None = None

    # Advanced options
    distribute_tasks: bool = False
    sequential_execution: bool = False
    custom_prompt_template: str | None = None

    def __post_init__(self):
        self.type = parse_trigger_type(self.type)
        if self.duplicate_count < 1:
            raise ConfigError(
                f"trigger {self.id!r}: duplicate_count must be >= 1, got {self.duplicate_count}"
            )
        if self.type == TriggerType.MANUAL:
            self.threshold = None
        elif self.threshold is not None:
            self._check_threshold()

    def _check_threshold(self) -> None:
        key = THRESHOLD_KEYS[self.type]
        value = self.threshold
        # bool is an int subclass but never a meaningful threshold
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"trigger {self.id!r}: {key} must be a number, got {value!r}")
        if value < 0:
            raise ConfigError(f"trigger {self.id!r}: {key} must be >= 0, got {value}")
        if self.type == TriggerType.CONTEXT_THRESHOLD and value > 100:
            raise ConfigError(f"trigger {self.id!r}: {key} must be within 0-100, got {value}")

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "type": self.type.value,
            "enabled": self.enabled,
            "duplicate_count": self.duplicate_count,
            "preserve_context": self.preserve_context,
            "preserve_auto_run_docs": self.preserve_auto_run_docs,
            "group_duplicates": self.group_duplicates,
            "distribute_tasks": self.distribute_tasks,
            "sequential_execution": self.sequential_execution,
        }
        key = THRESHOLD_KEYS.get(self.type)
        if key is not None and self.threshold is not None:
            data[key] = self.threshold
        if self.custom_group_name is not None:
            data["custom_group_name"] = self.custom_group_name
        if self.custom_prompt_template is not None:
            data["custom_prompt_template"] = self.custom_prompt_template
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Trigger":
        """Build a Trigger from its serialized form.

        Only the threshold key matching the trigger type is read; keys that
        belong to other types are ignored.
        """
        if "id" not in data or "type" not in data:
            raise ConfigError("trigger requires 'id' and 'type'")

        trigger_type = parse_trigger_type(data["type"])
        key = THRESHOLD_KEYS.get(trigger_type)

        return cls(
            id=str(data["id"]),
            type=trigger_type,
            enabled=bool(data.get("enabled", True)),
            threshold=data.get(key) if key else None,
            duplicate_count=int(data.get("duplicate_count", DEFAULT_DUPLICATE_COUNT)),
            preserve_context=bool(data.get("preserve_context", True)),
            preserve_auto_run_docs=bool(data.get("preserve_auto_run_docs", True)),
            group_duplicates=bool(data.get("group_duplicates", True)),
            custom_group_name=data.get("custom_group_name"),
            distribute_tasks=bool(data.get("distribute_tasks", False)),
            sequential_execution=bool(data.get("sequential_execution", False)),
            custom_prompt_template=data.get("custom_prompt_template"),
        )


@dataclass
class DuplicationConfig:
    """Per-session duplication configuration.

    Trigger order is significant: the evaluator stops at the first enabled
    trigger whose threshold is met.
    """
    enabled: bool = False
    triggers: list[Trigger] = field(default_factory=list)
    max_duplicates: int | None = None
    auto_create_group: bool = DEFAULT_AUTO_CREATE_GROUP
    notify_on_duplication: bool = DEFAULT_NOTIFY_ON_DUPLICATION

    def find_trigger(self, trigger_id: str) -> Trigger | None:
        for trigger in self.triggers:
            if trigger.id == trigger_id:
                return trigger
        return None

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "triggers": [t.to_dict() for t in self.triggers],
            "max_duplicates": self.max_duplicates,
            "auto_create_group": self.auto_create_group,
            "notify_on_duplication": self.notify_on_duplication,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DuplicationConfig":
        max_duplicates = data.get("max_duplicates")
        return cls(
            enabled=bool(data.get("enabled", False)),
            triggers=[Trigger.from_dict(t) for t in data.get("triggers", [])],
            max_duplicates=int(max_duplicates) if max_duplicates is not None else None,
            auto_create_group=bool(data.get("auto_create_group", DEFAULT_AUTO_CREATE_GROUP)),
            notify_on_duplication=bool(
                data.get("notify_on_duplication", DEFAULT_NOTIFY_ON_DUPLICATION)
            ),
        )
