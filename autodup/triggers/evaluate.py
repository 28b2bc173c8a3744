"""Trigger Evaluator - decide whether a session should be duplicated.

Pure function of (config, metrics). No receipts, no I/O, safe to call from
any thread.

Rules:
- Disabled config never duplicates
- Triggers are checked in declared order; the first enabled trigger whose
  metric is >= its threshold wins
- A missing metric or threshold reads as "not triggered", never an error
- MANUAL triggers never fire here (see DuplicationEngine.manual_evaluation)
"""

from dataclasses import dataclass, field
from typing import Callable

from autodup.constants import REASON_DISABLED, REASON_NO_TRIGGERS, REASON_NOT_ACTIVATED
from autodup.metrics import MetricsSnapshot

from .types import DuplicationConfig, Trigger, TriggerType


@dataclass
class TriggerEvaluation:
    """Outcome of a duplication check."""
    should_duplicate: bool
    triggered_by: Trigger | None
    reason: str
    metrics: dict = field(default_factory=dict)


def _seconds(ms: float) -> int:
    return round(ms / 1000)


# TriggerType -> (snapshot field, reason formatter(current, threshold))
_RULES: dict[TriggerType, tuple[str, Callable[[float, float], str]]] = {
    TriggerType.TASK_COUNT: (
        "task_count",
        lambda cur, thr: f"task count ({cur}) reached threshold ({thr})",
    ),
    TriggerType.TIME_ELAPSED: (
        "elapsed_time_ms",
        lambda cur, thr: (
            f"elapsed time ({_seconds(cur)}s) reached threshold ({_seconds(thr)}s)"
        ),
    ),
    TriggerType.CONTEXT_THRESHOLD: (
        "context_percentage",
        lambda cur, thr: f"context usage ({cur}%) reached threshold ({thr}%)",
    ),
    TriggerType.COST_THRESHOLD: (
        "current_cost",
        lambda cur, thr: f"cost (${cur:.4f}) reached threshold (${thr:.4f})",
    ),
    TriggerType.DOCUMENT_COUNT: (
        "document_count",
        lambda cur, thr: f"document count ({cur}) reached threshold ({thr})",
    ),
    TriggerType.LOOP_ITERATION: (
        "loop_iteration",
        lambda cur, thr: f"loop iteration ({cur}) reached threshold ({thr})",
    ),
}

# Every automatic trigger type needs a rule
assert set(_RULES) == set(TriggerType) - {TriggerType.MANUAL}, "unhandled trigger type"


def check_trigger(trigger: Trigger, metrics: MetricsSnapshot) -> str | None:
    """Return the firing reason if the trigger's threshold is met, else None."""
    if not trigger.enabled or trigger.type == TriggerType.MANUAL:
        return None

    metric_name, describe = _RULES[trigger.type]
    current = getattr(metrics, metric_name)

    if current is None or trigger.threshold is None:
        return None
    if current >= trigger.threshold:
        return describe(current, trigger.threshold)
    return None


def evaluate_triggers(
    config: DuplicationConfig,
    metrics: MetricsSnapshot,
) -> TriggerEvaluation:
    """Evaluate a config's triggers against a metrics snapshot.

    Args:
        config: Duplication configuration (read only)
        metrics: Current metrics snapshot

    Returns:
        TriggerEvaluation naming the first trigger that fired, if any
    """
    echoed = metrics.to_dict()

    if not config.enabled:
        return TriggerEvaluation(False, None, REASON_DISABLED, echoed)

    if not config.triggers:
        return TriggerEvaluation(False, None, REASON_NO_TRIGGERS, echoed)

    for trigger in config.triggers:
        reason = check_trigger(trigger, metrics)
        if reason is not None:
            return TriggerEvaluation(True, trigger, reason, echoed)

    return TriggerEvaluation(False, None, REASON_NOT_ACTIVATED, echoed)
