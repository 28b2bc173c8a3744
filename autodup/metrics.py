"""Metrics snapshot fed to the trigger evaluator."""

from dataclasses import asdict, dataclass

from .sessions import BatchRunState, Session


@dataclass(frozen=True)
class MetricsSnapshot:
    """Read-only metrics bundle. Any field may be None when not applicable."""
    task_count: int | None = None
    elapsed_time_ms: int | None = None
    context_percentage: float | None = None
    current_cost: float | None = None
    document_count: int | None = None
    loop_iteration: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


# Canonical field names, in declaration order
METRIC_FIELDS = tuple(MetricsSnapshot.__dataclass_fields__)


def collect_metrics(batch_state: BatchRunState | None, session: Session) -> MetricsSnapshot:
    """Derive a snapshot from a session and its live batch counters.

    Missing counters stay None so the matching triggers read as not fired.
    """
    cost = session.usage_stats.total_cost_usd if session.usage_stats else None

    if batch_state is None:
        return MetricsSnapshot(
            context_percentage=session.context_usage,
            current_cost=cost,
        )

    return MetricsSnapshot(
        task_count=batch_state.completed_tasks_across_all_docs,
        elapsed_time_ms=batch_state.accumulated_elapsed_ms,
        context_percentage=session.context_usage,
        current_cost=cost,
        document_count=len(batch_state.documents),
        loop_iteration=batch_state.loop_iteration,
    )
