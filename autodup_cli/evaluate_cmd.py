"""Evaluation commands: evaluate, distribute."""
import sys

import click

from autodup.distribute import distribute_tasks
from autodup.metrics import MetricsSnapshot
from autodup.store import ConfigStore
from autodup.triggers.evaluate import evaluate_triggers

from .output import error_box, print_json, success_box


@click.command()
@click.argument('session_id')
@click.option('--task-count', type=int, help='Completed tasks')
@click.option('--elapsed-ms', type=int, help='Elapsed batch time in ms')
@click.option('--context', 'context_percentage', type=float, help='Context usage percent')
@click.option('--cost', 'current_cost', type=float, help='Accumulated cost (USD)')
@click.option('--documents', 'document_count', type=int, help='Document count')
@click.option('--loop-iteration', 'loop_iteration', type=int, help='Loop iteration')
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON')
@click.pass_context
def evaluate(ctx: click.Context, session_id: str, task_count: int | None, elapsed_ms: int | None,
             context_percentage: float | None, current_cost: float | None,
             document_count: int | None, loop_iteration: int | None, as_json: bool):
    """Evaluate a session's stored triggers against the given metrics."""
    try:
        result = ConfigStore(ctx.obj.store_path, ctx.obj.tenant_id).get_config(session_id)
        if not result.success:
            error_box("Evaluate: ERROR", result.error or "unknown error")
            sys.exit(1)

        metrics = MetricsSnapshot(
            task_count=task_count,
            elapsed_time_ms=elapsed_ms,
            context_percentage=context_percentage,
            current_cost=current_cost,
            document_count=document_count,
            loop_iteration=loop_iteration,
        )
        evaluation = evaluate_triggers(result.config, metrics)

        if as_json:
            print_json({
                "should_duplicate": evaluation.should_duplicate,
                "triggered_by": evaluation.triggered_by.to_dict() if evaluation.triggered_by else None,
                "reason": evaluation.reason,
                "metrics": evaluation.metrics,
            })
            sys.exit(0)

        trigger = evaluation.triggered_by
        success_box("Evaluate: " + ("DUPLICATE" if evaluation.should_duplicate else "HOLD"), [
            ("Session", session_id),
            ("Reason", evaluation.reason),
            ("Trigger", trigger.id if trigger else "-"),
            ("Clones", str(trigger.duplicate_count) if trigger else "0"),
        ], f"autodup config show {session_id}")
        sys.exit(0)

    except Exception as e:
        error_box("Evaluate: ERROR", str(e))
        sys.exit(2)


@click.command()
@click.argument('duplicate_count', type=int)
@click.argument('tasks', nargs=-1)
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON')
def distribute(duplicate_count: int, tasks: tuple[str, ...], as_json: bool):
    """Split TASKS into DUPLICATE_COUNT contiguous buckets."""
    buckets = distribute_tasks(list(tasks), duplicate_count)

    if as_json:
        print_json(buckets)
        sys.exit(0)

    rows = [(f"Clone {i}", ", ".join(bucket)) for i, bucket in enumerate(buckets, start=1)]
    success_box(f"Distribution ({len(buckets)} buckets)", rows or [("Buckets", "none")])
    sys.exit(0)
