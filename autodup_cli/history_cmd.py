"""History command: duplication receipts from the ledger."""
import sys

import click

from autodup.constants import RECEIPT_TYPES
from autodup.ledger import LedgerStore

from .output import error_box, success_box, table


def _details(receipt: dict) -> str:
    rtype = receipt.get("receipt_type")
    if rtype == "duplication":
        return f"{len(receipt.get('child_session_ids', []))} clone(s) via {receipt.get('trigger_type')}"
    if rtype == "eligibility_reset":
        return f"reset {len(receipt.get('parent_session_ids', []))} session(s)"
    return str(receipt.get("error") or receipt.get("reason") or "")


def _parent_label(receipt: dict) -> str:
    if receipt.get("parent_session_id"):
        return str(receipt["parent_session_id"])[:12]
    return ",".join(receipt.get("parent_session_ids") or [])[:12] or "-"


@click.command()
@click.option('--limit', default=20, type=click.IntRange(min=1), help='Number of events to show')
@click.option('--type', 'event_types', multiple=True, type=click.Choice(RECEIPT_TYPES),
              help='Filter by event type (repeatable)')
@click.option('--parent', 'parent_id', help='Only events for this parent session')
@click.option('--verify', is_flag=True, help='Check every receipt against its payload_hash')
@click.pass_context
def history(ctx: click.Context, limit: int, event_types: tuple[str, ...],
            parent_id: str | None, verify: bool):
    """Show recent duplication events."""
    if not ctx.obj.ledger_path:
        error_box("History: ERROR", "no ledger configured", "autodup --ledger PATH history")
        sys.exit(1)

    try:
        ledger = LedgerStore(ctx.obj.ledger_path)

        if verify:
            bad = ledger.tampered()
            if bad:
                error_box("History: TAMPERED", f"{len(bad)} receipt(s) fail verification")
                sys.exit(1)
            success_box("History: VERIFIED", [
                ("Ledger", ctx.obj.ledger_path),
                ("Receipts", str(len(ledger.read_all()))),
            ])
            sys.exit(0)

        events = ledger.history(limit, event_types, parent_id)
        if not events:
            click.echo("No duplication events recorded.")
            sys.exit(0)

        rows = [[e["receipt_type"], _parent_label(e), _details(e), e["ts"]] for e in events]
        table(["Type", "Parent", "Details", "Timestamp"], rows)

        if parent_id is not None:
            latest = ledger.latest_instance(parent_id)
            click.echo(f"Active instance: {latest['instance_id'] if latest else 'none'}")
        sys.exit(0)

    except Exception as e:
        error_box("History: ERROR", str(e))
        sys.exit(2)
