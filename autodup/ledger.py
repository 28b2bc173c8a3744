"""Duplication history ledger.

Receipts from the engine and the config store are appended to a JSONL file,
one per line, oldest first. The readers answer the questions a supervisor
asks after the fact: what happened to this parent, what failed, and has
anything been edited since it was written.
"""
import fcntl
import json
from pathlib import Path
from typing import Iterator

from .constants import (
    DEFAULT_LEDGER_PATH,
    RECEIPT_DUPLICATION,
    RECEIPT_ELIGIBILITY_RESET,
    RECEIPT_TYPES,
)
from .core.receipt import verify_receipt


def _parents_of(receipt: dict) -> list[str]:
    """Parent session ids a receipt is about (reset receipts carry several)."""
    if receipt.get("parent_session_id"):
        return [receipt["parent_session_id"]]
    return list(receipt.get("parent_session_ids") or [])


class LedgerStore:
    """Append-only JSONL history of duplication receipts.

    Attributes:
        path: Path to the JSONL file
    """

    def __init__(self, path: str = DEFAULT_LEDGER_PATH):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()

    def append(self, receipt: dict) -> str:
        """Append one receipt under an exclusive lock. Returns its payload_hash."""
        line = json.dumps(receipt, sort_keys=True, default=str) + "\n"

        with open(self.path, "a") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.write(line)
                f.flush()
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

        return receipt.get("payload_hash", "")

    def _iter(self) -> Iterator[dict]:
        with open(self.path, "r") as f:
            for line in f:
                line = line.strip()
                if line:
                    yield json.loads(line)

    def read_all(self) -> list[dict]:
        return list(self._iter())

    def by_type(self, *receipt_types: str) -> list[dict]:
        """Receipts of the given types, oldest first. No types means all known types."""
        wanted = set(receipt_types or RECEIPT_TYPES)
        return [r for r in self._iter() if r.get("receipt_type") in wanted]

    def for_parent(self, parent_id: str) -> list[dict]:
        """Every receipt that mentions parent_id, including bulk resets."""
        return [r for r in self._iter() if parent_id in _parents_of(r)]

    def history(
        self,
        limit: int = 20,
        receipt_types: tuple[str, ...] = (),
        parent_id: str | None = None,
    ) -> list[dict]:
        """Most recent matching receipts, newest first."""
        events = self.by_type(*receipt_types)
        if parent_id is not None:
            events = [r for r in events if parent_id in _parents_of(r)]
        return events[-limit:][::-1] if limit > 0 else []

    def latest_instance(self, parent_id: str) -> dict | None:
        """The parent's last successful duplication, unless a later reset cleared it."""
        latest = None
        for receipt in self.for_parent(parent_id):
            if receipt["receipt_type"] == RECEIPT_DUPLICATION:
                latest = receipt
            elif receipt["receipt_type"] == RECEIPT_ELIGIBILITY_RESET:
                latest = None
        return latest

    def tampered(self) -> list[dict]:
        """Receipts whose payload no longer matches their payload_hash."""
        return [r for r in self._iter() if not verify_receipt(r)]
