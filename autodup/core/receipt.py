"""Receipts: the JSON record of every duplication event.

A receipt is a flat dict:

    {"receipt_type": ..., "ts": ..., "payload_hash": ..., "tenant_id": ..., **payload}

payload_hash is a SHA256:BLAKE3 dual hash of the tenant id plus payload, so a
receipt read back from the ledger can be re-hashed and checked with
verify_receipt().
"""
import hashlib
import json
from datetime import datetime, timezone

import blake3

from autodup.constants import DEFAULT_TENANT_ID, RECEIPT_TYPES

# Fields added around the payload; everything else is hashed
ENVELOPE_FIELDS = ("receipt_type", "ts", "payload_hash")

# Flipped by configure_receipts(); receipts are still returned when muted.
_ECHO_RECEIPTS = True


class StopRule(Exception):
    """Raised when an engine invariant would be broken. Never catch silently."""
    pass


def configure_receipts(echo: bool) -> None:
    """Enable or disable printing receipts to stdout."""
    global _ECHO_RECEIPTS
    _ECHO_RECEIPTS = echo


def dual_hash(data: bytes | str | dict) -> str:
    """Return 'sha256hex:blake3hex' for bytes, text, or a dict (key order ignored)."""
    if isinstance(data, dict):
        data = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    if isinstance(data, str):
        data = data.encode("utf-8")

    return f"{hashlib.sha256(data).hexdigest()}:{blake3.blake3(data).hexdigest()}"


def emit_receipt(receipt_type: str, data: dict, tenant_id: str = DEFAULT_TENANT_ID) -> dict:
    """Build a receipt and print it to stdout unless receipts are muted.

    Args:
        receipt_type: One of RECEIPT_TYPES
        data: Event payload; a "tenant_id" key overrides the argument
        tenant_id: Tenant the event belongs to

    Returns:
        The complete receipt dict

    Raises:
        StopRule: receipt_type is not a known duplication event
    """
    if receipt_type not in RECEIPT_TYPES:
        raise StopRule(f"unknown receipt type {receipt_type!r}")

    payload = {"tenant_id": tenant_id, **data}
    receipt = {
        "receipt_type": receipt_type,
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "payload_hash": dual_hash(payload),
        **payload,
    }

    if _ECHO_RECEIPTS:
        print(json.dumps(receipt, sort_keys=True, default=str), flush=True)

    return receipt


def verify_receipt(receipt: dict) -> bool:
    """True if the receipt's payload still matches its payload_hash."""
    payload = {k: v for k, v in receipt.items() if k not in ENVELOPE_FIELDS}
    return receipt.get("payload_hash") == dual_hash(payload)
