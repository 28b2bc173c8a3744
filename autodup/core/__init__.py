"""Core subpackage for AutoDup receipt primitives."""
from .receipt import StopRule, configure_receipts, dual_hash, emit_receipt, verify_receipt

__all__ = [
    "dual_hash",
    "emit_receipt",
    "verify_receipt",
    "configure_receipts",
    "StopRule",
]
