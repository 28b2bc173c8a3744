"""AutoDup: Auto Run session duplication engine.

Public API:
- Engine: DuplicationEngine, DuplicateSessionParams, DuplicateSessionResult
- Triggers: Trigger, TriggerType, DuplicationConfig, evaluate_triggers
- Registry: InstanceRegistry, DuplicationInstance
- Tasks: distribute_tasks
- Store: ConfigStore, StoreResult
- Ledger: LedgerStore
- Core: emit_receipt, verify_receipt, dual_hash, StopRule
"""
from .config import EngineSettings, create_default_trigger, default_config
from .core import StopRule, configure_receipts, dual_hash, emit_receipt, verify_receipt
from .distribute import distribute_tasks
from .engine import (
    DuplicateSessionParams,
    DuplicateSessionResult,
    DuplicationEngine,
    build_child_spec,
)
from .ledger import LedgerStore
from .metrics import METRIC_FIELDS, MetricsSnapshot, collect_metrics
from .registry import DuplicationInstance, InstanceRegistry, RegistryMetrics
from .sessions import AiTab, BatchRunState, ChildSessionSpec, Group, Session, UsageStats
from .store import ConfigStore, StoreResult
from .triggers import (
    ConfigError,
    DuplicationConfig,
    Trigger,
    TriggerEvaluation,
    TriggerType,
    evaluate_triggers,
)

__version__ = "1.0.0"

__all__ = [
    # Engine
    "DuplicationEngine",
    "DuplicateSessionParams",
    "DuplicateSessionResult",
    "build_child_spec",
    # Triggers
    "ConfigError",
    "DuplicationConfig",
    "Trigger",
    "TriggerEvaluation",
    "TriggerType",
    "evaluate_triggers",
    # Metrics
    "METRIC_FIELDS",
    "MetricsSnapshot",
    "collect_metrics",
    # Registry
    "DuplicationInstance",
    "InstanceRegistry",
    "RegistryMetrics",
    # Sessions
    "AiTab",
    "BatchRunState",
    "ChildSessionSpec",
    "Group",
    "Session",
    "UsageStats",
    # Tasks
    "distribute_tasks",
    # Persistence and config
    "ConfigStore",
    "StoreResult",
    "LedgerStore",
    "EngineSettings",
    "create_default_trigger",
    "default_config",
    # Core
    "StopRule",
    "configure_receipts",
    "dual_hash",
    "emit_receipt",
    "verify_receipt",
]
