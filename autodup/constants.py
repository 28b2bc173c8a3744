"""AutoDup constants and defaults.

All magic numbers live here. No exceptions.
"""

# Evaluation reasons
REASON_DISABLED = "duplication disabled"
REASON_NO_TRIGGERS = "no triggers configured"
REASON_NOT_ACTIVATED = "no triggers activated"
REASON_ALREADY_DUPLICATED = "session already duplicated"
REASON_CAP_REACHED = "maximum duplicates limit reached"
REASON_MANUAL = "manual trigger invoked"
REASON_NOT_MANUAL = "not a manual trigger"
REASON_TRIGGER_DISABLED = "trigger disabled"

# Default config template
DEFAULT_MAX_DUPLICATES = 5
DEFAULT_AUTO_CREATE_GROUP = True
DEFAULT_NOTIFY_ON_DUPLICATION = True

# Default trigger thresholds
DEFAULT_TASK_COUNT_THRESHOLD = 10
DEFAULT_TIME_ELAPSED_MS = 30 * 60 * 1000  # 30 minutes
DEFAULT_CONTEXT_PERCENTAGE = 80
DEFAULT_COST_THRESHOLD = 5.0  # USD
DEFAULT_DOCUMENT_COUNT_THRESHOLD = 5
DEFAULT_LOOP_ITERATION = 3
DEFAULT_DUPLICATE_COUNT = 1

# Clone naming and grouping
GROUP_NAME_PREFIX = "Auto Run - "
GROUP_EMOJI = "\U0001F504"  # counterclockwise arrows
DUPLICATE_NAME_FORMAT = "{name} (Duplicate {index})"

# Storage
DEFAULT_STORE_PATH = "autorun-duplication.json"
DEFAULT_LEDGER_PATH = "duplication_receipts.jsonl"
DEFAULT_TENANT_ID = "default"
ENV_PREFIX = "AUTODUP_"

# Receipt types written by the engine and config store
RECEIPT_DUPLICATION = "duplication"
RECEIPT_DUPLICATION_FAILED = "duplication_failed"
RECEIPT_DUPLICATION_CHECK = "duplication_check"
RECEIPT_ELIGIBILITY_RESET = "eligibility_reset"
RECEIPT_CONFIG_STORE_ERROR = "config_store_error"
RECEIPT_TYPES = (
    RECEIPT_DUPLICATION,
    RECEIPT_DUPLICATION_FAILED,
    RECEIPT_DUPLICATION_CHECK,
    RECEIPT_ELIGIBILITY_RESET,
    RECEIPT_CONFIG_STORE_ERROR,
)
