"""Engine settings.

Configuration for the AutoDup engine and CLI. All settings can be
overridden via environment variables with the AUTODUP_ prefix.
"""
import logging
import os
from dataclasses import dataclass

from autodup.constants import DEFAULT_STORE_PATH, DEFAULT_TENANT_ID, ENV_PREFIX

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class EngineSettings:
    """Engine and CLI settings."""

    # Persistence
    store_path: str = DEFAULT_STORE_PATH
    ledger_path: str | None = None

    # Receipts and logging
    emit_receipts: bool = True
    tenant_id: str = DEFAULT_TENANT_ID
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Load settings from environment variables."""
        settings = cls()

        if f"{ENV_PREFIX}STORE_PATH" in os.environ:
            settings.store_path = os.environ[f"{ENV_PREFIX}STORE_PATH"]
        if f"{ENV_PREFIX}LEDGER_PATH" in os.environ:
            settings.ledger_path = os.environ[f"{ENV_PREFIX}LEDGER_PATH"] or None
        if f"{ENV_PREFIX}EMIT_RECEIPTS" in os.environ:
            settings.emit_receipts = os.environ[f"{ENV_PREFIX}EMIT_RECEIPTS"].lower() == "true"
        if f"{ENV_PREFIX}TENANT_ID" in os.environ:
            settings.tenant_id = os.environ[f"{ENV_PREFIX}TENANT_ID"]
        if f"{ENV_PREFIX}LOG_LEVEL" in os.environ:
            settings.log_level = os.environ[f"{ENV_PREFIX}LOG_LEVEL"].upper()

        return settings

    def validate(self) -> list[str]:
        """Validate settings. Returns list of errors."""
        errors = []

        if not self.store_path:
            errors.append("store_path must not be empty")

        if not self.tenant_id:
            errors.append("tenant_id must not be empty")

        if self.log_level not in _LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level}")

        return errors

    def configure_logging(self) -> None:
        """Apply log_level to the autodup logger hierarchy."""
        logging.basicConfig(
            level=self.log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        logging.getLogger("autodup").setLevel(self.log_level)
