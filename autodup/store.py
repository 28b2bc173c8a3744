"""Persisted duplication config store, keyed by session id.

Backed by a single JSON file of the form {"configs": {session_id: config}}.
Writes are read-modify-write under an exclusive file lock.

Every operation returns a StoreResult and never raises. A session without a
stored config reads as a fresh deep copy of the default template.
"""
import fcntl
import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .config.defaults import create_default_trigger, default_config
from .constants import DEFAULT_STORE_PATH, DEFAULT_TENANT_ID, RECEIPT_CONFIG_STORE_ERROR
from .core.receipt import emit_receipt
from .triggers.types import DuplicationConfig, Trigger, TriggerType

logger = logging.getLogger("autodup.store")

# Fields a trigger update may not change
_IMMUTABLE_TRIGGER_FIELDS = ("id",)


@dataclass
class StoreResult:
    """Outcome of a store operation."""
    success: bool
    config: DuplicationConfig | None = None
    configs: dict[str, DuplicationConfig] | None = None
    trigger: Trigger | None = None
    error: str | None = None


class ConfigStore:
    """Per-session duplication configs persisted to a JSON file.

    Attributes:
        path: Path to the JSON file
    """

    def __init__(self, path: str = DEFAULT_STORE_PATH, tenant_id: str = DEFAULT_TENANT_ID):
        self.path = Path(path)
        self.tenant_id = tenant_id
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text(json.dumps({"configs": {}}))
        self._lock = threading.Lock()

    @contextmanager
    def _locked(self, write: bool) -> Iterator[dict]:
        """Yield the raw configs mapping; persist it on exit when write=True."""
        with self._lock, open(self.path, "r+") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                text = f.read()
                data = json.loads(text) if text.strip() else {}
                configs = data.get("configs", {})
                yield configs
                if write:
                    f.seek(0)
                    f.truncate()
                    f.write(json.dumps({"configs": configs}, indent=2, sort_keys=True))
                    f.flush()
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    def _failure(self, operation: str, error: Exception) -> StoreResult:
        message = str(error) or type(error).__name__
        logger.error("config store %s failed: %s", operation, message)
        emit_receipt(RECEIPT_CONFIG_STORE_ERROR, {
            "path": str(self.path),
            "operation": operation,
            "error": message,
        }, self.tenant_id)
        return StoreResult(success=False, error=message)

    def get_config(self, session_id: str) -> StoreResult:
        try:
            with self._locked(write=False) as configs:
                raw = configs.get(session_id)
            config = DuplicationConfig.from_dict(raw) if raw is not None else default_config()
            return StoreResult(success=True, config=config)
        except Exception as e:
            return self._failure("get_config", e)

    def set_config(self, session_id: str, config: DuplicationConfig) -> StoreResult:
        try:
            # re-parse so fields mutated after construction are validated too
            data = DuplicationConfig.from_dict(config.to_dict()).to_dict()
            with self._locked(write=True) as configs:
                configs[session_id] = data
            return StoreResult(success=True)
        except Exception as e:
            return self._failure("set_config", e)

    def add_trigger(self, session_id: str, trigger: Trigger) -> StoreResult:
        """Append a trigger, starting from the default config if none is stored."""
        try:
            trigger = Trigger.from_dict(trigger.to_dict())
            with self._locked(write=True) as configs:
                raw = configs.get(session_id)
                config = DuplicationConfig.from_dict(raw) if raw is not None else default_config()
                if config.find_trigger(trigger.id) is not None:
                    return StoreResult(success=False, error=f"trigger {trigger.id} already exists")
                config.triggers.append(trigger)
                configs[session_id] = config.to_dict()
            return StoreResult(success=True, config=config)
        except Exception as e:
            return self._failure("add_trigger", e)

    def update_trigger(self, session_id: str, trigger_id: str, updates: dict) -> StoreResult:
        """Merge updates (serialized trigger fields) into an existing trigger."""
        try:
            with self._locked(write=True) as configs:
                raw = configs.get(session_id)
                if raw is None:
                    return StoreResult(success=False, error="no configuration found for session")

                config = DuplicationConfig.from_dict(raw)
                for index, trigger in enumerate(config.triggers):
                    if trigger.id == trigger_id:
                        break
                else:
                    return StoreResult(success=False, error="trigger not found")

                merged = trigger.to_dict()
                merged.update({
                    k: v for k, v in updates.items() if k not in _IMMUTABLE_TRIGGER_FIELDS
                })
                updated = Trigger.from_dict(merged)
                config.triggers[index] = updated
                configs[session_id] = config.to_dict()
            return StoreResult(success=True, config=config, trigger=updated)
        except Exception as e:
            return self._failure("update_trigger", e)

    def remove_trigger(self, session_id: str, trigger_id: str) -> StoreResult:
        try:
            with self._locked(write=True) as configs:
                raw = configs.get(session_id)
                if raw is None:
                    return StoreResult(success=False, error="no configuration found for session")

                config = DuplicationConfig.from_dict(raw)
                config.triggers = [t for t in config.triggers if t.id != trigger_id]
                configs[session_id] = config.to_dict()
            return StoreResult(success=True, config=config)
        except Exception as e:
            return self._failure("remove_trigger", e)

    def delete_config(self, session_id: str) -> StoreResult:
        try:
            with self._locked(write=True) as configs:
                configs.pop(session_id, None)
            return StoreResult(success=True)
        except Exception as e:
            return self._failure("delete_config", e)

    def list_all_configs(self) -> StoreResult:
        try:
            with self._locked(write=False) as configs:
                parsed = {sid: DuplicationConfig.from_dict(raw) for sid, raw in configs.items()}
            return StoreResult(success=True, configs=parsed)
        except Exception as e:
            return self._failure("list_all_configs", e)

    def clear_all(self) -> StoreResult:
        try:
            with self._locked(write=True) as configs:
                configs.clear()
            return StoreResult(success=True)
        except Exception as e:
            return self._failure("clear_all", e)

    def create_default_trigger(self, trigger_type: str | TriggerType) -> StoreResult:
        try:
            return StoreResult(success=True, trigger=create_default_trigger(trigger_type))
        except Exception as e:
            return self._failure("create_default_trigger", e)
