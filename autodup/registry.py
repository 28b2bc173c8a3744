"""Instance Registry - track duplication instances, enforce the clone cap.

Maps a parent session id to at most one DuplicationInstance. The total
number of clones is always recomputed from the live table (sum of child ids
across every instance), never cached, so a reset is reflected in the very
next check.

Reads return snapshots taken under the registry lock; callers never see a
partially-written instance.
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Iterable

from autodup.core.receipt import StopRule
from autodup.triggers.types import TriggerType


@dataclass(frozen=True)
class DuplicationInstance:
    """Record of one successful duplication."""
    id: str
    parent_session_id: str
    child_session_ids: tuple[str, ...]
    triggered_by: TriggerType
    created_at: float = field(default_factory=time.time)
    group_id: str | None = None

    @classmethod
    def create(
        cls,
        parent_session_id: str,
        child_session_ids: Iterable[str],
        triggered_by: TriggerType,
        group_id: str | None = None,
    ) -> "DuplicationInstance":
        return cls(
            id=str(uuid.uuid4()),
            parent_session_id=parent_session_id,
            child_session_ids=tuple(child_session_ids),
            triggered_by=triggered_by,
            created_at=time.time(),
            group_id=group_id,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "parent_session_id": self.parent_session_id,
            "child_session_ids": list(self.child_session_ids),
            "triggered_by": self.triggered_by.value,
            "created_at": self.created_at,
            "group_id": self.group_id,
        }


@dataclass
class RegistryMetrics:
    """Counters for dashboards."""
    total_instances: int
    total_duplicates: int
    instances_by_trigger: dict[str, int]


class InstanceRegistry:
    """In-memory table of duplication instances keyed by parent session id."""

    def __init__(self):
        self._instances: dict[str, DuplicationInstance] = {}
        self._lock = threading.RLock()

    @classmethod
    def preloaded(cls, instances: Iterable[DuplicationInstance]) -> "InstanceRegistry":
        """Build a registry seeded with existing instances (test setup).

        Raises StopRule if two instances share a parent.
        """
        registry = cls()
        for instance in instances:
            registry.commit(instance)
        return registry

    # --- reads -------------------------------------------------------------

    def has_duplicated(self, parent_session_id: str) -> bool:
        with self._lock:
            return parent_session_id in self._instances

    def get_instance(self, parent_session_id: str) -> DuplicationInstance | None:
        with self._lock:
            return self._instances.get(parent_session_id)

    def get_all_instances(self) -> list[DuplicationInstance]:
        with self._lock:
            return list(self._instances.values())

    def total_children(self) -> int:
        """Sum of child sessions across all instances, computed fresh."""
        with self._lock:
            return sum(len(i.child_session_ids) for i in self._instances.values())

    def get_metrics(self) -> RegistryMetrics:
        with self._lock:
            instances = list(self._instances.values())

        by_trigger: dict[str, int] = {}
        total_duplicates = 0
        for instance in instances:
            key = instance.triggered_by.value
            by_trigger[key] = by_trigger.get(key, 0) + 1
            total_duplicates += len(instance.child_session_ids)

        return RegistryMetrics(
            total_instances=len(instances),
            total_duplicates=total_duplicates,
            instances_by_trigger=by_trigger,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    # --- writes ------------------------------------------------------------

    def commit(
        self,
        instance: DuplicationInstance,
        max_duplicates: int | None = None,
    ) -> None:
        """Record an instance.

        Raises StopRule if the parent already has an instance, or if the
        commit would push the clone total past max_duplicates.
        """
        with self._lock:
            if instance.parent_session_id in self._instances:
                raise StopRule(
                    f"session {instance.parent_session_id} already has a duplication instance"
                )

            if max_duplicates is not None:
                total = sum(len(i.child_session_ids) for i in self._instances.values())
                after = total + len(instance.child_session_ids)
                if after > max_duplicates:
                    raise StopRule(
                        f"commit would exceed duplicate cap ({after}/{max_duplicates})"
                    )

            self._instances[instance.parent_session_id] = instance

    def remove(self, parent_session_id: str) -> bool:
        """Remove the instance for a parent. Returns True if one existed."""
        with self._lock:
            return self._instances.pop(parent_session_id, None) is not None

    def remove_many(self, parent_session_ids: Iterable[str]) -> list[str]:
        """Remove instances for several parents in one pass.

        Returns the ids that actually had an instance.
        """
        removed = []
        with self._lock:
            for parent_id in parent_session_ids:
                if self._instances.pop(parent_id, None) is not None:
                    removed.append(parent_id)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._instances.clear()
