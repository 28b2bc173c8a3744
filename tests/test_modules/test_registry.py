"""Unit tests for the instance registry.

Functions tested: commit, remove, remove_many, total_children, get_metrics, preloaded
"""
import threading

import pytest

from autodup.core.receipt import StopRule
from autodup.registry import DuplicationInstance, InstanceRegistry
from autodup.triggers.types import TriggerType


def instance(parent: str, children: int, trigger: TriggerType = TriggerType.TASK_COUNT) -> DuplicationInstance:
    return DuplicationInstance.create(
        parent_session_id=parent,
        child_session_ids=[f"{parent}-child-{i}" for i in range(children)],
        triggered_by=trigger,
    )


class TestCommit:
    """Writes and their invariants."""

    def test_commit_and_read_back(self):
        registry = InstanceRegistry()
        record = instance("a", 2)
        registry.commit(record)

        assert registry.has_duplicated("a")
        assert registry.get_instance("a") == record
        assert registry.get_all_instances() == [record]

    def test_second_instance_for_parent_rejected(self):
        registry = InstanceRegistry()
        registry.commit(instance("a", 1))
        with pytest.raises(StopRule):
            registry.commit(instance("a", 1))
        assert len(registry) == 1

    def test_commit_over_cap_rejected(self):
        registry = InstanceRegistry()
        registry.commit(instance("a", 3), max_duplicates=5)
        with pytest.raises(StopRule, match="6/5"):
            registry.commit(instance("b", 3), max_duplicates=5)
        assert not registry.has_duplicated("b")

    def test_commit_exactly_to_cap(self):
        registry = InstanceRegistry()
        registry.commit(instance("a", 3), max_duplicates=5)
        registry.commit(instance("b", 2), max_duplicates=5)
        assert registry.total_children() == 5

    def test_instance_is_immutable(self):
        record = instance("a", 1)
        with pytest.raises(AttributeError):
            record.child_session_ids = ()

    def test_to_dict(self):
        data = instance("a", 2, TriggerType.COST_THRESHOLD).to_dict()
        assert data["parent_session_id"] == "a"
        assert data["child_session_ids"] == ["a-child-0", "a-child-1"]
        assert data["triggered_by"] == "cost_threshold"


class TestAccounting:
    """Totals are recomputed from the live table."""

    def test_total_counts_children_not_instances(self):
        registry = InstanceRegistry.preloaded([instance("a", 3), instance("b", 1)])
        assert len(registry) == 2
        assert registry.total_children() == 4

    def test_total_reflects_removal_immediately(self):
        registry = InstanceRegistry.preloaded([instance("a", 3), instance("b", 1)])
        registry.remove("a")
        assert registry.total_children() == 1

    def test_metrics_breakdown(self):
        registry = InstanceRegistry.preloaded([
            instance("a", 2, TriggerType.TASK_COUNT),
            instance("b", 1, TriggerType.TASK_COUNT),
            instance("c", 3, TriggerType.LOOP_ITERATION),
        ])
        metrics = registry.get_metrics()
        assert metrics.total_instances == 3
        assert metrics.total_duplicates == 6
        assert metrics.instances_by_trigger == {"task_count": 2, "loop_iteration": 1}

    def test_empty_metrics(self):
        metrics = InstanceRegistry().get_metrics()
        assert metrics.total_instances == 0
        assert metrics.total_duplicates == 0
        assert metrics.instances_by_trigger == {}


class TestRemoval:
    """Lifecycle writes."""

    def test_remove_unknown_returns_false(self):
        assert InstanceRegistry().remove("nope") is False

    def test_remove_many_only_named(self):
        registry = InstanceRegistry.preloaded([instance("a", 1), instance("b", 1), instance("c", 1)])
        removed = registry.remove_many(["a", "b", "zzz"])
        assert removed == ["a", "b"]
        assert registry.has_duplicated("c")
        assert not registry.has_duplicated("a")

    def test_snapshot_not_affected_by_later_writes(self):
        registry = InstanceRegistry.preloaded([instance("a", 1)])
        snapshot = registry.get_all_instances()
        registry.clear()
        assert len(snapshot) == 1
        assert len(registry) == 0

    def test_preloaded_rejects_duplicate_parents(self):
        with pytest.raises(StopRule):
            InstanceRegistry.preloaded([instance("a", 1), instance("a", 2)])


class TestThreadSafety:
    """Concurrent commits for one parent produce one instance."""

    def test_racing_commits_single_winner(self):
        registry = InstanceRegistry()
        errors = []

        def worker():
            try:
                registry.commit(instance("shared", 1))
            except StopRule as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 1
        assert len(errors) == 7
