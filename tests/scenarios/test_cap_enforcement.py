"""Test clone cap enforcement.

Pass criteria:
- Cap counts children across all instances, not instances
- A trigger that would overrun the cap is blocked with "X/Y" in the reason
- Committing exactly to the cap blocks every further request with "Y/Y"
- Resets free capacity immediately
"""
import asyncio

from autodup.engine import DuplicateSessionParams, DuplicationEngine
from autodup.ledger import LedgerStore
from autodup.registry import DuplicationInstance, InstanceRegistry
from autodup.sessions import BatchRunState
from autodup.triggers.types import TriggerType

from conftest import FakeCreator, make_config, make_session, make_trigger

FIRING = BatchRunState(completed_tasks_across_all_docs=20)


def seeded_engine(trigger_count: int, existing_children: int = 3) -> DuplicationEngine:
    """Engine with cap 5 and one existing instance holding existing_children clones."""
    registry = InstanceRegistry.preloaded([
        DuplicationInstance.create(
            parent_session_id="existing-parent",
            child_session_ids=[f"old-{i}" for i in range(existing_children)],
            triggered_by=TriggerType.TASK_COUNT,
        )
    ])
    config = make_config(
        make_trigger(TriggerType.TASK_COUNT, 10, duplicate_count=trigger_count),
        max_duplicates=5,
    )
    return DuplicationEngine(config, registry=registry)


class TestCapEnforcement:
    """Cap of 5 with 3 clones already recorded."""

    def test_request_for_three_more_blocked(self):
        engine = seeded_engine(trigger_count=3)
        session = make_session("new-parent")
        result = engine.should_duplicate(session.id, FIRING, session)
        assert result.should_duplicate is False
        assert "3/5" in result.reason
        assert result.reason.startswith("maximum duplicates limit reached")

    def test_request_for_two_more_allowed(self):
        engine = seeded_engine(trigger_count=2)
        session = make_session("new-parent")
        assert engine.should_duplicate(session.id, FIRING, session).should_duplicate is True

    def test_request_for_one_more_allowed(self):
        engine = seeded_engine(trigger_count=1)
        session = make_session("new-parent")
        assert engine.should_duplicate(session.id, FIRING, session).should_duplicate is True

    def test_full_cap_blocks_everything(self):
        engine = seeded_engine(trigger_count=2)
        creator = FakeCreator()
        first = make_session("new-parent")

        evaluation, result = asyncio.run(engine.evaluate_and_duplicate(
            first, FIRING, creator.create_child, creator.create_group,
        ))
        assert result.success is True
        assert engine.get_metrics().total_duplicates == 5

        for parent in ("third", "fourth"):
            other = make_session(parent)
            blocked = engine.should_duplicate(other.id, FIRING, other)
            assert blocked.should_duplicate is False
            assert "5/5" in blocked.reason

    def test_direct_duplicate_session_respects_cap(self):
        engine = seeded_engine(trigger_count=3)
        creator = FakeCreator()
        session = make_session("new-parent")
        result = asyncio.run(engine.duplicate_session(
            DuplicateSessionParams(session, make_trigger(duplicate_count=3)),
            creator.create_child,
            creator.create_group,
        ))
        assert result.success is False
        assert "3/5" in result.error
        assert creator.specs == []

    def test_reset_frees_capacity(self):
        engine = seeded_engine(trigger_count=3)
        session = make_session("new-parent")
        assert engine.should_duplicate(session.id, FIRING, session).should_duplicate is False

        engine.reset_duplication_eligibility("existing-parent")
        assert engine.should_duplicate(session.id, FIRING, session).should_duplicate is True

    def test_unbounded_when_cap_absent(self):
        registry = InstanceRegistry.preloaded([
            DuplicationInstance.create(f"p{i}", [f"c{i}-{j}" for j in range(10)], TriggerType.TASK_COUNT)
            for i in range(5)
        ])
        engine = DuplicationEngine(
            make_config(make_trigger(TriggerType.TASK_COUNT, 10, duplicate_count=4)),
            registry=registry,
        )
        session = make_session("new-parent")
        assert engine.should_duplicate(session.id, FIRING, session).should_duplicate is True

    def test_zero_cap_blocks(self):
        engine = DuplicationEngine(make_config(make_trigger(), max_duplicates=0))
        session = make_session()
        result = engine.should_duplicate(session.id, FIRING, session)
        assert result.should_duplicate is False
        assert "0/0" in result.reason


class TestCheckReceiptsAtCap:
    """A supervisor polling at the cap writes one check receipt per decision change."""

    def test_repeated_polls_write_once(self, tmp_path, quiet_receipts):
        ledger = LedgerStore(str(tmp_path / "receipts.jsonl"))
        engine = DuplicationEngine(make_config(make_trigger(), enabled=False, max_duplicates=0), ledger=ledger)
        session = make_session()

        for _ in range(100):
            result = engine.should_duplicate(session.id, FIRING, session)
        assert result.reason == "maximum duplicates limit reached (0/0)"
        assert len(ledger.read_all()) == 1

    def test_overrun_polls_write_once(self, tmp_path, quiet_receipts):
        engine = seeded_engine(trigger_count=3)
        engine.ledger = LedgerStore(str(tmp_path / "receipts.jsonl"))
        session = make_session("new-parent")

        for _ in range(20):
            engine.should_duplicate(session.id, FIRING, session)
        checks = engine.ledger.read_all()
        assert len(checks) == 1
        assert "3/5" in checks[0]["reason"]

    def test_new_receipt_when_total_changes(self, tmp_path, quiet_receipts):
        engine = seeded_engine(trigger_count=3)
        engine.ledger = LedgerStore(str(tmp_path / "receipts.jsonl"))
        session = make_session("new-parent")

        engine.should_duplicate(session.id, FIRING, session)
        engine.reset_duplication_eligibility("existing-parent")
        engine.should_duplicate(session.id, FIRING, session)
        engine.should_duplicate(session.id, FIRING, session)

        types = [r["receipt_type"] for r in engine.ledger.read_all()]
        assert types == ["duplication_check", "eligibility_reset", "duplication_check"]
        assert engine.ledger.read_all()[-1]["should_duplicate"] is True
