"""Test duplication eligibility resets.

Pass criteria:
- Reset clears has_duplicated and re-enables fresh evaluation
- Bulk reset touches only the named sessions
"""
import asyncio

from autodup.engine import DuplicateSessionParams
from autodup.sessions import BatchRunState

from conftest import FakeCreator, make_session, make_trigger

FIRING = BatchRunState(completed_tasks_across_all_docs=15)


def duplicate(engine, session, creator):
    return asyncio.run(engine.duplicate_session(
        DuplicateSessionParams(session, make_trigger(duplicate_count=1)),
        creator.create_child,
        creator.create_group,
    ))


class TestEligibilityReset:
    """Reset lifecycle."""

    def test_reset_single(self, engine):
        creator = FakeCreator()
        session = make_session("a")
        duplicate(engine, session, creator)
        assert engine.has_duplicated("a") is True
        assert engine.should_duplicate("a", FIRING, session).reason == "session already duplicated"

        assert engine.reset_duplication_eligibility("a") is True
        assert engine.has_duplicated("a") is False

        result = engine.should_duplicate("a", FIRING, session)
        assert result.should_duplicate is True

    def test_reset_reevaluates_thresholds(self, engine):
        creator = FakeCreator()
        session = make_session("a")
        duplicate(engine, session, creator)
        engine.reset_duplication_eligibility("a")

        below = BatchRunState(completed_tasks_across_all_docs=3)
        assert engine.should_duplicate("a", below, session).reason == "no triggers activated"

    def test_reset_unknown_session(self, engine):
        assert engine.reset_duplication_eligibility("ghost") is False

    def test_bulk_reset_only_named(self, engine):
        creator = FakeCreator()
        for sid in ("a", "b", "c"):
            assert duplicate(engine, make_session(sid), creator).success

        removed = engine.reset_duplication_eligibility_bulk(["a", "b"])

        assert sorted(removed) == ["a", "b"]
        assert engine.has_duplicated("a") is False
        assert engine.has_duplicated("b") is False
        assert engine.has_duplicated("c") is True
        assert engine.get_metrics().total_instances == 1

    def test_duplicate_again_after_reset(self, engine):
        creator = FakeCreator()
        session = make_session("a")
        first = duplicate(engine, session, creator)
        engine.reset_duplication_eligibility("a")
        second = duplicate(engine, session, creator)

        assert second.success is True
        assert engine.get_instance("a").id != first.instance.id
        assert engine.get_metrics().total_duplicates == 1

    def test_clear_all_instances(self, engine):
        creator = FakeCreator()
        duplicate(engine, make_session("a"), creator)
        duplicate(engine, make_session("b"), creator)
        engine.clear_all_instances()
        assert engine.get_all_instances() == []
