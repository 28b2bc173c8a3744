"""Test racing supervisor ticks.

Pass criteria:
- Two ticks racing on one parent commit exactly one instance
- Ticks for different parents both succeed
- Readers during an in-flight creation never see a partial instance
"""
import asyncio

from autodup.engine import DuplicateSessionParams
from autodup.sessions import BatchRunState

from conftest import FakeCreator, make_session, make_trigger

FIRING = BatchRunState(completed_tasks_across_all_docs=50)


class TestConcurrentTicks:
    """Per-parent serialization."""

    def test_same_parent_race_commits_once(self, engine):
        creator = FakeCreator(delay=0.01)
        session = make_session("shared")

        async def main():
            return await asyncio.gather(*[
                engine.evaluate_and_duplicate(session, FIRING, creator.create_child, creator.create_group)
                for _ in range(3)
            ])

        outcomes = asyncio.run(main())
        successes = [r for _, r in outcomes if r is not None and r.success]
        skipped = [e for e, r in outcomes if r is None]

        assert len(successes) == 1
        assert len(skipped) == 2
        assert all(e.reason == "session already duplicated" for e in skipped)
        assert len(creator.specs) == 2
        assert engine.get_metrics().total_instances == 1

    def test_check_then_duplicate_race_commits_once(self, engine):
        creator = FakeCreator(delay=0.01)
        session = make_session("shared")

        # Both ticks see "not yet duplicated" before either creates anything
        first = engine.should_duplicate(session.id, FIRING, session)
        second = engine.should_duplicate(session.id, FIRING, session)
        assert first.should_duplicate and second.should_duplicate

        async def main():
            return await asyncio.gather(
                engine.duplicate_session(
                    DuplicateSessionParams(session, first.triggered_by),
                    creator.create_child, creator.create_group,
                ),
                engine.duplicate_session(
                    DuplicateSessionParams(session, second.triggered_by),
                    creator.create_child, creator.create_group,
                ),
            )

        results = asyncio.run(main())
        assert sorted(r.success for r in results) == [False, True]
        assert engine.get_metrics().total_instances == 1
        assert engine.get_metrics().total_duplicates == 2

    def test_different_parents_both_commit(self, engine):
        creator = FakeCreator(delay=0.01)

        async def main():
            return await asyncio.gather(
                engine.evaluate_and_duplicate(make_session("a"), FIRING, creator.create_child, creator.create_group),
                engine.evaluate_and_duplicate(make_session("b"), FIRING, creator.create_child, creator.create_group),
            )

        outcomes = asyncio.run(main())
        assert all(r.success for _, r in outcomes)
        assert engine.get_metrics().total_duplicates == 4

    def test_cap_holds_across_parents(self, engine):
        # cap 5, each parent asks for 2: only two parents fit
        creator = FakeCreator(delay=0.01)

        async def main():
            return await asyncio.gather(*[
                engine.evaluate_and_duplicate(make_session(p), FIRING, creator.create_child, creator.create_group)
                for p in ("a", "b", "c")
            ])

        outcomes = asyncio.run(main())
        results = [r for _, r in outcomes]
        assert all(e.should_duplicate for e, _ in outcomes)

        failed = [r for r in results if not r.success]
        assert len(failed) == 1
        assert "commit would exceed duplicate cap (6/5)" in failed[0].error
        assert len(failed[0].orphaned_sessions) == 2
        assert failed[0].orphaned_group is not None
        assert failed[0].instance is None

        assert sum(r.success for r in results) == 2
        assert engine.get_metrics().total_duplicates == 4
        assert len(creator.specs) == 6

    def test_no_partial_instance_visible_mid_creation(self, engine):
        creator = FakeCreator(delay=0.02)
        session = make_session("slow")
        observed = []

        async def watcher():
            for _ in range(5):
                observed.append(engine.get_all_instances())
                await asyncio.sleep(0.005)

        async def main():
            await asyncio.gather(
                engine.evaluate_and_duplicate(session, FIRING, creator.create_child, creator.create_group),
                watcher(),
            )

        asyncio.run(main())
        for snapshot in observed:
            assert snapshot == [] or len(snapshot[0].child_session_ids) == 2
        assert len(engine.get_instance("slow").child_session_ids) == 2
