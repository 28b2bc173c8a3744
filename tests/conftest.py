"""Pytest fixtures for AutoDup tests.

FakeCreator: records create_child / create_group calls, can fail on demand
Fixtures: sessions, batch state, trigger and config factories, engine
"""
import asyncio
import itertools

import pytest

from autodup.core.receipt import configure_receipts
from autodup.engine import DuplicationEngine
from autodup.sessions import AiTab, BatchRunState, ChildSessionSpec, Group, Session, UsageStats
from autodup.triggers.types import DuplicationConfig, Trigger, TriggerType


class FakeCreator:
    """Stand-in for the host application's session and group factories."""

    def __init__(self, fail_on_child: int | None = None, fail_group: bool = False, delay: float = 0.0):
        self.fail_on_child = fail_on_child
        self.fail_group = fail_group
        self.delay = delay
        self.specs: list[ChildSessionSpec] = []
        self.groups: list[tuple[str, str]] = []
        self._ids = itertools.count(1)

    async def create_child(self, spec: ChildSessionSpec) -> Session:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.specs.append(spec)
        if self.fail_on_child is not None and len(self.specs) == self.fail_on_child:
            raise RuntimeError(f"spawn failed for {spec.name}")
        return Session(
            id=f"child-{next(self._ids)}",
            name=spec.name,
            tool_type=spec.tool_type,
            cwd=spec.cwd,
            project_root=spec.project_root,
            group_id=spec.group_id,
            auto_run_folder_path=spec.auto_run_folder_path,
            bookmarked=spec.bookmarked,
            ai_tabs=list(spec.ai_tabs or []),
        )

    async def create_group(self, name: str, emoji: str) -> Group:
        if self.fail_group:
            raise RuntimeError("group creation failed")
        self.groups.append((name, emoji))
        return Group(id=f"group-{len(self.groups)}", name=name, emoji=emoji)


def make_session(session_id: str = "session-1", **overrides) -> Session:
    fields = dict(
        id=session_id,
        name="Refactor API",
        tool_type="claude-code",
        cwd="/work/api",
        project_root="/work",
        auto_run_folder_path="/work/api/.autorun",
        bookmarked=True,
        ai_tabs=[AiTab(id="tab-1", logs=["previous conversation"], input_value="old input")],
        context_usage=42.0,
        usage_stats=UsageStats(total_cost_usd=1.25),
    )
    fields.update(overrides)
    return Session(**fields)


def make_trigger(
    trigger_type: TriggerType = TriggerType.TASK_COUNT,
    threshold=10,
    trigger_id: str | None = None,
    **overrides,
) -> Trigger:
    return Trigger(
        id=trigger_id or f"trigger-{trigger_type.value}",
        type=trigger_type,
        threshold=threshold,
        **overrides,
    )


def make_config(*triggers: Trigger, enabled: bool = True, max_duplicates: int | None = None) -> DuplicationConfig:
    return DuplicationConfig(enabled=enabled, triggers=list(triggers), max_duplicates=max_duplicates)


@pytest.fixture
def session() -> Session:
    """Source session with one conversation tab."""
    return make_session()


@pytest.fixture
def batch_state() -> BatchRunState:
    """Batch counters past the default thresholds."""
    return BatchRunState(
        completed_tasks_across_all_docs=12,
        accumulated_elapsed_ms=45 * 60 * 1000,
        documents=["a.md", "b.md", "c.md"],
        loop_iteration=2,
    )


@pytest.fixture
def creator() -> FakeCreator:
    return FakeCreator()


@pytest.fixture
def engine() -> DuplicationEngine:
    """Engine with one enabled task_count trigger (threshold 10, 2 clones) and cap 5."""
    return DuplicationEngine(make_config(
        make_trigger(TriggerType.TASK_COUNT, 10, duplicate_count=2),
        max_duplicates=5,
    ))


@pytest.fixture
def quiet_receipts():
    """Mute receipt printing for the duration of a test."""
    configure_receipts(False)
    yield
    configure_receipts(True)
