"""Duplication Engine - decide, create, and record session clones.

The engine owns a working copy of the duplication config and an
InstanceRegistry. A supervising loop drives it:

    evaluation = engine.should_duplicate(session.id, batch_state, session)
    if evaluation.should_duplicate:
        result = await engine.duplicate_session(
            DuplicateSessionParams(session, evaluation.triggered_by),
            create_child, create_group,
        )

or runs both steps as one transaction with evaluate_and_duplicate().

Constraints:
- At most one instance per parent session
- Sum of clones across all instances never exceeds max_duplicates
- The registry is written only after every requested clone exists
- duplicate_session never raises; failures come back as a failed result
- check -> create -> commit is serialized per parent id
"""

import asyncio
import copy
import logging
import threading
import time
import uuid
import weakref
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Sequence

from .config.defaults import default_config
from .constants import (
    DEFAULT_TENANT_ID,
    DUPLICATE_NAME_FORMAT,
    GROUP_EMOJI,
    GROUP_NAME_PREFIX,
    REASON_ALREADY_DUPLICATED,
    REASON_CAP_REACHED,
    REASON_DISABLED,
    REASON_MANUAL,
    REASON_NOT_MANUAL,
    REASON_TRIGGER_DISABLED,
    RECEIPT_DUPLICATION,
    RECEIPT_DUPLICATION_CHECK,
    RECEIPT_DUPLICATION_FAILED,
    RECEIPT_ELIGIBILITY_RESET,
)
from .core.receipt import emit_receipt
from .distribute import distribute_tasks
from .ledger import LedgerStore
from .metrics import MetricsSnapshot, collect_metrics
from .registry import DuplicationInstance, InstanceRegistry, RegistryMetrics
from .sessions import AiTab, BatchRunState, ChildSessionSpec, Group, Session
from .triggers.evaluate import TriggerEvaluation, evaluate_triggers
from .triggers.types import DuplicationConfig, Trigger, TriggerType

logger = logging.getLogger("autodup.engine")

CreateChild = Callable[[ChildSessionSpec], Awaitable[Session]]
CreateGroup = Callable[[str, str], Awaitable[Group]]


@dataclass
class DuplicateSessionParams:
    """What to duplicate and why."""
    source_session: Session
    trigger: Trigger
    group_id: str | None = None
    custom_prompt: str | None = None


@dataclass
class DuplicateSessionResult:
    """Outcome of duplicate_session.

    On failure duplicated_sessions is empty and nothing was recorded.
    Anything the callbacks created before the failure is listed in
    orphaned_sessions / orphaned_group so the caller can tear it down.
    """
    success: bool
    duplicated_sessions: list[Session] = field(default_factory=list)
    group: Group | None = None
    error: str | None = None
    instance: DuplicationInstance | None = None
    orphaned_sessions: list[Session] = field(default_factory=list)
    orphaned_group: Group | None = None


def group_name_for(source: Session, trigger: Trigger) -> str:
    return trigger.custom_group_name or f"{GROUP_NAME_PREFIX}{source.name}"


def build_child_spec(
    source: Session,
    trigger: Trigger,
    index: int,
    group_id: str | None,
    custom_prompt: str | None = None,
) -> ChildSessionSpec:
    """Build the creation spec for clone number `index` (1-based).

    Conversation history is never copied. With preserve_context, a source
    that has tabs gets exactly one fresh tab whose input is pre-filled with
    the custom prompt.
    """
    ai_tabs = None
    if trigger.preserve_context and source.ai_tabs:
        ai_tabs = [AiTab(
            id=str(uuid.uuid4()),
            name=None,
            agent_session_id=None,
            logs=[],
            starred=False,
            input_value=custom_prompt or trigger.custom_prompt_template or "",
            staged_images=[],
            created_at=time.time(),
            state="idle",
        )]

    return ChildSessionSpec(
        name=DUPLICATE_NAME_FORMAT.format(name=source.name, index=index),
        tool_type=source.tool_type,
        cwd=source.cwd,
        project_root=source.project_root,
        group_id=group_id,
        auto_run_folder_path=(
            source.auto_run_folder_path if trigger.preserve_auto_run_docs else None
        ),
        bookmarked=source.bookmarked,
        ai_tabs=ai_tabs,
    )


class DuplicationEngine:
    """Trigger evaluation, clone creation and instance bookkeeping."""

    def __init__(
        self,
        config: DuplicationConfig | None = None,
        registry: InstanceRegistry | None = None,
        ledger: LedgerStore | None = None,
        tenant_id: str = DEFAULT_TENANT_ID,
    ):
        self._config = copy.deepcopy(config) if config is not None else default_config()
        self.registry = registry if registry is not None else InstanceRegistry()
        self.ledger = ledger
        self.tenant_id = tenant_id
        # Locks live only while some coroutine holds a reference to them
        self._parent_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        # parent id -> last (should_duplicate, reason) written as a check receipt
        self._last_checks: dict[str, tuple[bool, str]] = {}
        self._checks_lock = threading.Lock()

    # --- config --------------------------------------------------------------

    def update_config(self, config: DuplicationConfig) -> None:
        """Replace the working config. The engine keeps its own copy."""
        self._config = copy.deepcopy(config)

    def get_config(self) -> DuplicationConfig:
        """Return an independent copy of the working config."""
        return copy.deepcopy(self._config)

    # --- receipts ------------------------------------------------------------

    def _emit(self, receipt_type: str, data: dict) -> dict:
        receipt = emit_receipt(receipt_type, {"tenant_id": self.tenant_id, **data})
        if self.ledger is not None:
            self.ledger.append(receipt)
        return receipt

    def _emit_check(self, parent_id: str, data: dict) -> None:
        """Write a duplication_check receipt only when the parent's decision changes."""
        state = (data["should_duplicate"], data["reason"])
        with self._checks_lock:
            if self._last_checks.get(parent_id) == state:
                return
            self._last_checks[parent_id] = state
        self._emit(RECEIPT_DUPLICATION_CHECK, {"parent_session_id": parent_id, **data})

    def _forget_checks(self, parent_ids: Iterable[str] | None = None) -> None:
        with self._checks_lock:
            if parent_ids is None:
                self._last_checks.clear()
            else:
                for parent_id in parent_ids:
                    self._last_checks.pop(parent_id, None)

    def _lock_for(self, parent_id: str) -> asyncio.Lock:
        lock = self._parent_locks.get(parent_id)
        if lock is None:
            lock = asyncio.Lock()
            self._parent_locks[parent_id] = lock
        return lock

    # --- evaluation ----------------------------------------------------------

    def _blocking_reason(
        self,
        parent_id: str,
        config: DuplicationConfig,
        requested: int = 0,
    ) -> str | None:
        """Registry-side checks: already duplicated, cap reached or overrun."""
        if self.registry.has_duplicated(parent_id):
            return REASON_ALREADY_DUPLICATED

        if config.max_duplicates is None:
            return None

        total = self.registry.total_children()
        cap = config.max_duplicates
        if total >= cap:
            return f"{REASON_CAP_REACHED} ({total}/{cap})"
        if total + requested > cap:
            return f"{REASON_CAP_REACHED} ({total}/{cap}), {requested} more requested"
        return None

    def check_metrics(self, parent_id: str, metrics: MetricsSnapshot) -> TriggerEvaluation:
        """Evaluate a parent against an explicit metrics snapshot."""
        config = self._config
        echoed = metrics.to_dict()

        blocked = self._blocking_reason(parent_id, config)
        if blocked is not None:
            if blocked != REASON_ALREADY_DUPLICATED:
                self._emit_check(parent_id, {"should_duplicate": False, "reason": blocked})
            return TriggerEvaluation(False, None, blocked, echoed)

        evaluation = evaluate_triggers(config, metrics)
        if not evaluation.should_duplicate:
            self._forget_checks([parent_id])
            return evaluation

        trigger = evaluation.triggered_by
        blocked = self._blocking_reason(parent_id, config, trigger.duplicate_count)
        if blocked is not None:
            evaluation = TriggerEvaluation(False, None, blocked, echoed)

        self._emit_check(parent_id, {
            "should_duplicate": evaluation.should_duplicate,
            "trigger_id": trigger.id,
            "trigger_type": trigger.type.value,
            "reason": evaluation.reason,
        })
        return evaluation

    def should_duplicate(
        self,
        parent_id: str,
        batch_state: BatchRunState | None,
        session: Session,
    ) -> TriggerEvaluation:
        """Check whether a session should be duplicated now."""
        return self.check_metrics(parent_id, collect_metrics(batch_state, session))

    def manual_evaluation(
        self,
        parent_id: str,
        trigger: Trigger,
        metrics: MetricsSnapshot | None = None,
    ) -> TriggerEvaluation:
        """Evaluate an explicit, caller-initiated duplication.

        Only enabled MANUAL triggers qualify. Threshold checks are skipped;
        the registry checks still apply.
        """
        config = self._config
        echoed = (metrics or MetricsSnapshot()).to_dict()

        if trigger.type != TriggerType.MANUAL:
            return TriggerEvaluation(False, None, f"{REASON_NOT_MANUAL} ({trigger.type.value})", echoed)
        if not trigger.enabled:
            return TriggerEvaluation(False, None, f"{REASON_TRIGGER_DISABLED} ({trigger.id})", echoed)

        if not config.enabled:
            return TriggerEvaluation(False, None, REASON_DISABLED, echoed)

        blocked = self._blocking_reason(parent_id, config, trigger.duplicate_count)
        if blocked is not None:
            return TriggerEvaluation(False, None, blocked, echoed)

        return TriggerEvaluation(True, trigger, f"{REASON_MANUAL} ({trigger.id})", echoed)

    # --- duplication ---------------------------------------------------------

    async def duplicate_session(
        self,
        params: DuplicateSessionParams,
        create_child: CreateChild,
        create_group: CreateGroup,
    ) -> DuplicateSessionResult:
        """Create the trigger's clones and record one instance.

        Never raises. The instance is committed only after every clone was
        created; any failure leaves the registry unchanged.
        """
        async with self._lock_for(params.source_session.id):
            return await self._duplicate_locked(params, create_child, create_group)

    async def evaluate_and_duplicate(
        self,
        session: Session,
        batch_state: BatchRunState | None,
        create_child: CreateChild,
        create_group: CreateGroup,
        group_id: str | None = None,
        custom_prompt: str | None = None,
    ) -> tuple[TriggerEvaluation, DuplicateSessionResult | None]:
        """Run should_duplicate and duplicate_session as one transaction.

        Returns (evaluation, result); result is None when nothing fired.
        """
        async with self._lock_for(session.id):
            evaluation = self.should_duplicate(session.id, batch_state, session)
            if not evaluation.should_duplicate:
                return evaluation, None

            params = DuplicateSessionParams(
                source_session=session,
                trigger=evaluation.triggered_by,
                group_id=group_id,
                custom_prompt=custom_prompt,
            )
            result = await self._duplicate_locked(params, create_child, create_group)
            return evaluation, result

    async def _duplicate_locked(
        self,
        params: DuplicateSessionParams,
        create_child: CreateChild,
        create_group: CreateGroup,
    ) -> DuplicateSessionResult:
        config = self._config
        source = params.source_session
        trigger = params.trigger

        blocked = self._blocking_reason(source.id, config, trigger.duplicate_count)
        if blocked is not None:
            self._emit(RECEIPT_DUPLICATION_FAILED, {
                "parent_session_id": source.id,
                "trigger_id": trigger.id,
                "error": blocked,
                "orphaned_session_ids": [],
            })
            return DuplicateSessionResult(success=False, error=blocked)

        t0 = time.perf_counter()
        group: Group | None = None
        created: list[Session] = []

        try:
            if trigger.group_duplicates and not params.group_id:
                group = await create_group(group_name_for(source, trigger), GROUP_EMOJI)

            target_group_id = params.group_id or (group.id if group else None)

            for index in range(1, trigger.duplicate_count + 1):
                spec = build_child_spec(
                    source, trigger, index, target_group_id, params.custom_prompt
                )
                child = await create_child(spec)
                if child is None:
                    raise RuntimeError(f"create_child returned no session for {spec.name!r}")
                created.append(child)

            instance = DuplicationInstance.create(
                parent_session_id=source.id,
                child_session_ids=[c.id for c in created],
                triggered_by=trigger.type,
                group_id=target_group_id,
            )
            self.registry.commit(instance, config.max_duplicates)

        except Exception as e:
            error = str(e) or type(e).__name__
            logger.warning("duplication of %s failed: %s", source.id, error)
            self._emit(RECEIPT_DUPLICATION_FAILED, {
                "parent_session_id": source.id,
                "trigger_id": trigger.id,
                "error": error,
                "orphaned_session_ids": [c.id for c in created],
            })
            return DuplicateSessionResult(
                success=False,
                error=error,
                orphaned_sessions=created,
                orphaned_group=group,
            )

        elapsed_ms = (time.perf_counter() - t0) * 1000
        logger.info(
            "duplicated %s into %d session(s) via %s",
            source.id, len(created), trigger.type.value,
        )
        self._emit(RECEIPT_DUPLICATION, {
            "instance_id": instance.id,
            "parent_session_id": source.id,
            "child_session_ids": list(instance.child_session_ids),
            "trigger_id": trigger.id,
            "trigger_type": trigger.type.value,
            "group_id": target_group_id,
            "total_duplicates": self.registry.total_children(),
            "max_duplicates": config.max_duplicates,
            "duplicate_ms": elapsed_ms,
        })

        return DuplicateSessionResult(
            success=True,
            duplicated_sessions=created,
            group=group,
            instance=instance,
        )

    # --- task distribution ---------------------------------------------------

    def distribute(self, remaining_tasks: Sequence, duplicate_count: int) -> list[list]:
        return distribute_tasks(remaining_tasks, duplicate_count)

    # --- lifecycle -----------------------------------------------------------

    def reset_duplication_eligibility(self, parent_id: str) -> bool:
        """Forget a parent's instance so it can be duplicated again."""
        removed = self.registry.remove(parent_id)
        if removed:
            self._forget_checks([parent_id])
            self._emit(RECEIPT_ELIGIBILITY_RESET, {
                "parent_session_ids": [parent_id],
                "total_duplicates": self.registry.total_children(),
            })
        return removed

    def reset_duplication_eligibility_bulk(self, parent_ids: Iterable[str]) -> list[str]:
        """Reset several parents in one pass. Returns the ids that were reset."""
        removed = self.registry.remove_many(parent_ids)
        if removed:
            self._forget_checks(removed)
            self._emit(RECEIPT_ELIGIBILITY_RESET, {
                "parent_session_ids": removed,
                "total_duplicates": self.registry.total_children(),
            })
        return removed

    def clear_all_instances(self) -> None:
        self.registry.clear()
        self._forget_checks()

    # --- introspection -------------------------------------------------------

    def has_duplicated(self, parent_id: str) -> bool:
        return self.registry.has_duplicated(parent_id)

    def get_instance(self, parent_id: str) -> DuplicationInstance | None:
        return self.registry.get_instance(parent_id)

    def get_all_instances(self) -> list[DuplicationInstance]:
        return self.registry.get_all_instances()

    def get_metrics(self) -> RegistryMetrics:
        return self.registry.get_metrics()
