"""Session-side types shared with the supervising loop.

These mirror what the host application knows about a worker session. The
engine only reads them; creating sessions and groups is done by the
caller-supplied callbacks.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class UsageStats:
    """Accumulated usage for a session."""
    total_cost_usd: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class AiTab:
    """A conversation tab inside a session."""
    id: str
    name: str | None = None
    agent_session_id: str | None = None
    logs: list[Any] = field(default_factory=list)
    starred: bool = False
    input_value: str = ""
    staged_images: list[Any] = field(default_factory=list)
    created_at: float = 0.0
    state: str = "idle"


@dataclass
class Session:
    """A supervised worker session."""
    id: str
    name: str
    tool_type: str = "claude-code"
    cwd: str = ""
    project_root: str = ""
    group_id: str | None = None
    auto_run_folder_path: str | None = None
    bookmarked: bool = False
    ai_tabs: list[AiTab] = field(default_factory=list)
    context_usage: float | None = None
    usage_stats: UsageStats | None = None


@dataclass
class Group:
    """A visual grouping of sessions."""
    id: str
    name: str
    emoji: str = ""


@dataclass
class BatchRunState:
    """Live counters of an Auto Run batch."""
    completed_tasks_across_all_docs: int | None = None
    accumulated_elapsed_ms: int | None = None
    documents: list[str] = field(default_factory=list)
    loop_iteration: int | None = None


@dataclass
class ChildSessionSpec:
    """Configuration handed to the create_child callback for one clone."""
    name: str
    tool_type: str
    cwd: str
    project_root: str
    group_id: str | None = None
    auto_run_folder_path: str | None = None
    bookmarked: bool = False
    ai_tabs: list[AiTab] | None = None
