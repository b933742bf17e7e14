"""Pure dataclasses for the design studio collaboration. No logic, no deps."""

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["designer", "engineer", "ux", "system"]


@dataclass(frozen=True)
class DiscussionEntry:
    role: Role
    content: str
    timestamp: float               # epoch seconds
    confidence: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DesignContext:
    """Snapshot handed to every agent call. Agents never mutate it."""

    user_mood: str | None = None
    time_of_day: str | None = None
    feature: str | None = None
    constraints: tuple[str, ...] = ()
    previous_messages: tuple[DiscussionEntry, ...] = ()


@dataclass
class DesignRequest:
    prompt: str
    user_mood: str | None = None
    time_of_day: str | None = None
    feature: str | None = None
    constraints: list[str] = field(default_factory=list)
    source: str = "cli"            # "cli" or file path


@dataclass
class AgentResponse:
    agent_type: str                # "designer", "engineer", "ux"
    message: str
    confidence: float
    suggestions: list[str] = field(default_factory=list)
    concerns: list[str] = field(default_factory=list)
    approves: bool | None = None
    reasoning: str | None = None


@dataclass
class CollaborationResult:
    request: DesignRequest
    final_design: str              # Markdown synthesis
    consensus: bool
    confidence: float
    discussion: list[DiscussionEntry]
    designer_proposal: AgentResponse
    engineer_review: AgentResponse
    ux_review: AgentResponse
    iteration_count: int
    timestamp: float
    total_duration_sec: float = 0.0
