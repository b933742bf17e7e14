"""AI Studio: designer proposes, engineer and UX review, iterate to consensus."""

import logging
import time
from collections.abc import Callable
from dataclasses import replace

from config.config_loader import AppConfig
from design_studio.agents import Agent, build_agents
from design_studio.models import (
    AgentResponse,
    CollaborationResult,
    DesignContext,
    DesignRequest,
    DiscussionEntry,
    Role,
)
from design_studio.providers.base import TextCompletionProvider

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 2
_NO_CONSENSUS_FACTOR = 0.7


def _bullets(items: list[str]) -> list[str]:
    return [f"- {item}" for item in items]


def synthesize_final_design(
    designer: AgentResponse,
    engineer: AgentResponse,
    ux: AgentResponse,
) -> str:
    """Assemble the three latest responses into one markdown design document.

    Sections whose source list is empty are left out entirely.
    """
    parts: list[str] = ["## Design Proposal", designer.message]

    sections = [
        ("Design Suggestions", designer.suggestions),
        ("Technical Implementation", engineer.suggestions),
        ("Technical Considerations", engineer.concerns),
        ("UX Recommendations", ux.suggestions),
        ("Accessibility & Usability Notes", ux.concerns),
    ]
    for title, items in sections:
        if items:
            parts.append(f"\n### {title}:")
            parts += _bullets(items)

    return "\n".join(parts)


def generate_feedback(engineer: AgentResponse, ux: AgentResponse) -> str:
    """Summarize what the disapproving reviewer(s) want changed."""
    feedback: list[str] = []
    for label, review in (("Technical", engineer), ("UX", ux)):
        if review.approves:
            continue
        if review.concerns:
            feedback.append(f"{label} concerns: {', '.join(review.concerns)}")
        if review.suggestions:
            feedback.append(f"{label} suggestions: {', '.join(review.suggestions)}")
        if not review.concerns and not review.suggestions:
            feedback.append(f"{label} review did not approve the proposal")
    return " | ".join(feedback)


def calculate_overall_confidence(
    designer: AgentResponse,
    engineer: AgentResponse,
    ux: AgentResponse,
    consensus: bool,
) -> float:
    """Mean of the three confidences, scaled down to 70% without consensus."""
    average = (designer.confidence + engineer.confidence + ux.confidence) / 3
    factor = 1.0 if consensus else _NO_CONSENSUS_FACTOR
    return round(average * factor, 2)


class AIStudio:
    """Coordinates the designer, engineer and UX agents.

    The discussion log and context of one ``generate_design`` call are local
    to that call, so a single AIStudio can serve concurrent requests.
    """

    def __init__(
        self,
        designer: Agent,
        engineer: Agent,
        ux: Agent,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        self._designer = designer
        self._engineer = engineer
        self._ux = ux
        self._max_iterations = max_iterations
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        providers_by_role: dict[str, TextCompletionProvider],
        max_iterations: int | None = None,
    ) -> "AIStudio":
        agents = build_agents(config, providers_by_role)
        return cls(
            agents["designer"],
            agents["engineer"],
            agents["ux"],
            max_iterations=max_iterations if max_iterations is not None else config.studio.max_iterations,
        )

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    def _append(
        self,
        discussion: list[DiscussionEntry],
        role: Role,
        content: str,
        response: AgentResponse | None = None,
        **metadata,
    ) -> None:
        """Append an entry to ``discussion``; stamps never go backwards."""
        timestamp = self._clock()
        if discussion:
            timestamp = max(timestamp, discussion[-1].timestamp)
        discussion.append(DiscussionEntry(
            role=role,
            content=content,
            timestamp=timestamp,
            confidence=response.confidence if response else None,
            # Lists are copied so later edits to the response leave the transcript alone
            metadata={k: list(v) if isinstance(v, list) else v for k, v in metadata.items()},
        ))

    async def generate_design(self, request: DesignRequest) -> CollaborationResult:
        """Run the propose/review loop until both reviewers approve or iterations run out.

        Args:
            request: The design prompt plus optional mood, time of day,
                feature and constraints.

        Returns:
            CollaborationResult with the synthesized design, consensus flag,
            aggregate confidence and the full discussion transcript.
        """
        start = time.monotonic()
        base_context = DesignContext(
            user_mood=request.user_mood,
            time_of_day=request.time_of_day,
            feature=request.feature,
            constraints=tuple(request.constraints or ()),
        )

        discussion: list[DiscussionEntry] = []
        self._append(discussion, "system", f"Design Request: {request.prompt}")
        iteration_count = 0
        consensus = False
        designer_proposal: AgentResponse | None = None
        engineer_review: AgentResponse | None = None
        ux_review: AgentResponse | None = None

        while not consensus and iteration_count < self._max_iterations:
            iteration_count += 1
            logger.info("Starting iteration %d/%d", iteration_count, self._max_iterations)

            context = replace(base_context, previous_messages=tuple(discussion))

            designer_proposal = await self._designer.propose(request.prompt, context)
            self._append(
                discussion,
                "designer",
                designer_proposal.message,
                designer_proposal,
                suggestions=designer_proposal.suggestions,
                reasoning=designer_proposal.reasoning,
            )
            logger.info("Designer proposal (confidence: %.2f)", designer_proposal.confidence)

            engineer_review = await self._engineer.review(designer_proposal, context)
            self._append(
                discussion,
                "engineer",
                engineer_review.message,
                engineer_review,
                approves=engineer_review.approves,
                concerns=engineer_review.concerns,
                suggestions=engineer_review.suggestions,
            )
            logger.info(
                "Engineer review (approves: %s, confidence: %.2f)",
                engineer_review.approves, engineer_review.confidence,
            )

            ux_review = await self._ux.review(designer_proposal, context)
            self._append(
                discussion,
                "ux",
                ux_review.message,
                ux_review,
                approves=ux_review.approves,
                concerns=ux_review.concerns,
                suggestions=ux_review.suggestions,
            )
            logger.info(
                "UX review (approves: %s, confidence: %.2f)",
                ux_review.approves, ux_review.confidence,
            )

            if engineer_review.approves and ux_review.approves:
                consensus = True
                logger.info("Consensus reached in iteration %d", iteration_count)
            else:
                feedback = generate_feedback(engineer_review, ux_review)
                self._append(discussion, "system", f"Feedback for next iteration: {feedback}")
                logger.info("No consensus, iterating")

        if designer_proposal is None or engineer_review is None or ux_review is None:
            raise RuntimeError("Collaboration finished without running an iteration")

        if not consensus:
            logger.warning("Max iterations reached without consensus, using best available design")

        final_design = synthesize_final_design(designer_proposal, engineer_review, ux_review)
        confidence = calculate_overall_confidence(
            designer_proposal, engineer_review, ux_review, consensus
        )

        return CollaborationResult(
            request=request,
            final_design=final_design,
            consensus=consensus,
            confidence=confidence,
            discussion=discussion,
            designer_proposal=designer_proposal,
            engineer_review=engineer_review,
            ux_review=ux_review,
            iteration_count=iteration_count,
            timestamp=self._clock(),
            total_duration_sec=time.monotonic() - start,
        )

    async def quick_design(self, prompt: str, context: DesignContext | None = None) -> AgentResponse:
        """Designer-only proposal: no review, no consensus."""
        if context is None:
            context = DesignContext()
        elif not isinstance(context, DesignContext):
            raise TypeError(f"context must be a DesignContext, got {type(context).__name__}")
        return await self._designer.propose(prompt, context)

    def status(self) -> dict:
        return {
            "status": "ready",
            "agents": [self._designer.role, self._engineer.role, self._ux.role],
            "max_iterations": self._max_iterations,
            "capabilities": [
                "Multi-agent design collaboration",
                "Technical feasibility validation",
                "UX and accessibility review",
                "Consensus-driven design decisions",
            ],
        }
