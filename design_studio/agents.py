"""Persona-driven agents: propose designs and review each other's proposals.

Every call goes through the provider with rate-limit retry, and any failure
(transport, exhausted retries, unparseable output) degrades to a fixed
low-confidence fallback response. Nothing raised by a provider escapes an
Agent.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from config.config_loader import AppConfig, PersonaConfig, PromptsConfig
from design_studio.models import AgentResponse, DesignContext
from design_studio.parsing import ResponseParseError, extract_json_object
from design_studio.providers.base import RateLimitedError, TextCompletionProvider
from design_studio.retry import exponential_backoff, retry_async

logger = logging.getLogger(__name__)

MAX_CONFIDENCE = 0.95
FALLBACK_PROPOSAL_CONFIDENCE = 0.3
FALLBACK_REVIEW_CONFIDENCE = 0.4

_DESIGN_KEYWORDS = ("color", "layout", "animation", "spacing", "typography")


def build_persona_instructions(persona: PersonaConfig, schema: str) -> str:
    """Role preamble followed by the exact JSON structure the agent must return."""
    lines = [f"You are an expert {persona.title} AI agent with deep knowledge of:"]
    lines += [f"- {item}" for item in persona.knowledge]
    lines += ["", persona.summary, "", "When responding:"]
    lines += [f"{i}. {g}" for i, g in enumerate(persona.guidelines, start=1)]
    lines += ["", "Output your responses as JSON with this structure:", schema]
    return "\n".join(lines)


def format_context(context: DesignContext) -> str:
    """Serialize the context: request attributes first, then the transcript."""
    parts: list[str] = []
    if context.user_mood:
        parts.append(f"User Mood: {context.user_mood}")
    if context.time_of_day:
        parts.append(f"Time of Day: {context.time_of_day}")
    if context.feature:
        parts.append(f"Feature: {context.feature}")
    if context.constraints:
        parts.append(f"Constraints: {', '.join(context.constraints)}")
    if context.previous_messages:
        parts.append("\nPrevious Discussion:")
        parts += [f"[{msg.role}]: {msg.content}" for msg in context.previous_messages]
    return "\n".join(parts)


def estimate_confidence(text: str) -> float:
    """Heuristic confidence for responses that omit one. Never exceeds 0.95."""
    confidence = 0.5
    if len(text) > 200:
        confidence += 0.1
    if len(text) > 500:
        confidence += 0.1
    lowered = text.lower()
    confidence += 0.05 * sum(1 for kw in _DESIGN_KEYWORDS if kw in lowered)
    return min(round(confidence, 2), MAX_CONFIDENCE)


def _clamp_confidence(value: Any, raw_text: str) -> float:
    # bool is an int subclass; "confidence": true is not a score.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return estimate_confidence(raw_text)
    return max(0.0, min(float(value), MAX_CONFIDENCE))


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if str(item).strip()]


_PLACEHOLDER_LINE = re.compile(r"^\{(\w+)\}$")


def render_prompt(template: str, **values: str) -> str:
    """Fill ``template`` with ``values``.

    Template lines holding only a placeholder whose value is blank are dropped
    and runs of blank template lines collapse to one. Substituted values are
    inserted verbatim.
    """
    lines = []
    for line in template.splitlines():
        match = _PLACEHOLDER_LINE.match(line.strip())
        if match and not str(values.get(match.group(1), "")).strip():
            continue
        lines.append(line)
    skeleton = re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()
    return skeleton.format(**values)


class Agent:
    """One LLM-backed persona with propose and review capabilities.

    Identity, expertise and persona instructions are fixed at construction;
    an Agent holds no per-call state and can be shared between concurrent
    collaborations.
    """

    def __init__(
        self,
        persona: PersonaConfig,
        prompts: PromptsConfig,
        provider: TextCompletionProvider,
        *,
        max_retries: int = 2,
        backoff_base_sec: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._persona = persona
        self._prompts = prompts
        self._provider = provider
        self._max_retries = max_retries
        self._backoff = exponential_backoff(backoff_base_sec)
        self._sleep = sleep
        self._proposal_instructions = build_persona_instructions(persona, prompts.proposal_schema)
        self._review_instructions = build_persona_instructions(persona, prompts.review_schema)

    @property
    def role(self) -> str:
        return self._persona.role

    @property
    def expertise(self) -> str:
        return self._persona.expertise

    @property
    def provider(self) -> TextCompletionProvider:
        return self._provider

    def _proposal_prompt(self, request: str, context: DesignContext) -> str:
        return render_prompt(
            self._prompts.propose,
            instructions=self._proposal_instructions,
            request_label=self._persona.request_label,
            request=request,
            context=format_context(context),
            background=self._persona.background,
            guidance=self._persona.request_guidance,
        )

    def _review_prompt(self, proposal: AgentResponse, context: DesignContext) -> str:
        suggestions = ""
        if self._persona.include_proposal_suggestions and proposal.suggestions:
            suggestions = f"Suggestions: {', '.join(proposal.suggestions)}"
        criteria = "\n".join(
            f"{i}. {c}" for i, c in enumerate(self._persona.review_criteria, start=1)
        )
        return render_prompt(
            self._prompts.review,
            instructions=self._review_instructions,
            context=format_context(context),
            background=self._persona.background,
            agent_type=proposal.agent_type,
            proposal=proposal.message,
            proposal_suggestions=suggestions,
            review_perspective=self._persona.review_perspective,
            criteria=criteria,
        )

    async def _complete(self, prompt: str) -> str:
        logger.debug("[%s] prompt:\n%s", self.role, prompt)
        return await retry_async(
            lambda: self._provider.complete(prompt),
            max_retries=self._max_retries,
            backoff=self._backoff,
            is_retryable=lambda exc: isinstance(exc, RateLimitedError),
            sleep=self._sleep,
            label=self.role,
        )

    def _parse(self, raw: str) -> dict[str, Any]:
        payload = extract_json_object(raw)
        message = payload.get("message")
        if not isinstance(message, str) or not message.strip():
            raise ResponseParseError("Response JSON has no 'message' field")
        return payload

    async def propose(self, request: str, context: DesignContext) -> AgentResponse:
        """Propose a solution for ``request``. Never raises."""
        try:
            raw = await self._complete(self._proposal_prompt(request, context))
            payload = self._parse(raw)
        except Exception as exc:
            logger.warning("[%s] Proposal failed, using fallback: %s", self.role, exc)
            return self._fallback_proposal(request, exc)

        return AgentResponse(
            agent_type=self.role,
            message=payload["message"],
            confidence=_clamp_confidence(payload.get("confidence"), raw),
            suggestions=_string_list(payload.get("suggestions")),
            concerns=_string_list(payload.get("concerns")),
            approves=True,
            reasoning=payload.get("reasoning"),
        )

    async def review(self, proposal: AgentResponse, context: DesignContext) -> AgentResponse:
        """Review another agent's proposal and vote on it. Never raises."""
        try:
            raw = await self._complete(self._review_prompt(proposal, context))
            payload = self._parse(raw)
        except Exception as exc:
            logger.warning("[%s] Review failed, using fallback: %s", self.role, exc)
            return self._fallback_review(exc)

        approves = payload.get("approves")
        if not isinstance(approves, bool):
            logger.warning("[%s] Review has no boolean 'approves' (%r), treating as not approved", self.role, approves)
            approves = False

        return AgentResponse(
            agent_type=self.role,
            message=payload["message"],
            confidence=_clamp_confidence(payload.get("confidence"), raw),
            suggestions=_string_list(payload.get("suggestions")),
            concerns=_string_list(payload.get("concerns")),
            approves=approves,
            reasoning=payload.get("reasoning"),
        )

    def _fallback_proposal(self, request: str, exc: Exception) -> AgentResponse:
        fallback = self._persona.fallback
        return AgentResponse(
            agent_type=self.role,
            message=fallback.proposal_message.format(request=request),
            confidence=FALLBACK_PROPOSAL_CONFIDENCE,
            suggestions=list(fallback.proposal_suggestions),
            concerns=list(fallback.proposal_concerns),
            approves=True,
            reasoning=f"Fallback {self.role} principles used (provider unavailable: {type(exc).__name__})",
        )

    def _fallback_review(self, exc: Exception) -> AgentResponse:
        fallback = self._persona.fallback
        return AgentResponse(
            agent_type=self.role,
            message=fallback.review_message,
            confidence=FALLBACK_REVIEW_CONFIDENCE,
            concerns=list(fallback.review_concerns),
            approves=True,
            reasoning=f"Fallback review used (provider unavailable: {type(exc).__name__})",
        )


def build_agents(
    config: AppConfig,
    providers_by_role: dict[str, TextCompletionProvider],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> dict[str, Agent]:
    """Build one Agent per persona with the provider chosen for its role."""
    return {
        role: Agent(
            persona,
            config.prompts,
            providers_by_role[role],
            max_retries=config.studio.max_retries,
            backoff_base_sec=config.studio.backoff_base_sec,
            sleep=sleep,
        )
        for role, persona in config.personas.items()
        if role in providers_by_role
    }
