"""Tests for design_studio/agents.py."""

import json

import pytest

from design_studio.agents import (
    FALLBACK_PROPOSAL_CONFIDENCE,
    FALLBACK_REVIEW_CONFIDENCE,
    build_agents,
    build_persona_instructions,
    estimate_confidence,
    format_context,
    render_prompt,
)
from design_studio.models import DesignContext, DiscussionEntry
from design_studio.providers.base import RateLimitedError, TransportError
from tests.conftest import MockProvider, prompts_sent, proposal_json, review_json


# --- pure helpers ---

def test_persona_instructions_include_schema_and_role(app_config):
    persona = app_config.personas["designer"]
    text = build_persona_instructions(persona, app_config.prompts.proposal_schema)
    assert "UI/UX Designer" in text
    assert '"message"' in text
    assert '"approves"' not in text


def test_review_instructions_ask_for_approval(app_config):
    persona = app_config.personas["engineer"]
    text = build_persona_instructions(persona, app_config.prompts.review_schema)
    assert '"approves"' in text
    assert "Frontend Engineer" in text


def test_format_context_orders_attributes_then_transcript():
    ctx = DesignContext(
        user_mood="stressed",
        time_of_day="evening",
        feature="analytics",
        constraints=("no animations", "dark theme"),
        previous_messages=(
            DiscussionEntry(role="system", content="Design Request: calm it down", timestamp=1.0),
            DiscussionEntry(role="designer", content="Use muted blues", timestamp=2.0),
        ),
    )
    text = format_context(ctx)
    lines = text.splitlines()
    assert lines[0] == "User Mood: stressed"
    assert lines[1] == "Time of Day: evening"
    assert lines[2] == "Feature: analytics"
    assert lines[3] == "Constraints: no animations, dark theme"
    assert "Previous Discussion:" in text
    assert text.index("[system]: Design Request: calm it down") < text.index("[designer]: Use muted blues")


def test_format_context_empty():
    assert format_context(DesignContext()) == ""


def test_estimate_confidence_base():
    assert estimate_confidence("short") == 0.5


def test_estimate_confidence_length_bonuses():
    assert estimate_confidence("x" * 201) == 0.6
    assert estimate_confidence("x" * 501) == 0.7


def test_estimate_confidence_keywords_case_insensitive_and_distinct():
    assert estimate_confidence("COLOR and Layout, color again") == 0.6


def test_estimate_confidence_capped():
    text = ("color layout animation spacing typography " * 20)
    assert len(text) > 500
    assert estimate_confidence(text) == 0.95


# --- propose ---

async def test_propose_parses_fenced_json(make_agent, sample_proposal):
    provider = MockProvider("gemini", "```json\n" + proposal_json(confidence=0.82) + "\n```")
    agent = make_agent("designer", provider)

    result = await agent.propose("Design a calm dashboard", DesignContext(user_mood="stressed"))

    assert result.agent_type == "designer"
    assert result.message.startswith("Use a soft blue palette")
    assert result.confidence == 0.82
    assert result.suggestions == ["Soft blue background", "Larger line height"]
    assert result.approves is True
    assert result.reasoning == "Calm colors reduce stress."


async def test_propose_prompt_contains_request_context_and_instructions(make_agent):
    provider = MockProvider("gemini", proposal_json())
    agent = make_agent("designer", provider)
    ctx = DesignContext(user_mood="stressed", constraints=("high contrast",))

    await agent.propose("Design a calm dashboard", ctx)

    prompt = prompts_sent(provider)[0]
    assert "DESIGN REQUEST: Design a calm dashboard" in prompt
    assert "User Mood: stressed" in prompt
    assert "Constraints: high contrast" in prompt
    assert "You are an expert UI/UX Designer" in prompt
    assert "\n\n\n" not in prompt


async def test_propose_keeps_request_and_transcript_text_verbatim(make_agent):
    provider = MockProvider("gemini", proposal_json())
    agent = make_agent("designer", provider)
    request = "Header\n\n\n\nFooter"
    ctx = DesignContext(previous_messages=(
        DiscussionEntry(role="engineer", content="Point one\n\n\n\nPoint two", timestamp=1.0),
    ))

    await agent.propose(request, ctx)

    prompt = prompts_sent(provider)[0]
    assert f"DESIGN REQUEST: {request}" in prompt
    assert "[engineer]: Point one\n\n\n\nPoint two" in prompt


def test_render_prompt_drops_blank_placeholder_lines():
    template = "Intro\n\n{background}\n\n{guidance}\n\nEnd {name}\n"
    text = render_prompt(template, background="", guidance="Be brief.", name="x\n\n\ny")
    assert text == "Intro\n\nBe brief.\n\nEnd x\n\n\ny"


async def test_propose_missing_confidence_uses_heuristic(make_agent):
    raw = proposal_json(confidence=None, message="Adjust the color and layout.")
    provider = MockProvider("gemini", raw)
    agent = make_agent("designer", provider)

    result = await agent.propose("x", DesignContext())

    assert result.confidence == estimate_confidence(raw)


async def test_propose_confidence_clamped(make_agent):
    provider = MockProvider("gemini", proposal_json(confidence=1.0))
    agent = make_agent("designer", provider)

    result = await agent.propose("x", DesignContext())

    assert result.confidence == 0.95


async def test_propose_negative_confidence_clamped(make_agent):
    provider = MockProvider("gemini", proposal_json(confidence=-0.2))
    result = await make_agent("designer", provider).propose("x", DesignContext())
    assert result.confidence == 0.0


async def test_propose_unparseable_output_falls_back(make_agent):
    provider = MockProvider("gemini", "I think blue is nice.")
    agent = make_agent("designer", provider)

    result = await agent.propose("a calming dashboard", DesignContext())

    assert result.confidence == FALLBACK_PROPOSAL_CONFIDENCE
    assert '"a calming dashboard"' in result.message
    assert result.suggestions
    assert "Fallback" in result.reasoning
    assert result.approves is True


async def test_propose_missing_message_falls_back(make_agent):
    provider = MockProvider("gemini", json.dumps({"confidence": 0.9}))
    result = await make_agent("designer", provider).propose("x", DesignContext())
    assert result.confidence == FALLBACK_PROPOSAL_CONFIDENCE


async def test_propose_transport_error_falls_back_without_retry(make_agent, no_sleep):
    provider = MockProvider("gemini")
    provider.complete.side_effect = TransportError("gemini", "500 Internal")
    agent = make_agent("engineer", provider)

    result = await agent.propose("x", DesignContext())

    assert result.agent_type == "engineer"
    assert result.confidence == FALLBACK_PROPOSAL_CONFIDENCE
    assert result.concerns == ["Need to test performance", "Consider bundle size"]
    provider.complete.assert_awaited_once()
    no_sleep.assert_not_awaited()


async def test_propose_rate_limited_retries_with_backoff_then_falls_back(make_agent, no_sleep):
    provider = MockProvider("gemini")
    provider.complete.side_effect = RateLimitedError("gemini", "429 RESOURCE_EXHAUSTED")
    agent = make_agent("designer", provider)

    result = await agent.propose("x", DesignContext())

    assert provider.complete.await_count == 3
    assert [c.args[0] for c in no_sleep.await_args_list] == [10.0, 20.0]
    assert result.confidence == FALLBACK_PROPOSAL_CONFIDENCE
    # Identical prompt on every attempt
    assert len(set(prompts_sent(provider))) == 1


async def test_propose_rate_limit_then_success(make_agent, no_sleep):
    provider = MockProvider("gemini")
    provider.complete.side_effect = [RateLimitedError("gemini", "429"), proposal_json(confidence=0.9)]
    result = await make_agent("designer", provider).propose("x", DesignContext())
    assert result.confidence == 0.9
    no_sleep.assert_awaited_once_with(10.0)


async def test_propose_unexpected_exception_is_contained(make_agent):
    provider = MockProvider("gemini")
    provider.complete.side_effect = RuntimeError("boom")
    result = await make_agent("ux", provider).propose("x", DesignContext())
    assert result.agent_type == "ux"
    assert result.confidence == FALLBACK_PROPOSAL_CONFIDENCE


# --- review ---

async def test_review_parses_approval(make_agent, sample_proposal):
    provider = MockProvider("gemini", review_json(False, concerns=["Too many animations"], confidence=0.75))
    agent = make_agent("engineer", provider)

    result = await agent.review(sample_proposal, DesignContext())

    assert result.approves is False
    assert result.concerns == ["Too many animations"]
    assert result.confidence == 0.75


async def test_review_prompt_embeds_proposal(make_agent, sample_proposal):
    provider = MockProvider("gemini", review_json(True))
    await make_agent("engineer", provider).review(sample_proposal, DesignContext())

    prompt = prompts_sent(provider)[0]
    assert "Another agent (designer) has made this proposal" in prompt
    assert sample_proposal.message in prompt
    assert "Is it technically feasible?" in prompt
    assert "Suggestions: Muted teal accents" not in prompt


async def test_ux_review_prompt_embeds_proposal_suggestions(make_agent, sample_proposal):
    provider = MockProvider("gemini", review_json(True))
    await make_agent("ux", provider).review(sample_proposal, DesignContext())

    prompt = prompts_sent(provider)[0]
    assert "Suggestions: Muted teal accents, Card layout" in prompt
    assert "Are there accessibility issues?" in prompt


async def test_review_missing_approves_counts_as_disapproval(make_agent, sample_proposal):
    provider = MockProvider("gemini", json.dumps({"message": "Hmm.", "confidence": 0.6}))
    result = await make_agent("ux", provider).review(sample_proposal, DesignContext())
    assert result.approves is False


async def test_review_failure_degrades_toward_acceptance(make_agent, sample_proposal):
    provider = MockProvider("gemini")
    provider.complete.side_effect = TransportError("gemini", "connection reset")
    agent = make_agent("ux", provider)

    result = await agent.review(sample_proposal, DesignContext())

    assert result.approves is True
    assert result.confidence == FALLBACK_REVIEW_CONFIDENCE
    assert "Fallback" in result.reasoning
    assert result.concerns == ["Verify WCAG compliance", "Test with real users"]


@pytest.mark.parametrize("confidence", [1.5, 0.95, 0.0])
async def test_review_confidence_within_bounds(make_agent, sample_proposal, confidence):
    provider = MockProvider("gemini", review_json(True, confidence=confidence))
    result = await make_agent("engineer", provider).review(sample_proposal, DesignContext())
    assert 0.0 <= result.confidence <= 0.95


async def test_agent_identity_is_fixed(make_agent):
    agent = make_agent("engineer", MockProvider())
    assert agent.role == "engineer"
    assert "React" in agent.expertise


async def test_agent_does_not_mutate_context(make_agent, sample_proposal):
    ctx = DesignContext(user_mood="relaxed")
    agent = make_agent("designer", MockProvider("gemini", proposal_json()))
    await agent.propose("x", ctx)
    assert ctx == DesignContext(user_mood="relaxed")


def test_build_agents_uses_role_providers(app_config):
    providers = {role: MockProvider(f"{role}_llm") for role in ("designer", "engineer", "ux")}
    agents = build_agents(app_config, providers)
    assert set(agents) == {"designer", "engineer", "ux"}
    assert agents["ux"].provider is providers["ux"]
    assert agents["designer"].role == "designer"
