"""Shared pytest fixtures."""

import json
from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, load_config
from design_studio.agents import Agent
from design_studio.models import AgentResponse, DesignRequest
from design_studio.providers.base import TextCompletionProvider
from design_studio.studio import AIStudio


def proposal_json(
    message: str = "Use a soft blue palette with generous spacing.",
    confidence: float | None = 0.8,
    suggestions: list[str] | None = None,
    concerns: list[str] | None = None,
    reasoning: str = "Calm colors reduce stress.",
) -> str:
    payload: dict = {
        "message": message,
        "suggestions": suggestions if suggestions is not None else ["Soft blue background", "Larger line height"],
        "concerns": concerns if concerns is not None else [],
        "reasoning": reasoning,
    }
    if confidence is not None:
        payload["confidence"] = confidence
    return json.dumps(payload)


def review_json(
    approves: bool,
    message: str = "Looks good.",
    confidence: float = 0.7,
    suggestions: list[str] | None = None,
    concerns: list[str] | None = None,
) -> str:
    return json.dumps({
        "message": message,
        "confidence": confidence,
        "approves": approves,
        "suggestions": suggestions if suggestions is not None else [],
        "concerns": concerns if concerns is not None else [],
        "reasoning": "Because.",
    })


class MockProvider(TextCompletionProvider):
    """Test double TextCompletionProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because complete is defined in the class body below.
        self.complete = AsyncMock(return_value=response_content)  # type: ignore[method-assign]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def complete(self, prompt: str) -> str:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return self._response_content


def prompts_sent(provider: MockProvider) -> list[str]:
    return [call.args[0] for call in provider.complete.await_args_list]


@pytest.fixture
def app_config() -> AppConfig:
    """The shipped config/settings.yaml."""
    return load_config()


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def make_agent(app_config: AppConfig, no_sleep: AsyncMock) -> Callable[..., Agent]:
    def _make(role: str, provider: TextCompletionProvider, max_retries: int = 2) -> Agent:
        return Agent(
            app_config.personas[role],
            app_config.prompts,
            provider,
            max_retries=max_retries,
            backoff_base_sec=10.0,
            sleep=no_sleep,
        )

    return _make


@pytest.fixture
def studio_providers() -> dict[str, MockProvider]:
    return {
        "designer": MockProvider("designer_llm", proposal_json()),
        "engineer": MockProvider("engineer_llm", review_json(True)),
        "ux": MockProvider("ux_llm", review_json(True)),
    }


@pytest.fixture
def studio(make_agent, studio_providers: dict[str, MockProvider]) -> AIStudio:
    return AIStudio(
        make_agent("designer", studio_providers["designer"]),
        make_agent("engineer", studio_providers["engineer"]),
        make_agent("ux", studio_providers["ux"]),
    )


@pytest.fixture
def calming_request() -> DesignRequest:
    return DesignRequest(prompt="Design a calming dashboard for a stressed user", user_mood="stressed")


@pytest.fixture
def sample_proposal() -> AgentResponse:
    return AgentResponse(
        agent_type="designer",
        message="Muted teal palette, card layout, slow fade animations.",
        confidence=0.8,
        suggestions=["Muted teal accents", "Card layout"],
        concerns=[],
        approves=True,
        reasoning="Low arousal colors.",
    )
