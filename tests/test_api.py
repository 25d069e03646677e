"""Real API integration tests.

These tests make real OpenAI calls and are intentionally compact:
- ENABLE_API_TESTS=1 is required to run any API tests
- OPENAI_API_KEY is required

The suite prioritizes high-signal end-to-end coverage with a small call budget.
"""

from __future__ import annotations

from pydantic import BaseModel
import pytest

import castor
from castor import Config, Options, Tool

pytestmark = pytest.mark.api

_OPENAI_TEST_MODEL = "gpt-4o-mini"


class Capital(BaseModel):
    country: str
    capital: str


@pytest.fixture
def live_config(openai_api_key: str) -> Config:
    return Config(provider="openai", model=_OPENAI_TEST_MODEL, api_key=openai_api_key)


@pytest.mark.asyncio
async def test_single_turn_text(live_config: Config) -> None:
    response = await castor.generate(
        "Reply with the single word: pong", config=live_config, options=Options(max_tokens=16)
    )

    assert "pong" in response.text.lower()
    assert response.usage.completion_tokens > 0
    assert response.meta.conversation_id is None


@pytest.mark.asyncio
async def test_tool_round_trip(live_config: Config) -> None:
    seen: list[str] = []

    def get_temperature(city: str) -> str:
        seen.append(city)
        return "21C"

    tool = Tool(
        name="get_temperature",
        description="Current temperature in a city",
        handler=get_temperature,
        parameters={
            "type": "object",
            "properties": {"city": {"type": "string"}},
            "required": ["city"],
        },
    )

    response = await castor.generate(
        "What is the temperature in Oslo right now? Use the tool.",
        config=live_config,
        options=Options(tools=[tool], tool_choice="auto", max_steps=3),
    )

    assert seen
    assert "21" in response.text
    assert len(response.steps) >= 2
    assert response.meta.conversation_id is not None


@pytest.mark.asyncio
async def test_structured_output(live_config: Config) -> None:
    response = await castor.generate_structured(
        "What is the capital of Norway?",
        config=live_config,
        options=Options(response_schema=Capital, provider_options={"schema.strict": True}),
    )

    assert isinstance(response.structured, Capital)
    assert response.structured.capital.lower() == "oslo"
