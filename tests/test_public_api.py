"""Public entry points: generate() and generate_structured()."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel
import pytest

import castor
from castor import Config, Options, RecordingSink, Tool
from castor.errors import ConfigurationError, TransportError
from castor.providers.base import RawResponse
from tests.helpers import ScriptedHttpClient, function_call_item, text_body, tool_call_body

pytestmark = pytest.mark.integration


class City(BaseModel):
    name: str
    country: str


class _OwnedClient(ScriptedHttpClient):
    closed: bool = False

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_generate_with_injected_client(config):
    client = ScriptedHttpClient([text_body("Paris is the capital of France.")])

    response = await castor.generate("Capital of France?", config=config, client=client)

    assert response.text == "Paris is the capital of France."
    assert len(response.steps) == 1
    assert response.meta.conversation_id is None


@pytest.mark.asyncio
async def test_generate_runs_tools_across_steps(config):
    calls: list[dict[str, Any]] = []

    async def lookup(city: str) -> str:
        calls.append({"city": city})
        return "22C and clear"

    client = ScriptedHttpClient(
        [
            tool_call_body(function_call_item("lookup", {"city": "Lisbon"})),
            text_body("It's 22C and clear in Lisbon."),
        ]
    )
    sink = RecordingSink()

    response = await castor.generate(
        messages=[{"role": "user", "content": "Weather in Lisbon?"}],
        config=config,
        options=Options(
            tools=[Tool(name="lookup", description="Weather lookup", handler=lookup)],
            max_steps=3,
        ),
        client=client,
        sinks=[sink],
    )

    assert calls == [{"city": "Lisbon"}]
    assert response.text == "It's 22C and clear in Lisbon."
    assert len(response.steps) == 2
    assert len(sink.events) == 4
    assert len(client.conversation_posts) == 1


@pytest.mark.asyncio
async def test_generate_structured_returns_model_instance(config):
    client = ScriptedHttpClient([text_body('{"name": "Lisbon", "country": "Portugal"}')])

    response = await castor.generate_structured(
        "Largest city in Portugal?",
        config=config,
        options=Options(response_schema=City),
        client=client,
    )

    assert response.structured == City(name="Lisbon", country="Portugal")


@pytest.mark.asyncio
async def test_input_errors_fail_before_any_request(config):
    client = ScriptedHttpClient()

    with pytest.raises(ConfigurationError):
        await castor.generate("Hi", messages=["Hi"], config=config, client=client)
    with pytest.raises(ConfigurationError):
        await castor.generate_structured("Hi", config=config, options=Options(), client=client)
    assert client.posts == []


@pytest.mark.asyncio
async def test_owned_client_is_closed_even_on_failure(config, monkeypatch):
    owned = _OwnedClient([RawResponse(200, {"error": {"message": "boom"}})])
    monkeypatch.setattr(
        castor.AsyncHttpClient, "from_config", classmethod(lambda cls, cfg: owned)
    )

    with pytest.raises(TransportError, match="boom"):
        await castor.generate("Hi", config=config)

    assert owned.closed is True


@pytest.mark.asyncio
async def test_injected_client_is_left_open(config):
    client = _OwnedClient([text_body("ok")])

    await castor.generate("Hi", config=config, client=client)

    assert client.closed is False


def test_version_is_exposed():
    assert isinstance(castor.__version__, str)


def test_public_names_are_exported():
    for name in ("generate", "generate_structured", "Config", "Options", "Tool"):
        assert name in castor.__all__
    assert Config is castor.config.Config
