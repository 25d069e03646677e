"""Castor: step-driven response orchestration for LLM provider APIs.

Public API:
    - generate(): Text generation, with optional local tools and multiple steps
    - generate_structured(): Generation constrained to a response schema
    - Config / Options: Connection settings and per-call features
    - Tool / ProviderTool: Locally executed and provider-executed tools
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING, Any

from castor.config import Config
from castor.errors import (
    CastorError,
    ConfigurationError,
    MaxTokensExceededError,
    RateLimitError,
    RefusalError,
    ResponseError,
    StructuredDecodeError,
    ToolExecutionError,
    TransportError,
    UnknownFinishReasonError,
)
from castor.events import RecordingSink
from castor.media import Document, Image
from castor.options import Options
from castor.orchestrator import Orchestrator
from castor.providers.http import AsyncHttpClient
from castor.providers.openai import OpenAIResponsesAdapter
from castor.request import build_request
from castor.retry import RetryPolicy
from castor.tools import ProviderTool, Tool
from castor.types import (
    AssistantMessage,
    FinishReason,
    Response,
    Step,
    StructuredResponse,
    SystemMessage,
    ToolResultMessage,
    Usage,
    UserMessage,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from castor.events import EventSink
    from castor.providers.base import HttpClient

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("castor-llm")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("castor").addHandler(logging.NullHandler())

logger = logging.getLogger(__name__)


async def generate(
    prompt: str | None = None,
    *,
    messages: Sequence[Any] | None = None,
    attachments: Sequence[Image | Document] = (),
    config: Config,
    options: Options | None = None,
    client: HttpClient | None = None,
    sinks: Sequence[EventSink] | None = None,
) -> Response:
    """Generate text, running tools between steps when the model asks for them.

    Args:
        prompt: A single user turn. Mutually exclusive with *messages*.
        messages: A conversation as message objects or role/content dicts.
        attachments: Images or documents sent along with *prompt*.
        config: Configuration specifying provider and model.
        options: Optional features (tools, max_steps, conversation handle).
        client: Shared HTTP client; one is created and closed per call if omitted.
        sinks: Event sinks notified around each round trip.

    Returns:
        Response with the final text, every step, and aggregate usage.

    Example:
        config = Config(provider="openai", model="gpt-4o-mini")
        response = await generate("Summarize the plot of Hamlet.", config=config)
        print(response.text)
    """
    request = build_request(
        config,
        prompt=prompt,
        messages=messages,
        options=options,
        attachments=attachments,
    )
    async with _client_scope(config, client) as http:
        orchestrator = Orchestrator(
            http, _get_adapter(config), sinks=None if sinks is None else tuple(sinks)
        )
        return await orchestrator.generate(request)


async def generate_structured(
    prompt: str | None = None,
    *,
    messages: Sequence[Any] | None = None,
    attachments: Sequence[Image | Document] = (),
    config: Config,
    options: Options,
    client: HttpClient | None = None,
    sinks: Sequence[EventSink] | None = None,
) -> StructuredResponse:
    """Generate output that decodes into ``options.response_schema``.

    Returns:
        StructuredResponse whose ``structured`` field holds the decoded value
        (a model instance for Pydantic schemas, plain JSON data otherwise).

    Raises:
        ConfigurationError: If no response_schema is set.
        StructuredDecodeError: If the final text does not match the schema.
    """
    request = build_request(
        config,
        prompt=prompt,
        messages=messages,
        options=options,
        attachments=attachments,
        structured=True,
    )
    async with _client_scope(config, client) as http:
        orchestrator = Orchestrator(
            http, _get_adapter(config), sinks=None if sinks is None else tuple(sinks)
        )
        return await orchestrator.generate_structured(request)


def _get_adapter(config: Config) -> OpenAIResponsesAdapter:
    if config.provider == "openai":
        return OpenAIResponsesAdapter()
    raise ConfigurationError(
        f"Unknown provider: {config.provider!r}",
        hint="Supported providers: 'openai'",
    )


@asynccontextmanager
async def _client_scope(
    config: Config, client: HttpClient | None
) -> AsyncIterator[HttpClient]:
    """Use the caller's client as-is, or own a fresh one for this call."""
    if client is not None:
        yield client
        return

    owned = AsyncHttpClient.from_config(config)
    try:
        yield owned
    finally:
        try:
            await owned.aclose()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # Cleanup should never mask the primary failure.
            logger.warning("HTTP client cleanup failed: %s", exc)


__all__ = [
    "AssistantMessage",
    "AsyncHttpClient",
    "CastorError",
    "Config",
    "ConfigurationError",
    "Document",
    "FinishReason",
    "Image",
    "MaxTokensExceededError",
    "Options",
    "Orchestrator",
    "ProviderTool",
    "RateLimitError",
    "RecordingSink",
    "RefusalError",
    "Response",
    "ResponseError",
    "RetryPolicy",
    "Step",
    "StructuredDecodeError",
    "StructuredResponse",
    "SystemMessage",
    "Tool",
    "ToolExecutionError",
    "ToolResultMessage",
    "TransportError",
    "UnknownFinishReasonError",
    "Usage",
    "UserMessage",
    "generate",
    "generate_structured",
]
