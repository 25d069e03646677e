"""Value objects shared by the step loop and provider adapters.

Everything here is immutable. The only mutable state in a generation call is
the request's message list (append-only) and the transport's bookkeeping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import json
from typing import TYPE_CHECKING, Any

from castor.errors import ToolExecutionError

if TYPE_CHECKING:
    from castor.media import Document, Image


class FinishReason(str, Enum):
    """Provider completion status, normalized."""

    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    UNKNOWN = "unknown"


# =============================================================================
# Tool calls and results
# =============================================================================


@dataclass(frozen=True)
class FunctionCall:
    """A locally executed function requested by the model."""

    id: str
    name: str
    arguments: str = "{}"
    #: Correlates the eventual tool output (``call_id`` on the Responses API).
    result_id: str | None = None

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the JSON argument payload."""
        if not self.arguments:
            return {}
        try:
            value = json.loads(self.arguments)
        except (json.JSONDecodeError, TypeError) as e:
            raise ToolExecutionError(
                f"Invalid JSON arguments for tool {self.name!r}: {e}",
                tool_name=self.name,
            ) from e
        if not isinstance(value, dict):
            raise ToolExecutionError(
                f"Arguments for tool {self.name!r} must be a JSON object",
                tool_name=self.name,
            )
        return value


@dataclass(frozen=True)
class Reasoning:
    """A reasoning trace item replayed so reasoning models keep context."""

    id: str
    summary: tuple[dict[str, Any], ...] = ()


@dataclass(frozen=True)
class ProviderToolCall:
    """A tool executed by the provider itself (e.g. web search)."""

    id: str
    type: str
    status: str | None = None
    action: dict[str, Any] | None = None


ToolCall = FunctionCall | Reasoning | ProviderToolCall


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one local tool invocation."""

    tool_call_id: str
    tool_name: str
    arguments: dict[str, Any]
    result: Any
    result_id: str | None = None
    is_error: bool = False

    def output_text(self) -> str:
        """Render the result payload as the string providers expect."""
        if isinstance(self.result, str):
            return self.result
        return json.dumps(self.result, default=str)


# =============================================================================
# Messages
# =============================================================================


@dataclass(frozen=True)
class SystemMessage:
    content: str


@dataclass(frozen=True)
class UserMessage:
    content: str
    additional_attributes: dict[str, Any] = field(default_factory=dict)
    images: tuple[Image, ...] = ()
    documents: tuple[Document, ...] = ()


@dataclass(frozen=True)
class AssistantMessage:
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()


@dataclass(frozen=True)
class ToolResultMessage:
    tool_results: tuple[ToolResult, ...]


Message = SystemMessage | UserMessage | AssistantMessage | ToolResultMessage


# =============================================================================
# Usage and metadata
# =============================================================================


@dataclass(frozen=True)
class Usage:
    """Token accounting for one step (or the sum of several).

    ``prompt_tokens`` excludes cached input tokens; those are reported
    separately in ``cache_read_input_tokens``.
    """

    prompt_tokens: int = 0
    completion_tokens: int = 0
    cache_read_input_tokens: int | None = None
    thought_tokens: int | None = None

    def __add__(self, other: Usage) -> Usage:
        if not isinstance(other, Usage):
            return NotImplemented
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            cache_read_input_tokens=_add_optional(
                self.cache_read_input_tokens, other.cache_read_input_tokens
            ),
            thought_tokens=_add_optional(self.thought_tokens, other.thought_tokens),
        )


def _add_optional(a: int | None, b: int | None) -> int | None:
    if a is None and b is None:
        return None
    return (a or 0) + (b or 0)


@dataclass(frozen=True)
class RateLimit:
    """Snapshot of one provider rate-limit bucket."""

    name: str
    limit: int | None = None
    remaining: int | None = None
    resets_at: datetime | None = None


@dataclass(frozen=True)
class Meta:
    id: str | None = None
    model: str | None = None
    rate_limits: tuple[RateLimit, ...] = ()
    conversation_id: str | None = None


# =============================================================================
# Steps and responses
# =============================================================================


@dataclass(frozen=True)
class Step:
    """One provider round trip and everything derived from it."""

    text: str
    finish_reason: FinishReason
    usage: Usage
    meta: Meta
    messages: tuple[Message, ...]
    system_prompts: tuple[SystemMessage, ...]
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()
    structured: Any = None


@dataclass(frozen=True)
class Response:
    """Final aggregated result of a text generation call."""

    text: str
    finish_reason: FinishReason
    steps: tuple[Step, ...]
    usage: Usage
    meta: Meta
    messages: tuple[Message, ...]
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()


@dataclass(frozen=True)
class StructuredResponse(Response):
    """Response whose final text decoded into the declared schema."""

    structured: Any = None
