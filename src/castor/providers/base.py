"""Provider seams: the HTTP client and message adapter contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from castor.request import Request
    from castor.types import FinishReason, Message, RateLimit, SystemMessage, ToolCall, Usage


@dataclass(frozen=True)
class RawResponse:
    """A decoded provider HTTP response."""

    status_code: int
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def successful(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> dict[str, Any]:
        """Return the body when it is a JSON object, else an empty dict."""
        return self.body if isinstance(self.body, dict) else {}


@runtime_checkable
class HttpClient(Protocol):
    """Minimal transport: POST a JSON payload to a path relative to the API root."""

    async def post(
        self, path: str, payload: dict[str, Any], *, side_effect: bool = False
    ) -> RawResponse:
        """Send *payload*; raise ``TransportError`` on network/auth failure."""
        ...


@runtime_checkable
class MessageAdapter(Protocol):
    """Translate between Castor value objects and one provider's wire shapes."""

    provider: str
    responses_path: str
    conversations_path: str

    def map_outbound(
        self,
        messages: Sequence[Message],
        system_prompts: Sequence[SystemMessage],
    ) -> list[dict[str, Any]]:
        """Map system prompts followed by messages into input items."""
        ...

    def map_tool_calls(self, output_items: Sequence[dict[str, Any]]) -> list[ToolCall]:
        """Parse tool-call-like output items, preserving order."""
        ...

    def map_finish_reason(self, body: Any) -> FinishReason:
        """Classify the completion status of a raw response body."""
        ...

    def build_payload(
        self,
        request: Request,
        input_items: list[dict[str, Any]],
        *,
        conversation_id: str | None,
    ) -> dict[str, Any]:
        """Assemble the full request payload for one round trip."""
        ...

    def conversation_payload(self, request: Request) -> dict[str, Any]:
        """Payload used to create a server-side conversation."""
        ...

    def schema_system_prompts(self, request: Request) -> tuple[SystemMessage, ...]:
        """System prompts the adapter adds to steer structured output."""
        ...

    def extract_text(self, body: dict[str, Any]) -> str: ...  # noqa: D102
    def extract_refusal(self, body: dict[str, Any]) -> str | None: ...  # noqa: D102
    def extract_usage(self, body: dict[str, Any]) -> Usage: ...  # noqa: D102
    def extract_rate_limits(self, raw: RawResponse) -> tuple[RateLimit, ...]: ...  # noqa: D102
    def output_items(self, body: dict[str, Any]) -> list[dict[str, Any]]: ...  # noqa: D102
