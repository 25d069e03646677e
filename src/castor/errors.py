"""Exception hierarchy for Castor."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator


class CastorError(Exception):
    """Base exception for all Castor errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(CastorError):
    """Request or configuration was rejected before any network call."""


class TransportError(CastorError):
    """Network, authentication, or HTTP-level failure talking to a provider.

    Carries retry metadata so the HTTP client can perform bounded retries
    without brittle substring matching. The step loop never retries.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
        retry_after_s: float | None = None,
        provider: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable
        self.status_code = status_code
        self.retry_after_s = retry_after_s
        self.provider = provider
        self.phase = phase


class RateLimitError(TransportError):
    """Rate limit exceeded (HTTP 429)."""


class ResponseError(CastorError):
    """The provider answered, but the answer cannot be continued or finalized."""


class RefusalError(ResponseError):
    """The provider declined to answer."""

    def __init__(self, refusal: str, *, hint: str | None = None) -> None:
        super().__init__(f"Provider refused the request: {refusal}", hint=hint)
        self.refusal = refusal


class MaxTokensExceededError(ResponseError):
    """Generation stopped because the output token limit was reached."""


class UnknownFinishReasonError(ResponseError):
    """The provider reported a completion status Castor does not understand."""

    def __init__(
        self, message: str, *, status: str | None = None, hint: str | None = None
    ) -> None:
        super().__init__(message, hint=hint)
        self.status = status


class ToolExecutionError(CastorError):
    """A tool could not be resolved or raised while running."""

    def __init__(
        self,
        message: str,
        *,
        tool_name: str | None = None,
        arguments: dict[str, Any] | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.tool_name = tool_name
        self.arguments = arguments


class StructuredDecodeError(CastorError):
    """Final text did not decode into the declared schema shape."""

    def __init__(self, message: str, *, text: str, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.text = text


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
