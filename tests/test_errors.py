from __future__ import annotations

import pytest

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
    _walk_exception_chain,
)

pytestmark = pytest.mark.unit


def test_transport_error_structured_metadata() -> None:
    err = TransportError(
        "boom",
        hint="do this",
        retryable=True,
        status_code=429,
        retry_after_s=2.0,
        provider="openai",
        phase="responses",
    )

    assert str(err) == "boom"
    assert err.hint == "do this"
    assert err.retryable is True
    assert err.status_code == 429
    assert err.retry_after_s == 2.0
    assert err.provider == "openai"
    assert err.phase == "responses"


def test_transport_error_defaults_to_none() -> None:
    err = TransportError("fail")
    assert err.hint is None
    assert err.retryable is None
    assert err.status_code is None
    assert err.retry_after_s is None
    assert err.provider is None
    assert err.phase is None


def test_subclass_hierarchy() -> None:
    assert issubclass(RateLimitError, TransportError)
    for cls in (RefusalError, MaxTokensExceededError, UnknownFinishReasonError):
        assert issubclass(cls, ResponseError)
    for cls in (
        ConfigurationError,
        TransportError,
        ResponseError,
        ToolExecutionError,
        StructuredDecodeError,
    ):
        assert issubclass(cls, CastorError)


def test_refusal_error_carries_refusal_text() -> None:
    err = RefusalError("Not allowed.")
    assert err.refusal == "Not allowed."
    assert "Not allowed." in str(err)


def test_payload_carrying_errors() -> None:
    tool_err = ToolExecutionError("bad", tool_name="weather", arguments={"city": "Oslo"})
    decode_err = StructuredDecodeError("bad json", text="{")
    unknown = UnknownFinishReasonError("odd", status="paused")

    assert (tool_err.tool_name, tool_err.arguments) == ("weather", {"city": "Oslo"})
    assert decode_err.text == "{"
    assert unknown.status == "paused"


def test_exception_chain_walk_handles_cycles() -> None:
    outer = RuntimeError("outer")
    inner = ValueError("inner")
    outer.__cause__ = inner
    inner.__context__ = outer

    assert list(_walk_exception_chain(outer)) == [outer, inner]
