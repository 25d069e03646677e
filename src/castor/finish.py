"""Finish-reason classification for Responses-style payloads."""

from __future__ import annotations

from typing import Any

from castor.types import FinishReason

#: Output item types that require local work before the model can continue.
PENDING_TOOL_ITEM_TYPES = frozenset({"function_call"})

_STATUS_MAP: dict[str, FinishReason] = {
    "completed": FinishReason.STOP,
    "incomplete": FinishReason.LENGTH,
}

# ``incomplete`` is only a token-limit signal when the provider says so (or
# says nothing). Other reasons are not something a caller can fix by raising
# max_tokens.
_LENGTH_REASONS = frozenset({"max_output_tokens", "max_tokens", ""})


def has_pending_tool_calls(body: Any) -> bool:
    """Return True when *body* carries at least one pending tool-call item."""
    if not isinstance(body, dict):
        return False
    output = body.get("output")
    if not isinstance(output, list):
        return False
    return any(
        isinstance(item, dict) and item.get("type") in PENDING_TOOL_ITEM_TYPES
        for item in output
    )


def classify_finish_reason(body: Any) -> FinishReason:
    """Classify a raw response body. Never raises.

    Pending tool calls win over any top-level status: providers report
    ``completed`` while still returning actionable function calls.
    """
    if has_pending_tool_calls(body):
        return FinishReason.TOOL_CALLS
    if not isinstance(body, dict):
        return FinishReason.UNKNOWN

    status = body.get("status")
    if not isinstance(status, str):
        return FinishReason.UNKNOWN
    reason = _STATUS_MAP.get(status.lower(), FinishReason.UNKNOWN)

    if reason is FinishReason.LENGTH:
        details = body.get("incomplete_details")
        detail = details.get("reason") if isinstance(details, dict) else None
        if not isinstance(detail, str):
            detail = ""
        if detail.lower() not in _LENGTH_REASONS:
            return FinishReason.UNKNOWN
    return reason
