"""Test helpers (small, reusable doubles and response builders).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off fake clients as coverage expands.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import json
from typing import Any

from castor.providers.base import RawResponse


@dataclass
class Post:
    path: str
    payload: dict[str, Any]
    side_effect: bool


@dataclass
class ScriptedHttpClient:
    """HttpClient double that replays a scripted sequence for ``responses``.

    Script items may be response bodies (dicts, returned with status 200),
    ``RawResponse`` objects, or exceptions to raise. Conversation creation is
    answered with ``conversation_id`` without consuming the script.
    """

    script: list[dict[str, Any] | RawResponse | BaseException] = field(
        default_factory=list
    )
    conversation_id: str | None = "conv_test"
    posts: list[Post] = field(default_factory=list)

    @property
    def response_posts(self) -> list[Post]:
        return [p for p in self.posts if p.path == "responses"]

    @property
    def conversation_posts(self) -> list[Post]:
        return [p for p in self.posts if p.path == "conversations"]

    async def post(
        self, path: str, payload: dict[str, Any], *, side_effect: bool = False
    ) -> RawResponse:
        self.posts.append(Post(path, payload, side_effect))
        if path == "conversations":
            return RawResponse(200, {"id": self.conversation_id})
        if not self.script:
            raise AssertionError(f"Unexpected POST {path}: script exhausted")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, RawResponse):
            return item
        return RawResponse(200, item)


@dataclass
class RepeatingHttpClient:
    """HttpClient double that answers every ``responses`` POST with one body."""

    body: dict[str, Any]
    conversation_id: str = "conv_test"
    calls: int = 0

    async def post(
        self, path: str, payload: dict[str, Any], *, side_effect: bool = False
    ) -> RawResponse:
        del payload, side_effect
        if path == "conversations":
            return RawResponse(200, {"id": self.conversation_id})
        self.calls += 1
        await asyncio.sleep(0)
        return RawResponse(200, self.body)


# =============================================================================
# Responses API body builders
# =============================================================================


def usage_body(
    input_tokens: int = 10,
    output_tokens: int = 5,
    *,
    cached: int | None = None,
    reasoning: int | None = None,
) -> dict[str, Any]:
    usage: dict[str, Any] = {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
    }
    if cached is not None:
        usage["input_tokens_details"] = {"cached_tokens": cached}
    if reasoning is not None:
        usage["output_tokens_details"] = {"reasoning_tokens": reasoning}
    return usage


def message_item(text: str) -> dict[str, Any]:
    return {
        "type": "message",
        "id": "msg_1",
        "role": "assistant",
        "status": "completed",
        "content": [{"type": "output_text", "text": text, "annotations": []}],
    }


def function_call_item(
    name: str,
    arguments: dict[str, Any] | None = None,
    *,
    call_id: str = "call_1",
    item_id: str = "fc_1",
) -> dict[str, Any]:
    return {
        "type": "function_call",
        "id": item_id,
        "call_id": call_id,
        "name": name,
        "arguments": json.dumps(arguments or {}),
        "status": "completed",
    }


def text_body(
    text: str,
    *,
    response_id: str = "resp_1",
    model: str = "gpt-4o-mini",
    status: str = "completed",
    usage: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "id": response_id,
        "object": "response",
        "model": model,
        "status": status,
        "output": [message_item(text)],
        "usage": usage or usage_body(),
    }


def tool_call_body(
    *items: dict[str, Any],
    response_id: str = "resp_tools",
    status: str = "completed",
    usage: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "id": response_id,
        "object": "response",
        "model": "gpt-4o-mini",
        "status": status,
        "output": list(items),
        "usage": usage or usage_body(),
    }


def refusal_body(refusal: str = "I can't help with that.") -> dict[str, Any]:
    return {
        "id": "resp_refusal",
        "model": "gpt-4o-mini",
        "status": "completed",
        "output": [
            {
                "type": "message",
                "role": "assistant",
                "content": [{"type": "refusal", "refusal": refusal}],
            }
        ],
        "usage": usage_body(),
    }
