"""OpenAI Responses API message adapter."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from castor.errors import ConfigurationError
from castor.finish import classify_finish_reason
from castor.providers.http import parse_rate_limits
from castor.schema import to_strict_schema
from castor.types import (
    AssistantMessage,
    FunctionCall,
    ProviderToolCall,
    Reasoning,
    SystemMessage,
    ToolResultMessage,
    Usage,
    UserMessage,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from castor.media import Document, Image
    from castor.providers.base import RawResponse
    from castor.request import Request
    from castor.types import FinishReason, Message, RateLimit, ToolCall

logger = logging.getLogger(__name__)

#: Model families that accept ``text.format = {"type": "json_schema"}``.
JSON_SCHEMA_MODEL_PREFIXES = (
    "gpt-4o",
    "gpt-4.1",
    "gpt-5",
    "chatgpt-4o",
    "o1",
    "o3",
    "o4",
)

#: Output items executed by the provider and replayed as-is.
PROVIDER_TOOL_CALL_TYPES = frozenset({"web_search_call"})

_PASSTHROUGH_TOOL_CHOICES = frozenset({"auto", "required", "none"})

# Provider options forwarded verbatim when set.
_PASSTHROUGH_OPTIONS = (
    "metadata",
    "parallel_tool_calls",
    "max_tool_calls",
    "prompt_cache_key",
    "previous_response_id",
    "truncation",
    "reasoning",
)


def supports_json_schema(model: str) -> bool:
    return model.lower().startswith(JSON_SCHEMA_MODEL_PREFIXES)


def map_tool_choice(choice: Any) -> Any:
    """Map a tool-choice policy to the Responses API shape."""
    if choice is None:
        return None
    if isinstance(choice, str):
        if choice in _PASSTHROUGH_TOOL_CHOICES:
            return choice
        return {"type": "function", "name": choice}
    if isinstance(choice, dict):
        if "type" in choice:
            return dict(choice)
        if isinstance(choice.get("name"), str):
            return {"type": "function", "name": choice["name"]}
    raise ConfigurationError(
        f"Unsupported tool_choice: {choice!r}",
        hint="Use 'auto', 'required', 'none', a tool name, or {'name': ...}.",
    )


class OpenAIResponsesAdapter:
    """Maps castor messages, tools, and schemas onto the ``responses`` endpoint."""

    provider = "openai"
    responses_path = "responses"
    conversations_path = "conversations"

    # -- outbound -----------------------------------------------------------

    def map_outbound(
        self,
        messages: Sequence[Message],
        system_prompts: Sequence[SystemMessage],
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for message in [*system_prompts, *messages]:
            items.extend(self._map_message(message))
        return items

    def _map_message(self, message: Message) -> list[dict[str, Any]]:
        match message:
            case SystemMessage(content=content):
                return [{"role": "system", "content": content}]
            case UserMessage(
                content=content,
                additional_attributes=extra,
                images=images,
                documents=documents,
            ):
                parts = [
                    {"type": "input_text", "text": content},
                    *(_map_image(image) for image in images),
                    *(_map_document(document) for document in documents),
                ]
                return [{"role": "user", "content": parts, **extra}]
            case AssistantMessage(content=content, tool_calls=tool_calls):
                items: list[dict[str, Any]] = []
                if content:
                    items.append({"role": "assistant", "content": content})
                items.extend(self._map_assistant_tool_call(c) for c in tool_calls)
                return items
            case ToolResultMessage(tool_results=results):
                return [
                    {
                        "type": "function_call_output",
                        "call_id": r.result_id or r.tool_call_id,
                        "output": r.output_text(),
                    }
                    for r in results
                ]
        raise ConfigurationError(
            f"Could not map message type {type(message).__name__}",
            hint="Messages must be System, User, Assistant, or ToolResult messages.",
        )

    def _map_assistant_tool_call(self, call: ToolCall) -> dict[str, Any]:
        match call:
            case Reasoning(id=id_, summary=summary):
                return {"type": "reasoning", "id": id_, "summary": list(summary)}
            case ProviderToolCall(id=id_, type=type_, status=status, action=action):
                return {"id": id_, "status": status, "type": type_, "action": action}
            case FunctionCall(id=id_, name=name, arguments=arguments, result_id=result_id):
                return {
                    "id": id_,
                    "call_id": result_id,
                    "type": "function_call",
                    "name": name,
                    "arguments": arguments,
                }
        raise ConfigurationError(
            f"Could not map tool call type {type(call).__name__}",
            hint="Tool calls must be FunctionCall, Reasoning, or ProviderToolCall.",
        )

    def map_tools(self, request: Request) -> list[dict[str, Any]]:
        """Provider tools first, then local function tools."""
        mapped: list[dict[str, Any]] = [
            {"type": tool.type, **tool.options} for tool in request.provider_tools
        ]
        for tool in request.tools.values():
            spec: dict[str, Any] = {
                "type": "function",
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            }
            if tool.strict is not None:
                spec["strict"] = tool.strict
            mapped.append(spec)
        return mapped

    def resolve_structured_mode(self, request: Request) -> str | None:
        """Return ``"structured"``, ``"json"``, or None for text requests."""
        mode = request.structured_mode
        if mode is None:
            return None
        if mode == "auto":
            return "structured" if supports_json_schema(request.model) else "json"
        return mode

    def schema_system_prompts(self, request: Request) -> tuple[SystemMessage, ...]:
        """Extra system prompts needed to steer JSON mode toward the schema."""
        if self.resolve_structured_mode(request) != "json" or request.schema is None:
            return ()
        return (
            SystemMessage(
                "Respond only with a JSON object that matches this JSON Schema:\n"
                + json.dumps(request.schema.to_dict())
            ),
        )

    def _text_format(self, request: Request) -> dict[str, Any] | None:
        mode = self.resolve_structured_mode(request)
        if mode is None or request.schema is None:
            return None
        if mode == "json":
            return {"format": {"type": "json_object"}}

        strict = request.provider_option("schema.strict")
        schema = request.schema.to_dict()
        if strict is True:
            schema = to_strict_schema(schema)
        response_format: dict[str, Any] = {
            "type": "json_schema",
            "name": request.schema.name(),
            "schema": schema,
        }
        if strict is not None:
            response_format["strict"] = strict
        return {"format": response_format}

    def build_payload(
        self,
        request: Request,
        input_items: list[dict[str, Any]],
        *,
        conversation_id: str | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model,
            "max_output_tokens": request.max_tokens,
            "input": input_items,
        }
        optional: dict[str, Any] = {
            "temperature": request.temperature,
            "top_p": request.top_p,
            **{key: request.provider_option(key) for key in _PASSTHROUGH_OPTIONS},
            "tools": self.map_tools(request) or None,
            "tool_choice": map_tool_choice(request.tool_choice),
            "store": request.should_store(conversation_id),
            "text": self._text_format(request),
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        if conversation_id is not None:
            payload["conversation"] = conversation_id
        return payload

    def conversation_payload(self, request: Request) -> dict[str, Any]:
        metadata = request.provider_option("metadata")
        return {"metadata": metadata} if metadata else {}

    # -- inbound ------------------------------------------------------------

    def output_items(self, body: dict[str, Any]) -> list[dict[str, Any]]:
        output = body.get("output")
        if not isinstance(output, list):
            return []
        return [item for item in output if isinstance(item, dict)]

    def map_tool_calls(self, output_items: Sequence[dict[str, Any]]) -> list[ToolCall]:
        calls: list[ToolCall] = []
        for item in output_items:
            item_type = item.get("type")
            if item_type == "function_call":
                calls.append(
                    FunctionCall(
                        id=str(item.get("id") or item.get("call_id") or ""),
                        name=str(item.get("name") or ""),
                        arguments=_arguments_text(item.get("arguments")),
                        result_id=item.get("call_id"),
                    )
                )
            elif item_type == "reasoning":
                summary = item.get("summary") or []
                calls.append(
                    Reasoning(
                        id=str(item.get("id") or ""),
                        summary=tuple(s for s in summary if isinstance(s, dict)),
                    )
                )
            elif item_type in PROVIDER_TOOL_CALL_TYPES:
                calls.append(
                    ProviderToolCall(
                        id=str(item.get("id") or ""),
                        type=item_type,
                        status=item.get("status"),
                        action=item.get("action"),
                    )
                )
            elif item_type != "message":
                logger.warning("Skipping unrecognized output item type: %r", item_type)
        return calls

    def map_finish_reason(self, body: Any) -> FinishReason:
        return classify_finish_reason(body)

    def _last_message_content(self, body: dict[str, Any]) -> dict[str, Any] | None:
        messages = [i for i in self.output_items(body) if i.get("type") == "message"]
        if not messages:
            return None
        content = messages[-1].get("content")
        if not isinstance(content, list) or not content:
            return None
        first = content[0]
        return first if isinstance(first, dict) else None

    def extract_text(self, body: dict[str, Any]) -> str:
        part = self._last_message_content(body)
        if part is None:
            return ""
        text = part.get("text")
        return text if isinstance(text, str) else ""

    def extract_refusal(self, body: dict[str, Any]) -> str | None:
        part = self._last_message_content(body)
        if part is None or part.get("type") != "refusal":
            return None
        refusal = part.get("refusal")
        return refusal if isinstance(refusal, str) and refusal else "Reason unknown."

    def extract_usage(self, body: dict[str, Any]) -> Usage:
        usage = body.get("usage")
        if not isinstance(usage, dict):
            return Usage()
        input_details = usage.get("input_tokens_details")
        output_details = usage.get("output_tokens_details") or usage.get(
            "output_token_details"
        )
        cached = _int_or_none(_get(input_details, "cached_tokens"))
        return Usage(
            prompt_tokens=(_int_or_none(usage.get("input_tokens")) or 0) - (cached or 0),
            completion_tokens=_int_or_none(usage.get("output_tokens")) or 0,
            cache_read_input_tokens=cached,
            thought_tokens=_int_or_none(_get(output_details, "reasoning_tokens")),
        )

    def extract_rate_limits(self, raw: RawResponse) -> tuple[RateLimit, ...]:
        return parse_rate_limits(raw.headers)


def _map_image(image: Image) -> dict[str, Any]:
    if image.file_id:
        part: dict[str, Any] = {"type": "input_image", "file_id": image.file_id}
    else:
        part = {"type": "input_image", "image_url": image.url or image.data_url()}
    if image.detail is not None:
        part["detail"] = image.detail
    return part


def _map_document(document: Document) -> dict[str, Any]:
    if document.file_id:
        return {"type": "input_file", "file_id": document.file_id}
    if document.url:
        return {"type": "input_file", "file_url": document.url}
    return {
        "type": "input_file",
        "filename": document.filename or "document",
        "file_data": document.data_url(),
    }


def _arguments_text(value: Any) -> str:
    """Function-call arguments as a JSON string, whatever shape arrived."""
    if isinstance(value, str):
        return value or "{}"
    if value is None:
        return "{}"
    return json.dumps(value)


def _get(mapping: Any, key: str) -> Any:
    return mapping.get(key) if isinstance(mapping, dict) else None


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return None
