"""The step loop: send, classify, run tools, repeat until done or out of steps."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from castor.accumulator import ResponseAccumulator
from castor.errors import (
    ConfigurationError,
    MaxTokensExceededError,
    RefusalError,
    UnknownFinishReasonError,
)
from castor.events import EventDispatcher, RequestSent, ResponseReceived, default_sinks
from castor.providers._errors import error_from_body
from castor.tools import ToolInvoker
from castor.transport import select_transport
from castor.types import (
    AssistantMessage,
    FinishReason,
    FunctionCall,
    Meta,
    Reasoning,
    Step,
    ToolResultMessage,
)

if TYPE_CHECKING:
    from castor.events import EventSink
    from castor.providers.base import HttpClient, MessageAdapter, RawResponse
    from castor.request import Request
    from castor.transport import ConversationTransport
    from castor.types import Response, StructuredResponse, SystemMessage, ToolCall, ToolResult

logger = logging.getLogger(__name__)


class Orchestrator:
    """Drive one request through as many provider round trips as it needs.

    The client and adapter are passed in per instance and hold no per-call
    state, so one Orchestrator may serve concurrent calls. Each call owns its
    request, transport, and accumulator.
    """

    def __init__(
        self,
        client: HttpClient,
        adapter: MessageAdapter,
        *,
        sinks: tuple[EventSink, ...] | list[EventSink] | None = None,
    ) -> None:
        self.client = client
        self.adapter = adapter
        self.events = EventDispatcher(default_sinks() if sinks is None else sinks)

    async def generate(self, request: Request) -> Response:
        """Run a text generation call."""
        if request.structured:
            raise ConfigurationError(
                "Request was built for structured output",
                hint="Use generate_structured() for requests with a response schema.",
            )
        accumulator = await self._run(request, mode="text")
        return accumulator.finalize()

    async def generate_structured(self, request: Request) -> StructuredResponse:
        """Run a structured generation call and decode the final text."""
        if request.schema is None or not request.structured:
            raise ConfigurationError(
                "Structured generation requires a response_schema",
                hint="Build the request with structured=True and a response_schema.",
            )
        accumulator = await self._run(request, mode="structured")
        return accumulator.finalize_structured(request.schema)

    async def _run(self, request: Request, *, mode: str) -> ResponseAccumulator:
        adapter = self.adapter
        transport = await select_transport(self.client, adapter, request)
        system_prompts = (
            *request.system_prompts,
            *adapter.schema_system_prompts(request),
        )
        invoker = ToolInvoker(capture_errors=request.tool_error_handling)
        accumulator = ResponseAccumulator()

        while True:
            step_number = accumulator.step_count() + 1
            raw = await self._send(request, transport, system_prompts, mode, step_number)
            body = raw.json()

            refusal = adapter.extract_refusal(body)
            if refusal is not None:
                raise RefusalError(refusal)

            finish_reason = adapter.map_finish_reason(body)
            logger.debug("Step %d finished with %s", step_number, finish_reason.value)
            if finish_reason is FinishReason.LENGTH:
                raise MaxTokensExceededError(
                    f"{adapter.provider}: max tokens exceeded",
                    hint="Raise Options.max_tokens or shorten the prompt.",
                )
            if finish_reason is FinishReason.UNKNOWN:
                status = body.get("status")
                raise UnknownFinishReasonError(
                    f"{adapter.provider}: unknown finish reason (status={status!r})",
                    status=status if isinstance(status, str) else None,
                )

            text = adapter.extract_text(body)
            calls = adapter.map_tool_calls(adapter.output_items(body))
            request.add_message(AssistantMessage(text, tuple(calls)))

            results: tuple[ToolResult, ...] = ()
            if finish_reason is FinishReason.TOOL_CALLS:
                function_calls = [c for c in calls if isinstance(c, FunctionCall)]
                results = tuple(await invoker.invoke(request.tools, function_calls))
                request.add_message(ToolResultMessage(results))

            accumulator.add_step(
                self._build_step(
                    request,
                    raw,
                    body,
                    text=text,
                    finish_reason=finish_reason,
                    calls=calls,
                    results=results,
                    system_prompts=system_prompts,
                    conversation_id=transport.conversation_id,
                )
            )

            if finish_reason is FinishReason.STOP:
                break
            if accumulator.step_count() >= request.max_steps:
                logger.debug("Step budget of %d exhausted", request.max_steps)
                break

        return accumulator

    async def _send(
        self,
        request: Request,
        transport: ConversationTransport,
        system_prompts: tuple[SystemMessage, ...],
        mode: str,
        step_number: int,
    ) -> RawResponse:
        adapter = self.adapter
        input_items = transport.outbound(adapter, request.messages, system_prompts)
        payload = adapter.build_payload(
            request, input_items, conversation_id=transport.conversation_id
        )

        self.events.emit(
            RequestSent(
                provider=adapter.provider,
                mode=mode,
                step=step_number,
                path=adapter.responses_path,
                payload=payload,
            )
        )
        start = time.perf_counter()
        # The server appends input items to an attached conversation, so a
        # blind resend after an ambiguous failure would duplicate them.
        raw = await self.client.post(
            adapter.responses_path,
            payload,
            side_effect=transport.conversation_id is not None,
        )
        self.events.emit(
            ResponseReceived(
                provider=adapter.provider,
                mode=mode,
                step=step_number,
                status_code=raw.status_code,
                body=raw.body,
                duration_s=time.perf_counter() - start,
            )
        )

        error = error_from_body(
            status_code=raw.status_code,
            body=raw.body,
            headers=raw.headers,
            provider=adapter.provider,
            phase=adapter.responses_path,
        )
        if error is not None:
            raise error
        return raw

    def _build_step(
        self,
        request: Request,
        raw: RawResponse,
        body: dict[str, Any],
        *,
        text: str,
        finish_reason: FinishReason,
        calls: list[ToolCall],
        results: tuple[ToolResult, ...],
        system_prompts: tuple[SystemMessage, ...],
        conversation_id: str | None,
    ) -> Step:
        adapter = self.adapter
        return Step(
            text=text,
            finish_reason=finish_reason,
            usage=adapter.extract_usage(body),
            meta=Meta(
                id=body.get("id"),
                model=body.get("model"),
                rate_limits=adapter.extract_rate_limits(raw),
                conversation_id=conversation_id,
            ),
            messages=tuple(request.messages),
            system_prompts=system_prompts,
            tool_calls=tuple(c for c in calls if not isinstance(c, Reasoning)),
            tool_results=results,
        )
