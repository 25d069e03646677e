"""Local tools, provider tools, and the tool invoker."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import inspect
import logging
import time
from typing import TYPE_CHECKING, Any

from castor.errors import ConfigurationError, ToolExecutionError
from castor.types import FunctionCall, ToolResult

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)


def _empty_parameters() -> dict[str, Any]:
    return {"type": "object", "properties": {}}


@dataclass(frozen=True)
class Tool:
    """A function the model may call, executed locally.

    ``handler`` receives the decoded arguments as keyword arguments and may be
    sync (run in a worker thread) or async.
    """

    name: str
    description: str
    handler: Callable[..., Any]
    #: JSON Schema for the arguments object.
    parameters: dict[str, Any] = field(default_factory=_empty_parameters)
    strict: bool | None = None

    def __post_init__(self) -> None:
        """Reject tools the provider would refuse anyway."""
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError(
                "Tool name must be a non-empty string",
                hint="Pass Tool(name='weather', description=..., handler=...).",
            )
        if not callable(self.handler):
            raise ConfigurationError(
                f"Tool {self.name!r} handler is not callable",
                hint="Pass a function or coroutine function as handler=.",
            )

    async def run(self, arguments: dict[str, Any]) -> Any:
        if inspect.iscoroutinefunction(self.handler):
            return await self.handler(**arguments)
        result = await asyncio.to_thread(self.handler, **arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


@dataclass(frozen=True)
class ProviderTool:
    """A capability executed by the provider (e.g. ``web_search_preview``)."""

    type: str
    options: dict[str, Any] = field(default_factory=dict)


def build_registry(tools: Iterable[Tool]) -> dict[str, Tool]:
    """Index tools by name, rejecting duplicates."""
    registry: dict[str, Tool] = {}
    for tool in tools:
        if not isinstance(tool, Tool):
            raise ConfigurationError(
                f"Expected Tool, got {type(tool).__name__}",
                hint="Wrap callables with Tool(name=..., description=..., handler=...).",
            )
        if tool.name in registry:
            raise ConfigurationError(
                f"Duplicate tool name: {tool.name!r}",
                hint="Tool names must be unique within a request.",
            )
        registry[tool.name] = tool
    return registry


class ToolInvoker:
    """Resolve and execute function calls, preserving call order.

    With ``capture_errors`` (the default) a failing call yields a ToolResult
    flagged ``is_error`` and siblings still complete. Without it, the first
    failure cancels outstanding siblings and propagates.
    """

    def __init__(self, *, capture_errors: bool = True) -> None:
        self.capture_errors = capture_errors

    async def invoke(
        self, tools: Mapping[str, Tool], calls: Sequence[FunctionCall]
    ) -> list[ToolResult]:
        if not calls:
            return []

        if self.capture_errors:
            results = await asyncio.gather(
                *(self._run_captured(tools, call) for call in calls)
            )
            return list(results)

        tasks = [asyncio.create_task(self._run(tools, call)) for call in calls]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _run(self, tools: Mapping[str, Tool], call: FunctionCall) -> ToolResult:
        tool = tools.get(call.name)
        if tool is None:
            known = ", ".join(sorted(tools)) or "none"
            raise ToolExecutionError(
                f"Tool {call.name!r} not found",
                tool_name=call.name,
                hint=f"Registered tools: {known}",
            )

        arguments = call.parsed_arguments()
        start = time.perf_counter()
        try:
            result = await tool.run(arguments)
        except asyncio.CancelledError:
            raise
        except ToolExecutionError:
            raise
        except Exception as e:
            raise ToolExecutionError(
                f"Tool {call.name!r} failed: {type(e).__name__}: {e}",
                tool_name=call.name,
                arguments=arguments,
            ) from e

        logger.debug(
            "Tool %s (%s) finished in %.3fs",
            call.name,
            call.result_id or call.id,
            time.perf_counter() - start,
        )
        return ToolResult(
            tool_call_id=call.id,
            tool_name=call.name,
            arguments=arguments,
            result=result,
            result_id=call.result_id,
        )

    async def _run_captured(
        self, tools: Mapping[str, Tool], call: FunctionCall
    ) -> ToolResult:
        try:
            return await self._run(tools, call)
        except ToolExecutionError as e:
            logger.warning("Captured tool failure: %s", e)
            return ToolResult(
                tool_call_id=call.id,
                tool_name=call.name,
                arguments=e.arguments or {},
                result=f"Tool execution error: {e}",
                result_id=call.result_id,
                is_error=True,
            )
