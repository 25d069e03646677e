"""Append-only step accumulation and response finalization."""

from __future__ import annotations

from dataclasses import replace
from functools import reduce
import operator
from typing import TYPE_CHECKING

from castor.errors import CastorError
from castor.types import Response, StructuredResponse, Usage

if TYPE_CHECKING:
    from castor.schema import Schema
    from castor.types import Step


class ResponseAccumulator:
    """Ordered collection of steps for one generation call."""

    def __init__(self) -> None:
        self._steps: list[Step] = []

    @property
    def steps(self) -> tuple[Step, ...]:
        return tuple(self._steps)

    def add_step(self, step: Step) -> None:
        self._steps.append(step)

    def step_count(self) -> int:
        return len(self._steps)

    def total_usage(self) -> Usage:
        return reduce(operator.add, (s.usage for s in self._steps), Usage())

    def finalize(self) -> Response:
        """Build the text response from the last step."""
        last = self._last_step()
        return Response(
            text=last.text,
            finish_reason=last.finish_reason,
            steps=self.steps,
            usage=self.total_usage(),
            meta=last.meta,
            messages=last.messages,
            tool_calls=last.tool_calls,
            tool_results=last.tool_results,
        )

    def finalize_structured(self, schema: Schema) -> StructuredResponse:
        """Build the structured response, decoding the last step's text.

        Raises:
            StructuredDecodeError: If the text does not decode per *schema*.
        """
        last = self._last_step()
        structured = schema.decode(last.text)
        final = replace(last, structured=structured)
        return StructuredResponse(
            text=last.text,
            finish_reason=last.finish_reason,
            steps=(*self._steps[:-1], final),
            usage=self.total_usage(),
            meta=last.meta,
            messages=last.messages,
            tool_calls=last.tool_calls,
            tool_results=last.tool_results,
            structured=structured,
        )

    def _last_step(self) -> Step:
        if not self._steps:
            raise CastorError("Cannot finalize a response without steps")
        return self._steps[-1]
