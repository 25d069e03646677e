"""Per-call generation options."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from castor.errors import ConfigurationError
from castor.tools import ProviderTool, Tool

StructuredModeName = Literal["auto", "structured", "json"]
ToolChoice = Literal["auto", "required", "none"] | str | dict[str, Any]


@dataclass(frozen=True)
class Options:
    """Optional features for ``generate()`` and ``generate_structured()``."""

    #: System prompts, sent in order ahead of the conversation.
    system_prompts: tuple[str, ...] | list[str] | str = ()
    #: Pydantic ``BaseModel`` subclass, JSON Schema dict, or Schema object.
    response_schema: Any = None
    #: Name sent with the schema; defaults to the model class name or "output".
    schema_name: str | None = None
    structured_mode: StructuredModeName = "auto"

    tools: tuple[Tool, ...] | list[Tool] = ()
    provider_tools: tuple[ProviderTool, ...] | list[ProviderTool] = ()
    tool_choice: ToolChoice | None = None
    #: When False, the first tool failure aborts the call instead of being
    #: reported back to the model.
    tool_error_handling: bool = True

    temperature: float | None = None
    top_p: float | None = None
    #: Hard limit on output tokens per round trip.
    max_tokens: int | None = None
    #: Upper bound on provider round trips for this call.
    max_steps: int = 1

    #: Existing server-side conversation handle to continue.
    conversation_id: str | None = None
    store: bool = True
    #: Pass-through provider fields (``metadata``, ``reasoning``, ``truncation``,
    #: ``schema.strict``, ...).
    provider_options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate option shapes early for clear errors."""
        prompts = (
            (self.system_prompts,)
            if isinstance(self.system_prompts, str)
            else tuple(self.system_prompts)
        )
        if not all(isinstance(p, str) for p in prompts):
            raise ConfigurationError(
                "system_prompts must be strings",
                hint="Pass system_prompts=('You are a concise assistant.',)",
            )
        object.__setattr__(self, "system_prompts", prompts)
        object.__setattr__(self, "tools", tuple(self.tools))
        object.__setattr__(self, "provider_tools", tuple(self.provider_tools))

        if not isinstance(self.max_steps, int) or self.max_steps < 1:
            raise ConfigurationError(
                f"max_steps must be an integer >= 1, got {self.max_steps!r}",
                hint="max_steps bounds how many provider round trips one call may make.",
            )
        if self.max_tokens is not None and (
            not isinstance(self.max_tokens, int) or self.max_tokens <= 0
        ):
            raise ConfigurationError(
                "max_tokens must be a positive integer",
                hint="Pass max_tokens=2048 or omit it to use the provider default.",
            )
        if self.structured_mode not in ("auto", "structured", "json"):
            raise ConfigurationError(
                f"Unknown structured_mode: {self.structured_mode!r}",
                hint="Use 'auto', 'structured', or 'json'.",
            )
        if self.conversation_id is not None and (
            not isinstance(self.conversation_id, str) or not self.conversation_id
        ):
            raise ConfigurationError(
                "conversation_id must be a non-empty string",
                hint="Pass the conversation id from a previous Response.meta.",
            )
        if not isinstance(self.provider_options, dict):
            raise ConfigurationError(
                "provider_options must be a dict",
                hint="Pass provider_options={'metadata': {...}}.",
            )
