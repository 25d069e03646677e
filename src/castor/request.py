"""Request normalization: validate inputs into the per-call request model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from castor.errors import ConfigurationError
from castor.media import Document, Image
from castor.options import Options
from castor.schema import as_schema
from castor.tools import build_registry
from castor.types import AssistantMessage, SystemMessage, ToolResultMessage, UserMessage

if TYPE_CHECKING:
    from collections.abc import Sequence

    from castor.config import Config
    from castor.options import StructuredModeName, ToolChoice
    from castor.schema import Schema
    from castor.tools import ProviderTool, Tool
    from castor.types import Message

_MESSAGE_TYPES = (SystemMessage, UserMessage, AssistantMessage, ToolResultMessage)


@dataclass(frozen=True)
class Request:
    """Normalized input for one generation call.

    Fields are fixed for the call; the message list is the single exception
    and only ever grows through ``add_message``.
    """

    model: str
    messages: list[Message]
    system_prompts: tuple[SystemMessage, ...] = ()
    tools: dict[str, Tool] = field(default_factory=dict)
    provider_tools: tuple[ProviderTool, ...] = ()
    tool_choice: ToolChoice | None = None
    tool_error_handling: bool = True
    schema: Schema | None = None
    #: ``None`` for plain text generation.
    structured_mode: StructuredModeName | None = None
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    max_steps: int = 1
    conversation_id: str | None = None
    store: bool = True
    provider_options: dict[str, Any] = field(default_factory=dict)

    @property
    def structured(self) -> bool:
        return self.structured_mode is not None

    def add_message(self, message: Message) -> None:
        self.messages.append(message)

    def provider_option(self, key: str, default: Any = None) -> Any:
        return self.provider_options.get(key, default)

    def should_store(self, conversation_id: str | None = None) -> bool:
        """Server-side conversations only work with stored responses."""
        if conversation_id or self.conversation_id:
            return True
        return self.store


def coerce_message(value: Any) -> Message:
    """Accept message objects or ``{"role": ..., "content": ...}`` dicts."""
    if isinstance(value, _MESSAGE_TYPES):
        return value
    if isinstance(value, dict):
        role = value.get("role")
        content = value.get("content", "")
        if not isinstance(content, str):
            raise ConfigurationError(
                f"Message content must be a string, got {type(content).__name__}",
                hint="Pass {'role': 'user', 'content': 'Hello'}.",
            )
        if role == "user":
            extra = {
                k: v
                for k, v in value.items()
                if k not in ("role", "content", "images", "documents")
            }
            images, documents = _split_attachments(
                [*value.get("images", ()), *value.get("documents", ())]
            )
            return UserMessage(
                content,
                additional_attributes=extra,
                images=images,
                documents=documents,
            )
        if role == "assistant":
            return AssistantMessage(content)
        if role == "system":
            return SystemMessage(content)
        raise ConfigurationError(
            f"Unsupported message role: {role!r}",
            hint="Dict messages support the roles 'user', 'assistant', and 'system'.",
        )
    raise ConfigurationError(
        f"Expected a message, got {type(value).__name__}",
        hint="Use UserMessage(...), AssistantMessage(...), or a role/content dict.",
    )


def build_request(
    config: Config,
    *,
    prompt: str | None = None,
    messages: Sequence[Any] | None = None,
    options: Options | None = None,
    attachments: Sequence[Image | Document] = (),
    structured: bool = False,
) -> Request:
    """Validate and normalize inputs into a Request.

    Exactly one of *prompt* and *messages* must be provided. *attachments*
    ride along on the prompt's user message.

    Raises:
        ConfigurationError: On conflicting or malformed inputs.
    """
    options = options or Options()

    if attachments and prompt is None:
        raise ConfigurationError(
            "attachments require a prompt",
            hint="Attach media to a UserMessage(images=..., documents=...) instead.",
        )
    if prompt is not None and messages:
        raise ConfigurationError(
            "Pass either prompt or messages, not both",
            hint="Use prompt= for a single user turn or messages= for a conversation.",
        )
    if prompt is not None:
        if not isinstance(prompt, str) or not prompt.strip():
            raise ConfigurationError(
                "prompt is empty or whitespace-only",
                hint="The prompt must be a non-empty string.",
            )
        images, documents = _split_attachments(attachments)
        initial: list[Message] = [
            UserMessage(prompt, images=images, documents=documents)
        ]
    elif messages:
        initial = [coerce_message(m) for m in messages]
    else:
        raise ConfigurationError(
            "A prompt or at least one message is required",
            hint="Pass prompt='...' or messages=[UserMessage('...')].",
        )

    schema = None
    if options.response_schema is not None:
        schema = as_schema(options.response_schema, options.schema_name)
    if structured and schema is None:
        raise ConfigurationError(
            "Structured generation requires a response_schema",
            hint="Pass Options(response_schema=MyModel) to generate_structured().",
        )

    return Request(
        model=config.model,
        messages=initial,
        system_prompts=tuple(SystemMessage(p) for p in options.system_prompts),
        tools=build_registry(options.tools),
        provider_tools=tuple(options.provider_tools),
        tool_choice=options.tool_choice,
        tool_error_handling=options.tool_error_handling,
        schema=schema,
        structured_mode=options.structured_mode if structured else None,
        temperature=options.temperature,
        top_p=options.top_p,
        max_tokens=options.max_tokens,
        max_steps=options.max_steps,
        conversation_id=options.conversation_id,
        store=options.store,
        provider_options=dict(options.provider_options),
    )


def _split_attachments(
    attachments: Sequence[Any],
) -> tuple[tuple[Image, ...], tuple[Document, ...]]:
    images: list[Image] = []
    documents: list[Document] = []
    for item in attachments:
        if isinstance(item, Image):
            images.append(item)
        elif isinstance(item, Document):
            documents.append(item)
        else:
            raise ConfigurationError(
                f"Unsupported attachment: {type(item).__name__}",
                hint="Attach Image(...) or Document(...) values.",
            )
    return tuple(images), tuple(documents)
