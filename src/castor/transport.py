"""Conversation transport strategies.

``FullHistoryTransport`` resends system prompts and every message on each
round trip. ``IncrementalConversationTransport`` relies on a server-side
conversation handle and only sends what the server has not seen yet.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from castor.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from castor.providers.base import HttpClient, MessageAdapter
    from castor.request import Request
    from castor.types import Message, SystemMessage

logger = logging.getLogger(__name__)


class ConversationTransport(Protocol):
    """Produces the outbound input batch for the next round trip."""

    conversation_id: str | None

    def outbound(
        self,
        adapter: MessageAdapter,
        messages: Sequence[Message],
        system_prompts: Sequence[SystemMessage],
    ) -> list[dict[str, Any]]: ...


class FullHistoryTransport:
    """Stateless: every send carries the complete mapped history."""

    conversation_id: str | None = None

    def outbound(
        self,
        adapter: MessageAdapter,
        messages: Sequence[Message],
        system_prompts: Sequence[SystemMessage],
    ) -> list[dict[str, Any]]:
        return adapter.map_outbound(messages, system_prompts)


class IncrementalConversationTransport:
    """Send only messages appended since the previous send.

    The first send includes the system prompts and every message present at
    that point. ``last_sent_count`` only moves forward, so a message is never
    mapped twice on this transport.
    """

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id: str | None = conversation_id
        self.last_sent_count = 0

    def outbound(
        self,
        adapter: MessageAdapter,
        messages: Sequence[Message],
        system_prompts: Sequence[SystemMessage],
    ) -> list[dict[str, Any]]:
        if self.last_sent_count == 0:
            start, prompts = 0, system_prompts
        else:
            start, prompts = self.last_sent_count, ()

        pending = messages[start:]
        items = adapter.map_outbound(pending, prompts)
        self.last_sent_count = len(messages)
        logger.debug(
            "Conversation %s: sending %d new message(s)",
            self.conversation_id,
            len(pending),
        )
        return items


async def create_conversation(
    client: HttpClient, adapter: MessageAdapter, request: Request
) -> str:
    """Create a server-side conversation and return its handle."""
    raw = await client.post(
        adapter.conversations_path,
        adapter.conversation_payload(request),
        side_effect=True,
    )
    conversation_id = raw.json().get("id")
    if not isinstance(conversation_id, str) or not conversation_id:
        raise TransportError(
            "Conversation creation returned no id",
            provider=adapter.provider,
            phase=adapter.conversations_path,
            status_code=raw.status_code,
        )
    logger.debug("Created conversation %s", conversation_id)
    return conversation_id


async def select_transport(
    client: HttpClient, adapter: MessageAdapter, request: Request
) -> ConversationTransport:
    """Pick the transport for one call.

    An explicit handle always means incremental delivery. Without one, a
    conversation is created only when the call may take more than one step.
    """
    if request.conversation_id is not None:
        return IncrementalConversationTransport(request.conversation_id)
    if request.max_steps > 1:
        handle = await create_conversation(client, adapter, request)
        return IncrementalConversationTransport(handle)
    return FullHistoryTransport()
