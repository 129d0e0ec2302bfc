"""Serialized dispatch of classification events to the chat sink.

Events must reach the sink in the order they were produced: a reply can only
be posted once the conversation of its thread root exists.  ``Forwarder``
therefore handles one event at a time behind an ``asyncio.Lock``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import structlog
from pydantic import BaseModel, Field

from mailrelay.domain.errors import ForwardingError
from mailrelay.email.models import MessageRecord
from mailrelay.forwarding.discord import DiscordWebhookClient, sanitize_thread_name
from mailrelay.forwarding.paginator import paginate
from mailrelay.state.cache import ConversationIdCache
from mailrelay.threads.models import (
    AppendedToThread,
    ClassificationEvent,
    NewStandalone,
    NewThread,
)

logger = structlog.get_logger()


class ForwardReport(BaseModel):
    """Outcome of forwarding a batch of events.

    ``posted`` and ``failed`` hold the Message-IDs of the records carried by
    the events.
    """

    posted: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def format_post_header(record: MessageRecord) -> str:
    """Build the markdown header placed before a message's text."""
    lines = [f"**From:** {record.sender}"]
    if record.to:
        lines.append(f"**To:** {record.to}")
    lines.append(f"**Date:** {record.date.strftime('%Y-%m-%d %H:%M:%S %Z').rstrip()}")
    return "\n".join(lines) + "\n\n"


class Forwarder:
    """Turns classification events into conversations and posts.

    Args:
        client: The webhook client.
        id_cache: Root Message-ID to conversation id mapping.  New mappings
            are flushed to disk as soon as a conversation is created.
        max_post_length: Length limit of a single post.
        max_title_length: Length limit of a conversation title.
        strip_history: Whether quoted history is removed from message text.
    """

    def __init__(
        self,
        client: DiscordWebhookClient,
        id_cache: ConversationIdCache,
        max_post_length: int = 2000,
        max_title_length: int = 100,
        strip_history: bool = True,
    ) -> None:
        self._client = client
        self._id_cache = id_cache
        self._max_post_length = max_post_length
        self._max_title_length = max_title_length
        self._strip_history = strip_history
        self._lock = asyncio.Lock()

    def segments(self, record: MessageRecord) -> list[str]:
        """Return the posts a record is split into."""
        body = record.content_as_plain_text(self._strip_history)
        return paginate(format_post_header(record), body, self._max_post_length)

    async def forward(self, event: ClassificationEvent) -> bool:
        """Deliver one event; returns ``True`` if every post went out.

        Sink failures are logged and reported through the return value.
        """
        async with self._lock:
            try:
                if isinstance(event, NewStandalone):
                    return await self._open_conversation(event.record)
                if isinstance(event, AppendedToThread | NewThread):
                    return await self._post_thread_reply(event.root, event.record)
            except ForwardingError as exc:
                logger.error(
                    "Forwarding failed",
                    kind=event.kind,
                    message_id=event.record.message_id,
                    error=str(exc),
                )
                return False

        raise TypeError(f"Unsupported event: {event!r}")

    async def forward_all(self, events: Iterable[ClassificationEvent]) -> ForwardReport:
        """Deliver *events* in order.  A failure never stops later events."""
        report = ForwardReport()
        for event in events:
            if await self.forward(event):
                report.posted.append(event.record.message_id)
            else:
                report.failed.append(event.record.message_id)

        if report.posted or report.failed:
            logger.info("Forwarded events", posted=len(report.posted), failed=len(report.failed))
        return report

    async def _open_conversation(self, record: MessageRecord) -> bool:
        if self._id_cache.lookup(record.message_id) is not None:
            logger.warning(
                "Message already has a conversation, not posting it again",
                message_id=record.message_id,
            )
            return False

        first, *rest = self.segments(record)
        title = sanitize_thread_name(record.subject, self._max_title_length)
        conversation_id = await self._client.create_thread(title, first)

        self._id_cache.add(record.message_id, conversation_id)
        self._id_cache.flush()
        logger.info(
            "Created conversation",
            message_id=record.message_id,
            conversation_id=conversation_id,
            posts=len(rest) + 1,
        )

        for segment in rest:
            await self._client.post_to_thread(conversation_id, segment)
        return True

    async def _post_reply(self, root_id: str, record: MessageRecord) -> bool:
        conversation_id = self._id_cache.lookup(root_id)
        if conversation_id is None:
            logger.warning(
                "No conversation known for thread root",
                root_id=root_id,
                message_id=record.message_id,
            )
            return False

        for segment in self.segments(record):
            await self._client.post_to_thread(conversation_id, segment)
        logger.info("Posted reply", root_id=root_id, message_id=record.message_id)
        return True

    async def _post_thread_reply(self, root: MessageRecord, record: MessageRecord) -> bool:
        # Promoted roots and threads rebuilt from history may never have been posted.
        if self._id_cache.lookup(root.message_id) is None:
            logger.info("Thread root has no conversation yet, creating it", root_id=root.message_id)
            if not await self._open_conversation(root):
                return False
        return await self._post_reply(root.message_id, record)
