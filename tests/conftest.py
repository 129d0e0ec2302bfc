"""Shared pytest fixtures for the mailrelay test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from mailrelay.domain.types import MailType, MimeType
from mailrelay.email.models import ContentPart, MessageRecord

BASE_DATE = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)

RecordFactory = Callable[..., MessageRecord]


def build_record(
    message_id: str,
    in_reply_to: str | None = None,
    *,
    minutes: int = 0,
    subject: str = "Weekly sync",
    text: str = "Hello there",
    mail_type: MailType = MailType.RECEIVED,
    **overrides: Any,
) -> MessageRecord:
    """Build a valid record dated *minutes* after ``BASE_DATE``."""
    fields: dict[str, Any] = {
        "mail_id": f"gm-{message_id}",
        "message_id": message_id,
        "in_reply_to": in_reply_to,
        "sender": "Alice <alice@example.com>",
        "to": "bob@example.com",
        "subject": subject,
        "date": BASE_DATE + timedelta(minutes=minutes),
        "mail_type": mail_type,
        "content": (ContentPart(mime_type=MimeType.TEXT_PLAIN, text=text),),
        "is_valid": True,
    }
    fields.update(overrides)
    return MessageRecord(**fields)


@pytest.fixture
def make_record() -> RecordFactory:
    """Factory for valid message records."""
    return build_record


@pytest.fixture
def anyio_backend() -> str:
    """Run anyio-marked tests on asyncio, the event loop the application uses."""
    return "asyncio"
