"""Tests for domain enumerations and error types."""

import pytest

from mailrelay.domain.errors import (
    ForwardingError,
    MailCommunicationError,
    RelayError,
    ThreadIntegrityError,
    WebhookResponseError,
)
from mailrelay.domain.types import MailType, MimeType, parse_mime_type


class TestMailType:
    """Tests for the MailType enum."""

    def test_members(self):
        assert MailType.NOT_SET == "not_set"
        assert MailType.SENT == "sent"
        assert MailType.RECEIVED == "received"

    def test_string_serialization(self):
        assert str(MailType.RECEIVED) == "received"


class TestParseMimeType:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("text/plain", MimeType.TEXT_PLAIN),
            ("text/html; charset=utf-8", MimeType.TEXT_HTML),
            ("Text/X-AMP-HTML", MimeType.TEXT_AMP_HTML),
            ("  text/plain  ", MimeType.TEXT_PLAIN),
        ],
    )
    def test_known_kinds(self, raw, expected):
        assert parse_mime_type(raw) is expected

    @pytest.mark.parametrize("raw", ["image/png", "multipart/alternative", ""])
    def test_unknown_kinds(self, raw):
        assert parse_mime_type(raw) is None


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(MailCommunicationError, RelayError)
        assert issubclass(WebhookResponseError, ForwardingError)
        assert issubclass(ForwardingError, RelayError)

    def test_thread_integrity_error_keeps_message_id(self):
        exc = ThreadIntegrityError("<m@x>", "already belongs to a thread")
        assert exc.message_id == "<m@x>"
        assert "<m@x>" in str(exc)

    def test_webhook_response_error_keeps_status(self):
        exc = WebhookResponseError(429, "rate limited")
        assert exc.status_code == 429
        assert str(exc) == "HTTP status code 429: rate limited"
