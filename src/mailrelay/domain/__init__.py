"""Domain enumerations and exceptions shared across the relay."""

from mailrelay.domain.errors import (
    ForwardingError,
    InvalidMailResponseError,
    InvalidWebhookResponseError,
    MailCommunicationError,
    RelayError,
    ThreadIntegrityError,
    WebhookResponseError,
)
from mailrelay.domain.types import MailType, MimeType, parse_mime_type

__all__ = [
    "ForwardingError",
    "InvalidMailResponseError",
    "InvalidWebhookResponseError",
    "MailCommunicationError",
    "MailType",
    "MimeType",
    "RelayError",
    "ThreadIntegrityError",
    "WebhookResponseError",
    "parse_mime_type",
]
