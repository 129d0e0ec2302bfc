"""Domain enumerations for mail folders and body content kinds."""

from enum import StrEnum


class MailType(StrEnum):
    """Which mailbox folder a message was fetched from."""

    NOT_SET = "not_set"
    SENT = "sent"
    RECEIVED = "received"


class MimeType(StrEnum):
    """Body part content kinds the decoder knows how to handle."""

    TEXT_PLAIN = "text/plain"
    TEXT_HTML = "text/html"
    TEXT_AMP_HTML = "text/x-amp-html"


def parse_mime_type(value: str) -> MimeType | None:
    """Map a raw ``mimeType`` string to a known ``MimeType``.

    Parameters such as ``; charset=utf-8`` are ignored and matching is
    case-insensitive.

    Args:
        value: The MIME type string reported for a body part.

    Returns:
        The matching ``MimeType``, or ``None`` for unknown kinds.
    """
    base = value.split(";", 1)[0].strip().lower()
    try:
        return MimeType(base)
    except ValueError:
        return None
