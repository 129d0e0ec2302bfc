"""Pydantic v2 models for decoded messages.

A ``MessageRecord`` is built once from the raw Gmail envelope and is frozen
afterwards.  Construction never raises: a message that lacks a required
header, has an unparseable date, or has no decodable body part becomes an
*invalid* record that keeps only its provider id and folder.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime

import structlog
from pydantic import BaseModel, ConfigDict

from mailrelay.domain.types import MailType, MimeType, parse_mime_type
from mailrelay.email.decoder import decode_body
from mailrelay.email.parser import html_to_plain_text, parse_date, trim_content

logger = structlog.get_logger()

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class ContentPart(BaseModel):
    """One decoded body part and the content kind it was tagged with."""

    model_config = ConfigDict(frozen=True)

    mime_type: MimeType
    text: str


class MessageRecord(BaseModel):
    """An immutable decoded message.

    ``message_id`` (the RFC 2822 ``Message-ID`` header) is the only identity
    key; ``mail_id`` is the Gmail-local id used to diff against the mailbox.
    Records with ``is_valid=False`` carry no usable content and never join a
    thread or the standalone pool.
    """

    model_config = ConfigDict(frozen=True)

    mail_id: str = ""
    message_id: str = ""
    in_reply_to: str | None = None
    sender: str = ""
    to: str | None = None
    subject: str = ""
    date: datetime = _EPOCH
    mail_type: MailType = MailType.NOT_SET
    return_path: str | None = None
    content: tuple[ContentPart, ...] = ()
    is_valid: bool = False

    @classmethod
    def invalid(cls, mail_type: MailType, mail_id: str = "") -> MessageRecord:
        """Return an invalid placeholder for a message that could not be used."""
        return cls(mail_id=mail_id, mail_type=mail_type)

    @classmethod
    def from_raw(
        cls,
        mail_type: MailType,
        mail_id: str,
        headers: Mapping[str, str],
        body_parts: Iterable[tuple[str, str]],
    ) -> MessageRecord:
        """Validate and decode a raw message envelope.

        Args:
            mail_type: The folder the message was fetched from.
            mail_id: The Gmail message id.
            headers: Header values keyed by name (matched case-insensitively).
            body_parts: ``(mimeType, body.data)`` pairs in MIME tree order.

        Returns:
            A valid record, or an invalid placeholder when a required header is
            missing, the date is unparseable, or no part decodes to text.
        """
        lowered = {name.lower(): value for name, value in headers.items()}
        sender = lowered.get("from")
        to = lowered.get("to") or None
        raw_date = lowered.get("date")
        message_id = lowered.get("message-id")

        if mail_type is MailType.NOT_SET:
            return cls.invalid(mail_type, mail_id)
        if not sender or not raw_date or not message_id:
            logger.debug("Message is missing a required header", mail_id=mail_id)
            return cls.invalid(mail_type, mail_id)
        if to is None and mail_type is MailType.SENT:
            logger.debug("Sent message has no recipient", mail_id=mail_id)
            return cls.invalid(mail_type, mail_id)

        date = parse_date(raw_date)
        if date is None:
            logger.warning("Could not parse message date", mail_id=mail_id, date=raw_date)
            return cls.invalid(mail_type, mail_id)

        parts: list[ContentPart] = []
        for raw_mime_type, data in body_parts:
            mime_type = parse_mime_type(raw_mime_type)
            if mime_type is None:
                logger.warning(
                    "Skipping body part with unknown MIME type",
                    mail_id=mail_id,
                    mime_type=raw_mime_type,
                )
                continue
            text = decode_body(data)
            if not text:
                logger.warning(
                    "Failed to decode raw body part",
                    mail_id=mail_id,
                    mime_type=mime_type.value,
                )
                continue
            parts.append(ContentPart(mime_type=mime_type, text=text))

        if not parts:
            return cls.invalid(mail_type, mail_id)

        return cls(
            mail_id=mail_id,
            message_id=message_id,
            in_reply_to=lowered.get("in-reply-to") or None,
            sender=sender,
            to=to,
            subject=lowered.get("subject", ""),
            date=date,
            mail_type=mail_type,
            return_path=lowered.get("return-path") or None,
            content=tuple(parts),
            is_valid=True,
        )

    def first_part(self, mime_type: MimeType) -> ContentPart | None:
        """Return the first content part of the given kind, if any."""
        return next((part for part in self.content if part.mime_type is mime_type), None)

    def content_as_plain_text(self, strip_history: bool) -> str:
        """Render the message body as trimmed plain text.

        ``text/plain`` is preferred over converted ``text/html``.  A message
        that only carries AMP markup yields an empty string.

        Args:
            strip_history: Remove quoted history from the rendered text.

        Returns:
            The plain-text body.
        """
        plain = self.first_part(MimeType.TEXT_PLAIN)
        html = self.first_part(MimeType.TEXT_HTML)

        if plain is not None:
            text = plain.text
        elif html is not None:
            text = html_to_plain_text(html.text, strip_history)
        else:
            if self.first_part(MimeType.TEXT_AMP_HTML) is not None:
                logger.warning(
                    "Cannot generate plain text, only AMP HTML is available",
                    message_id=self.message_id,
                )
            text = ""

        return trim_content(text, strip_history)
