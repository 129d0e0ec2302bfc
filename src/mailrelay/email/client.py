"""Gmail API client wrapper for listing and fetching messages.

Provides the ``GmailClient`` class that encapsulates the read-only Gmail API
operations the relay needs: listing every message id in the inbox or sent
folder (following pagination) and fetching full messages, which are decoded
into ``MessageRecord`` instances.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog
from googleapiclient.errors import HttpError

from mailrelay.domain.errors import InvalidMailResponseError, MailCommunicationError
from mailrelay.domain.types import MailType
from mailrelay.email.models import MessageRecord
from mailrelay.resilience.retry import resilient_api_call

logger = structlog.get_logger()

INBOX_LABEL_ID = "INBOX"
SENT_LABEL_ID = "SENT"

_HEADER_NAMES = ("Message-ID", "In-Reply-To", "Date", "From", "To", "Subject", "Return-Path")


@resilient_api_call("gmail", retry_on=(HttpError, OSError))
def _execute(request: Any) -> Any:
    return request.execute()


def extract_headers(payload: dict[str, Any]) -> dict[str, str]:
    """Collect the headers the relay cares about from a message payload.

    Matching is case-insensitive and the first occurrence of a header wins.

    Args:
        payload: The ``payload`` object of a Gmail ``Message`` resource.

    Returns:
        A dict keyed by the canonical header names in ``_HEADER_NAMES``.
    """
    wanted = {name.lower(): name for name in _HEADER_NAMES}
    headers: dict[str, str] = {}
    for header in payload.get("headers", []):
        canonical = wanted.get(str(header.get("name", "")).lower())
        if canonical and canonical not in headers:
            headers[canonical] = header.get("value", "")
    return headers


def extract_body_parts(payload: dict[str, Any]) -> list[tuple[str, str]]:
    """Walk the MIME tree and return ``(mimeType, body.data)`` for leaf parts.

    Leaves without inline data (attachments referenced by ``attachmentId``)
    and parts carrying a filename are skipped.

    Args:
        payload: The ``payload`` object of a Gmail ``Message`` resource.

    Returns:
        The raw body parts in tree order.
    """
    parts: list[tuple[str, str]] = []
    stack: list[dict[str, Any]] = [payload]
    while stack:
        part = stack.pop()
        children = part.get("parts")
        if children:
            stack.extend(reversed(children))
            continue
        if part.get("filename"):
            continue
        data = (part.get("body") or {}).get("data")
        if data:
            parts.append((part.get("mimeType", ""), data))
    return parts


class GmailClient:
    """Read-only wrapper around the Gmail API service.

    All methods operate through the provided Gmail API service resource
    (obtained via ``get_gmail_service``).  Every ``execute()`` is retried on
    transport and HTTP errors; persistent failures are raised as
    ``MailCommunicationError``.

    Args:
        service: An authenticated Gmail API v1 service resource.
        user_id: The mailbox to read, ``"me"`` for the authorized account.
    """

    def __init__(self, service: Any, user_id: str = "me") -> None:
        self._service = service
        self._user_id = user_id

    def list_message_ids(self, label: str) -> list[str]:
        """List every message id carrying *label*, following pagination.

        Args:
            label: A Gmail label id such as ``INBOX`` or ``SENT``.

        Returns:
            The provider-local message ids, newest first as Gmail returns them.

        Raises:
            MailCommunicationError: If the API keeps failing.
            InvalidMailResponseError: If a page response is empty.
        """
        ids: list[str] = []
        page_token: str | None = None
        while True:
            kwargs: dict[str, Any] = {
                "userId": self._user_id,
                "labelIds": [label],
                "includeSpamTrash": False,
            }
            if page_token:
                kwargs["pageToken"] = page_token

            try:
                response = _execute(self._service.users().messages().list(**kwargs))
            except (HttpError, OSError) as exc:
                raise MailCommunicationError(f"Listing messages with label '{label}' failed") from exc

            if response is None:
                raise InvalidMailResponseError(f"Listing messages with label '{label}' returned nothing")

            ids.extend(message["id"] for message in response.get("messages", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                return ids

    def list_received_ids(self) -> list[str]:
        """List the ids of every message in the inbox."""
        return self.list_message_ids(INBOX_LABEL_ID)

    def list_sent_ids(self) -> list[str]:
        """List the ids of every sent message."""
        return self.list_message_ids(SENT_LABEL_ID)

    def get_message(self, mail_type: MailType, mail_id: str) -> MessageRecord:
        """Fetch a single message and decode it into a ``MessageRecord``.

        Args:
            mail_type: The folder the id was listed from.
            mail_id: The Gmail message id.

        Returns:
            The decoded record; invalid when headers or body are unusable.

        Raises:
            MailCommunicationError: If the API keeps failing.
            InvalidMailResponseError: If the API returns no message.
        """
        try:
            response = _execute(
                self._service.users().messages().get(userId=self._user_id, id=mail_id, format="full")
            )
        except (HttpError, OSError) as exc:
            raise MailCommunicationError(f"Fetching message '{mail_id}' failed") from exc

        if response is None:
            raise InvalidMailResponseError(f"Response for mail ID '{mail_id}' was null")

        payload: dict[str, Any] = response.get("payload") or {}
        return MessageRecord.from_raw(
            mail_type,
            mail_id,
            extract_headers(payload),
            extract_body_parts(payload),
        )

    def get_messages(self, mail_type: MailType, mail_ids: Iterable[str]) -> list[MessageRecord]:
        """Fetch several messages in order.

        Args:
            mail_type: The folder the ids were listed from.
            mail_ids: Gmail message ids to fetch.

        Returns:
            One record per id, in the given order.
        """
        ids = list(mail_ids)
        records: list[MessageRecord] = []
        for position, mail_id in enumerate(ids, start=1):
            logger.debug(
                "Fetching message",
                mail_type=mail_type.value,
                mail_id=mail_id,
                progress=f"{position}/{len(ids)}",
            )
            records.append(self.get_message(mail_type, mail_id))

        if ids:
            invalid = sum(1 for record in records if not record.is_valid)
            logger.info(
                "Fetched messages",
                mail_type=mail_type.value,
                count=len(records),
                invalid=invalid,
            )
        return records
