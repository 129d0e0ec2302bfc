"""Discord webhook client for forum-thread posts.

Wraps ``httpx.AsyncClient`` to create a new forum thread per conversation
and to post follow-ups into an existing thread.  Every request is retried a
bounded number of times with a fixed delay.
"""

from __future__ import annotations

import re
from typing import Any

import httpx
import structlog

from mailrelay.domain.errors import (
    ForwardingError,
    InvalidWebhookResponseError,
    WebhookResponseError,
)
from mailrelay.resilience.retry import resilient_api_call

logger = structlog.get_logger()

DEFAULT_TITLE = "(no subject)"

_UNSAFE_TITLE_CHARACTERS = re.compile(r'[@#"/\\<>]')
_WHITESPACE = re.compile(r"\s+")


def sanitize_thread_name(subject: str, max_length: int) -> str:
    """Make a subject line usable as a Discord thread name.

    Mentions, channel links, quotes, slashes and angle brackets are removed,
    ``:`` becomes ``;`` and runs of whitespace collapse to one space.  The
    result is truncated to *max_length*.

    Args:
        subject: The raw ``Subject`` header.
        max_length: The platform's thread-name limit.

    Returns:
        The sanitized name, or ``"(no subject)"`` if nothing is left.
    """
    name = _UNSAFE_TITLE_CHARACTERS.sub("", subject).replace(":", ";")
    name = _WHITESPACE.sub(" ", name).strip()
    if not name:
        name = DEFAULT_TITLE
    return name[:max_length].rstrip()


def is_transient_failure(exc: BaseException) -> bool:
    """Whether a failed webhook request is worth repeating.

    Connection problems, rate limiting (429) and server errors (5xx) are.
    Other 4xx answers, such as an oversized post, would fail the same way
    again.
    """
    if isinstance(exc, WebhookResponseError):
        return exc.status_code == 429 or exc.status_code >= 500
    return isinstance(exc, httpx.TransportError)


class DiscordWebhookClient:
    """Posts message content to a Discord forum channel through a webhook.

    Args:
        webhook_url: The full webhook URL, including its token.
        http_client: The ``httpx.AsyncClient`` used for requests.  The caller
            owns its lifecycle.
        retry_attempts: Attempts per request, including the first.
        retry_delay: Seconds to wait between attempts.
    """

    def __init__(
        self,
        webhook_url: str,
        http_client: httpx.AsyncClient,
        retry_attempts: int = 3,
        retry_delay: float = 5.0,
    ) -> None:
        self._webhook_url = webhook_url
        self._http = http_client
        self._post = resilient_api_call(
            "discord_webhook",
            attempts=retry_attempts,
            delay_seconds=retry_delay,
            retry_if=is_transient_failure,
        )(self._post_once)

    async def _post_once(self, params: dict[str, str], payload: dict[str, Any]) -> httpx.Response:
        response = await self._http.post(self._webhook_url, params=params, json=payload, timeout=30.0)
        if response.is_error:
            raise WebhookResponseError(response.status_code, response.reason_phrase)
        return response

    async def create_thread(self, title: str, content: str) -> str:
        """Create a forum thread whose first post is *content*.

        Args:
            title: The thread name (already sanitized).
            content: The first post.

        Returns:
            The id Discord assigned to the new thread.

        Raises:
            ForwardingError: If the request keeps failing or the response
                carries no thread id.
        """
        try:
            response = await self._post({"wait": "true"}, {"thread_name": title, "content": content})
        except httpx.TransportError as exc:
            raise ForwardingError(f"Could not create new thread: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise InvalidWebhookResponseError("Could not deserialize response content") from exc

        # With ?wait=true Discord returns the message; in a forum its channel is the new thread.
        thread_id = str(body.get("channel_id") or body.get("id") or "") if isinstance(body, dict) else ""
        if not thread_id:
            raise InvalidWebhookResponseError("Discord returned empty thread id")

        logger.debug("Created Discord thread", thread_id=thread_id, title=title)
        return thread_id

    async def post_to_thread(self, thread_id: str, content: str) -> None:
        """Post *content* into the existing thread *thread_id*.

        Raises:
            ForwardingError: If the request keeps failing.
        """
        try:
            await self._post({"thread_id": thread_id}, {"content": content})
        except httpx.TransportError as exc:
            raise ForwardingError(f"Could not create post in thread '{thread_id}': {exc}") from exc
