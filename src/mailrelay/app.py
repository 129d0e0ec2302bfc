"""Application wiring and the polling service loop.

At startup the relay loads its caches, fetches every message the cache does
not know yet, and rebuilds the thread index from the cached history without
forwarding anything.  From then on it polls Gmail every
``fetching_interval_minutes``, classifies new messages against the index, and
forwards the resulting events to Discord.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error reporting when a DSN is configured
- **Signal handling** so SIGINT/SIGTERM stop the loop between cycles
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any

import httpx
import structlog

from mailrelay.auth.credentials import get_gmail_credentials, get_gmail_service
from mailrelay.config import Settings, get_settings, validate_credentials
from mailrelay.domain.errors import RelayError
from mailrelay.domain.types import MailType
from mailrelay.email.client import GmailClient
from mailrelay.email.models import MessageRecord
from mailrelay.forwarding.discord import DiscordWebhookClient
from mailrelay.forwarding.forwarder import Forwarder, ForwardReport
from mailrelay.observability.sentry import get_sentry_processor, init_sentry
from mailrelay.state.cache import ConversationIdCache, MessageCache
from mailrelay.threads.builder import build_threads
from mailrelay.threads.classifier import classify_batch
from mailrelay.threads.models import ThreadIndex

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_dsn: str = "") -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_dsn: When set, ERROR events are also sent to Sentry.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
    ]

    if init_sentry(sentry_dsn, environment="production" if production else "development"):
        shared_processors.append(get_sentry_processor())

    shared_processors += [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service="mailrelay")


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up the shared services of the relay.

    Creates the Gmail client (running the OAuth flow if no token is cached),
    both caches, an empty thread index, and, unless only the message cache is
    being built, the webhook client and the forwarder.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"settings": settings}

    credentials = get_gmail_credentials(
        token_path=settings.gmail_token_path,
        credentials_path=settings.gmail_credentials_path,
    )
    services["gmail_client"] = GmailClient(get_gmail_service(credentials))
    logger.info("GmailClient initialized", email_address=settings.email_address)

    services["message_cache"] = MessageCache(settings.email_cache_path)
    services["id_cache"] = ConversationIdCache(settings.id_mapping_cache_path)
    services["index"] = ThreadIndex()

    if settings.only_build_email_cache:
        logger.info("Only building the message cache, forwarding disabled")
        return services

    http_client = httpx.AsyncClient()
    services["http_client"] = http_client
    webhook = DiscordWebhookClient(
        settings.discord_webhook_url.get_secret_value(),
        http_client,
        retry_attempts=settings.webhook_retry_attempts,
        retry_delay=settings.webhook_retry_delay_seconds,
    )
    services["forwarder"] = Forwarder(
        webhook,
        services["id_cache"],
        max_post_length=settings.max_post_length,
        max_title_length=settings.max_title_length,
        strip_history=settings.strip_quoted_history,
    )
    logger.info("Forwarder initialized")

    return services


async def fetch_delta(services: dict[str, Any]) -> list[MessageRecord]:
    """Fetch every received and sent message the message cache does not hold.

    Gmail calls are blocking and run in worker threads.

    Returns:
        The fetched records, oldest listing position first within each folder.
    """
    gmail: GmailClient = services["gmail_client"]
    cache: MessageCache = services["message_cache"]

    fetched: list[MessageRecord] = []
    for mail_type, list_ids in (
        (MailType.RECEIVED, gmail.list_received_ids),
        (MailType.SENT, gmail.list_sent_ids),
    ):
        cached_ids = cache.mail_ids_of_type(mail_type)
        listed = await asyncio.to_thread(list_ids)
        # Gmail lists newest first.
        new_ids = [mail_id for mail_id in reversed(listed) if mail_id not in cached_ids]
        if not new_ids:
            continue

        logger.info("Fetching new messages", mail_type=mail_type.value, count=len(new_ids))
        fetched.extend(await asyncio.to_thread(gmail.get_messages, mail_type, new_ids))

    return fetched


async def warm_start(services: dict[str, Any]) -> None:
    """Load the caches and rebuild the thread index without forwarding.

    Messages fetched here are added to the cache and the index but never
    posted: they predate the relay's current run.
    """
    cache: MessageCache = services["message_cache"]
    id_cache: ConversationIdCache = services["id_cache"]
    index: ThreadIndex = services["index"]

    cache.load()
    id_cache.load()

    fetched = await fetch_delta(services)
    cache.add(fetched)

    created = build_threads(index, cache.records)
    cache.flush()

    logger.info(
        "Warm start complete",
        cached=len(cache),
        fetched=len(fetched),
        threads=created,
        standalone=len(index.standalone),
    )


async def poll_once(services: dict[str, Any]) -> ForwardReport:
    """Run one polling cycle: fetch, cache, classify, forward.

    Returns:
        What was posted and what failed in this cycle.
    """
    cache: MessageCache = services["message_cache"]
    id_cache: ConversationIdCache = services["id_cache"]
    index: ThreadIndex = services["index"]
    forwarder: Forwarder = services["forwarder"]

    fetched = await fetch_delta(services)
    if not fetched:
        logger.debug("No new messages")
        return ForwardReport()

    cache.add(fetched)
    cache.flush()

    events = classify_batch(index, fetched)
    report = await forwarder.forward_all(events)
    id_cache.flush()
    return report


def _install_signal_handlers(shutdown: asyncio.Event) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform or outside the main thread.
            continue
        installed.append(sig)
    return installed


async def poll_forever(services: dict[str, Any], interval_seconds: float, shutdown: asyncio.Event) -> None:
    """Poll every *interval_seconds* until *shutdown* is set.

    A failed cycle is logged and the next one runs as scheduled.
    """
    while not shutdown.is_set():
        try:
            await asyncio.wait_for(shutdown.wait(), timeout=interval_seconds)
        except TimeoutError:
            pass
        if shutdown.is_set():
            break

        try:
            await poll_once(services)
        except RelayError:
            logger.exception("Polling cycle failed")


async def run(settings: Settings | None = None) -> None:
    """Main entry point: warm start, then poll until shut down.

    1. Configure logging
    2. Validate settings
    3. Initialize services
    4. Warm start from the caches
    5. Poll until SIGINT/SIGTERM (skipped with ``only_build_email_cache``)
    6. Release resources on exit
    """
    if settings is None:
        settings = get_settings()
    configure_logging(production=settings.production, sentry_dsn=settings.sentry_dsn)
    logger.info("Relay starting")

    validate_credentials(settings)
    services = initialize_services(settings)

    shutdown = asyncio.Event()
    installed = _install_signal_handlers(shutdown)
    try:
        await warm_start(services)
        if settings.only_build_email_cache:
            logger.info("Message cache built, exiting", path=str(settings.email_cache_path))
            return

        await poll_forever(services, settings.fetching_interval_minutes * 60, shutdown)
    finally:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)

        services["index"].clear()
        http_client = services.get("http_client")
        if http_client is not None:
            await http_client.aclose()
        logger.info("Relay stopped")
