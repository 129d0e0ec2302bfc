"""Sentry SDK initialization with the structlog-sentry bridge.

Only ERROR-level log events are sent.  Nothing is initialized when no DSN is
configured, so the relay runs unchanged without a Sentry project.
"""

from __future__ import annotations

import logging

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor


def init_sentry(dsn: str, environment: str = "development") -> bool:
    """Initialize the Sentry SDK.

    Args:
        dsn: Sentry DSN.  An empty string disables Sentry.
        environment: Reported environment name.

    Returns:
        ``True`` if the SDK was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        send_default_pii=False,
        # structlog-sentry reports errors; the stdlib logging capture would duplicate them.
        integrations=[LoggingIntegration(event_level=None, level=None)],
    )
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Return a processor forwarding ERROR events to Sentry.

    It belongs after ``add_log_level`` and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
