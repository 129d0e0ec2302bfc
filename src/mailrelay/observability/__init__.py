"""Optional error reporting through Sentry."""

from mailrelay.observability.sentry import get_sentry_processor, init_sentry

__all__ = ["get_sentry_processor", "init_sentry"]
