"""Resilience infrastructure for API calls with bounded retries."""

from mailrelay.resilience.retry import resilient_api_call

__all__ = [
    "resilient_api_call",
]
