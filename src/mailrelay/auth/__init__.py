"""Authentication module for Google API credential management."""

from mailrelay.auth.credentials import (
    get_gmail_credentials,
    get_gmail_service,
)

__all__ = [
    "get_gmail_credentials",
    "get_gmail_service",
]
