"""Gmail thread reconstruction and chat-webhook forwarding."""

__version__ = "0.1.0"
