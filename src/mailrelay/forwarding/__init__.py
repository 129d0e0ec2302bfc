"""Forwarding to the chat sink: pagination, the webhook client, and event dispatch."""

from mailrelay.forwarding.discord import DiscordWebhookClient, sanitize_thread_name
from mailrelay.forwarding.forwarder import Forwarder, ForwardReport, format_post_header
from mailrelay.forwarding.paginator import paginate

__all__ = [
    "DiscordWebhookClient",
    "ForwardReport",
    "Forwarder",
    "format_post_header",
    "paginate",
    "sanitize_thread_name",
]
