"""Email domain: Gmail API client, body decoding, parsing, and models."""

from mailrelay.email.client import GmailClient
from mailrelay.email.decoder import decode_body
from mailrelay.email.models import ContentPart, MessageRecord
from mailrelay.email.parser import html_to_plain_text, parse_date, trim_content

__all__ = [
    "ContentPart",
    "GmailClient",
    "MessageRecord",
    "decode_body",
    "html_to_plain_text",
    "parse_date",
    "trim_content",
]
