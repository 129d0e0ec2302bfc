"""Best-effort decoding of Gmail body data.

Gmail returns body parts in the URL-safe base64 alphabet (RFC 4648 section 5).
Real-world payloads are occasionally corrupted part way through, so instead of
decoding the whole string at once the data is decoded in 4-character groups
and whatever decodes cleanly is kept.  Groups are only flushed to text once
the accumulated bytes end on a complete UTF-8 codepoint.
"""

from __future__ import annotations

import base64
import binascii

import structlog

logger = structlog.get_logger()

_GROUP_SIZE = 4
_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


def utf8_sequence_length(lead_byte: int) -> int:
    """Return the codepoint length announced by a UTF-8 lead byte.

    The number of leading one bits gives the length::

        1 byte    0xxx xxxx
        2 bytes   110x xxxx
        3 bytes   1110 xxxx
        4 bytes   1111 0xxx

    Continuation bytes (``10xx xxxx``) and bytes that cannot start a
    sequence are reported as length 1 so the caller never waits on them.
    """
    ones = 0
    for bit in range(7, 2, -1):
        if not (lead_byte >> bit) & 0x01:
            break
        ones += 1
    if ones in (2, 3, 4):
        return ones
    return 1


def has_incomplete_codepoint(data: bytes | bytearray) -> bool:
    """Check whether *data* ends part way through a multi-byte codepoint.

    Only the last four bytes are inspected: the scan walks backwards over
    continuation bytes until it finds the lead byte of the final codepoint and
    compares the announced length with the bytes actually present.

    Args:
        data: Decoded bytes that start on a codepoint boundary.

    Returns:
        ``True`` if more bytes are needed to finish the last codepoint.
    """
    for present in range(1, min(_GROUP_SIZE, len(data)) + 1):
        byte = data[-present]
        if byte & 0xC0 == 0x80:
            continue
        return utf8_sequence_length(byte) > present
    return False


def _decode_group(raw: str, start: int) -> bytes:
    group = raw[start : start + _GROUP_SIZE].translate(_URLSAFE_TO_STANDARD)
    if len(group) < _GROUP_SIZE:
        group = group.ljust(_GROUP_SIZE, "=")
    return base64.b64decode(group, validate=True)


def decode_body(raw: str) -> str:
    """Decode URL-safe base64 body data into text, salvaging what it can.

    Decoding never raises: the first malformed group stops decoding and the
    text recovered up to that point is returned.  Invalid UTF-8 inside an
    otherwise well-formed group is replaced with U+FFFD.

    Args:
        raw: The ``body.data`` string from the Gmail API.

    Returns:
        The decoded text.  An empty string means the part has no usable
        content.
    """
    pieces: list[str] = []
    buffer = bytearray()
    idx = 0
    length = len(raw)

    try:
        while idx < length:
            buffer.clear()
            while True:
                buffer.extend(_decode_group(raw, idx))
                idx += _GROUP_SIZE
                if idx >= length or not has_incomplete_codepoint(buffer):
                    break
            pieces.append(buffer.decode("utf-8", errors="replace"))
            buffer.clear()
    except (binascii.Error, ValueError):
        logger.debug(
            "Body data contains a malformed base64 group, keeping decoded prefix",
            offset=idx,
            length=length,
        )
        # Bytes gathered for an unfinished lookahead are still usable text.
        if buffer:
            pieces.append(buffer.decode("utf-8", errors="replace"))

    return "".join(pieces)
