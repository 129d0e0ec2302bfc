"""JSON file caches for fetched messages and conversation ids.

The message cache lets a restart skip refetching every message: the relay
diffs the provider's id listing against the cached ids and only fetches the
delta.  The id-mapping cache remembers which chat conversation each thread
root was posted to, so replies can be addressed after a restart.

Both caches are tolerant of missing, empty, or corrupt files (they load as
empty with a warning) and write atomically through a temporary file.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
from pydantic import TypeAdapter, ValidationError

from mailrelay.domain.types import MailType
from mailrelay.email.models import MessageRecord

logger = structlog.get_logger()

_RECORDS_ADAPTER = TypeAdapter(list[MessageRecord])
_ID_MAP_ADAPTER = TypeAdapter(dict[str, str])


def _read_text(path: Path) -> str | None:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("Cache file does not exist yet", path=str(path))
        return None
    except OSError as exc:
        logger.warning("Reading of cache file failed", path=str(path), error=str(exc))
        return None

    if not text.strip():
        logger.warning("Cache file is empty", path=str(path))
        return None
    return text


def _write_atomic(path: Path, data: bytes) -> bool:
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)
    except OSError as exc:
        logger.warning("Writing to cache file failed", path=str(path), error=str(exc))
        return False
    return True


class MessageCache:
    """Append-only cache of every fetched message, valid or not.

    Invalid records are kept so their provider ids are not fetched again.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._records: list[MessageRecord] = []

    @property
    def path(self) -> Path:
        return self._path

    @property
    def records(self) -> list[MessageRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def load(self) -> list[MessageRecord]:
        """Read the cache file, replacing the in-memory contents.

        Returns:
            The loaded records (empty if the file is missing or unreadable).
        """
        self._records = []
        text = _read_text(self._path)
        if text is None:
            return []
        try:
            self._records = _RECORDS_ADAPTER.validate_json(text)
        except ValidationError as exc:
            logger.warning(
                "Failed to deserialize message cache",
                path=str(self._path),
                errors=exc.error_count(),
            )
            return []
        logger.info("Loaded message cache", path=str(self._path), count=len(self._records))
        return list(self._records)

    def add(self, records: Iterable[MessageRecord]) -> None:
        self._records.extend(records)

    def mail_ids_of_type(self, mail_type: MailType) -> set[str]:
        """Return the provider ids already cached for one folder."""
        return {record.mail_id for record in self._records if record.mail_type is mail_type}

    def valid_records(self) -> list[MessageRecord]:
        return [record for record in self._records if record.is_valid]

    def flush(self) -> bool:
        """Write the cache to disk; failures are logged, not raised."""
        return _write_atomic(self._path, _RECORDS_ADAPTER.dump_json(self._records, indent=2))

    def clear(self) -> None:
        self._records.clear()


class ConversationIdCache:
    """Map of root Message-ID to the chat conversation it was posted to."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._mapping: dict[str, str] = {}

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        return len(self._mapping)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._mapping

    def load(self) -> dict[str, str]:
        """Read the mapping file, replacing the in-memory contents."""
        self._mapping = {}
        text = _read_text(self._path)
        if text is None:
            return {}
        try:
            self._mapping = _ID_MAP_ADAPTER.validate_json(text)
        except ValidationError as exc:
            logger.warning(
                "Failed to deserialize id mapping cache",
                path=str(self._path),
                errors=exc.error_count(),
            )
            return {}
        logger.info("Loaded id mapping cache", path=str(self._path), count=len(self._mapping))
        return dict(self._mapping)

    def lookup(self, message_id: str) -> str | None:
        return self._mapping.get(message_id)

    def add(self, message_id: str, conversation_id: str) -> bool:
        """Record a mapping; an existing entry is never overwritten.

        Returns:
            ``True`` if the mapping was added.
        """
        if message_id in self._mapping:
            return False
        self._mapping[message_id] = conversation_id
        return True

    def to_dict(self) -> dict[str, Any]:
        return dict(self._mapping)

    def flush(self) -> bool:
        """Write the mapping to disk; failures are logged, not raised."""
        data = json.dumps(self._mapping, indent=2, sort_keys=True).encode("utf-8")
        return _write_atomic(self._path, data)

    def clear(self) -> None:
        self._mapping.clear()
