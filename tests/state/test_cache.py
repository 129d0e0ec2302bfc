"""Tests for the message cache and the conversation id cache."""

from __future__ import annotations

import json
from pathlib import Path

from mailrelay.domain.types import MailType
from mailrelay.email.models import MessageRecord
from mailrelay.state.cache import ConversationIdCache, MessageCache

# ---------------------------------------------------------------------------
# MessageCache
# ---------------------------------------------------------------------------


class TestMessageCache:
    def test_missing_file_loads_empty(self, tmp_path: Path) -> None:
        cache = MessageCache(tmp_path / "email_cache.json")
        assert cache.load() == []
        assert len(cache) == 0

    def test_empty_file_loads_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "email_cache.json"
        path.write_text("   ")
        assert MessageCache(path).load() == []

    def test_corrupt_file_loads_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "email_cache.json"
        path.write_text('[{"mail_id": 12, "date": "yesterday"')
        assert MessageCache(path).load() == []

    def test_flush_and_load_round_trip(self, tmp_path: Path, make_record) -> None:
        path = tmp_path / "nested" / "email_cache.json"
        cache = MessageCache(path)
        records = [
            make_record("<a>"),
            make_record("<b>", "<a>", mail_type=MailType.SENT),
            MessageRecord.invalid(MailType.RECEIVED, "gm-broken"),
        ]
        cache.add(records)

        assert cache.flush() is True

        reloaded = MessageCache(path)
        assert reloaded.load() == records
        assert not (path.parent / ".email_cache.json.tmp").exists()

    def test_mail_ids_of_type(self, tmp_path: Path, make_record) -> None:
        cache = MessageCache(tmp_path / "email_cache.json")
        cache.add(
            [
                make_record("<a>", mail_id="r1"),
                make_record("<b>", mail_id="s1", mail_type=MailType.SENT),
                MessageRecord.invalid(MailType.RECEIVED, "r2"),
            ]
        )

        assert cache.mail_ids_of_type(MailType.RECEIVED) == {"r1", "r2"}
        assert cache.mail_ids_of_type(MailType.SENT) == {"s1"}

    def test_valid_records(self, tmp_path: Path, make_record) -> None:
        cache = MessageCache(tmp_path / "email_cache.json")
        cache.add([make_record("<a>"), MessageRecord.invalid(MailType.RECEIVED, "r2")])

        assert [record.message_id for record in cache.valid_records()] == ["<a>"]

    def test_flush_failure_is_reported(self, tmp_path: Path, make_record) -> None:
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")
        cache = MessageCache(blocker / "email_cache.json")
        cache.add([make_record("<a>")])

        assert cache.flush() is False


# ---------------------------------------------------------------------------
# ConversationIdCache
# ---------------------------------------------------------------------------


class TestConversationIdCache:
    def test_add_and_lookup(self, tmp_path: Path) -> None:
        cache = ConversationIdCache(tmp_path / "ids.json")

        assert cache.add("<a>", "111") is True
        assert cache.lookup("<a>") == "111"
        assert cache.lookup("<b>") is None
        assert "<a>" in cache

    def test_existing_mapping_is_not_overwritten(self, tmp_path: Path) -> None:
        cache = ConversationIdCache(tmp_path / "ids.json")
        cache.add("<a>", "111")

        assert cache.add("<a>", "222") is False
        assert cache.lookup("<a>") == "111"

    def test_flush_writes_plain_json_object(self, tmp_path: Path) -> None:
        path = tmp_path / "ids.json"
        cache = ConversationIdCache(path)
        cache.add("<b>", "2")
        cache.add("<a>", "1")

        cache.flush()

        assert json.loads(path.read_text()) == {"<a>": "1", "<b>": "2"}

    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "ids.json"
        path.write_text(json.dumps({"<a>": "1"}))

        cache = ConversationIdCache(path)

        assert cache.load() == {"<a>": "1"}
        assert len(cache) == 1

    def test_malformed_file_loads_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "ids.json"
        path.write_text('["not", "a", "mapping"]')

        cache = ConversationIdCache(path)

        assert cache.load() == {}
        assert cache.lookup("not") is None

    def test_missing_file_loads_empty(self, tmp_path: Path) -> None:
        assert ConversationIdCache(tmp_path / "ids.json").load() == {}
