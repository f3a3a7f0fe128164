"""Unit tests for generation history and relative time formatting."""

from datetime import datetime
from pathlib import Path

import pytest

from nanobanana.core.config import Config
from nanobanana.core.history import (
    HISTORY_KEY,
    HistoryStore,
    format_relative_time,
)
from nanobanana.utils.kvstore import KeyValueStore

MINUTE = 60 * 1000
HOUR = 60 * MINUTE
DAY = 24 * HOUR


@pytest.fixture
def history(tmp_path: Path) -> HistoryStore:
    return HistoryStore(tmp_path / "storage.json", max_items=3)


@pytest.mark.unit
class TestHistoryStore:
    def test_empty(self, history):
        assert history.get() == []

    def test_save_prepends(self, history):
        first = history.save("AAAA", prompt="one", resolution="1024x1024")
        second = history.save("BBBB", prompt="two", resolution="1376x768")
        entries = history.get()
        assert [e.id for e in entries] == [second.id, first.id]
        assert entries[0].prompt == "two"
        assert entries[0].resolution == "1376x768"
        assert entries[0].base64 == "BBBB"

    def test_capped_to_max_items(self, history):
        ids = [history.save(str(i), prompt=str(i), resolution="1x1").id for i in range(5)]
        assert [e.id for e in history.get()] == list(reversed(ids))[:3]

    def test_entry_fields(self, history):
        entry = history.save("AAAA", prompt="p", resolution="1x1")
        assert len(entry.id) == 36
        assert entry.created_at > 1_600_000_000_000

    def test_delete(self, history):
        keep = history.save("A", prompt="a", resolution="1x1")
        drop = history.save("B", prompt="b", resolution="1x1")
        history.delete(drop.id)
        assert [e.id for e in history.get()] == [keep.id]

    def test_delete_unknown_is_noop(self, history):
        history.save("A", prompt="a", resolution="1x1")
        history.delete("nope")
        assert len(history.get()) == 1

    def test_clear_keeps_other_keys(self, tmp_path):
        path = tmp_path / "storage.json"
        KeyValueStore(path).set_item("other", 1)
        store = HistoryStore(path)
        store.save("A", prompt="a", resolution="1x1")
        store.clear()
        assert store.get() == []
        assert KeyValueStore(path).get_item("other") == 1

    def test_stored_under_fixed_key(self, tmp_path):
        path = tmp_path / "storage.json"
        HistoryStore(path).save("A", prompt="a", resolution="1x1")
        raw = KeyValueStore(path).get_item(HISTORY_KEY)
        assert HISTORY_KEY == "nano-banana-history"
        assert raw[0]["prompt"] == "a"

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("{not json", encoding="utf-8")
        assert HistoryStore(path).get() == []

    def test_malformed_entries_skipped(self, tmp_path):
        path = tmp_path / "storage.json"
        KeyValueStore(path).set_item(HISTORY_KEY, [{"nope": 1}, "junk"])
        assert HistoryStore(path).get() == []

    def test_from_config(self, tmp_path):
        store = HistoryStore.from_config(Config(data_dir=tmp_path, history_max_items=7))
        assert store.max_items == 7
        store.save("A", prompt="a", resolution="1x1")
        assert (tmp_path / "storage.json").exists()


@pytest.mark.unit
class TestFormatRelativeTime:
    NOW = 1_700_000_000_000

    @pytest.mark.parametrize(
        "delta,expected",
        [
            (0, "just now"),
            (59 * 1000, "just now"),
            (MINUTE, "1 minute ago"),
            (5 * MINUTE, "5 minutes ago"),
            (HOUR, "1 hour ago"),
            (23 * HOUR, "23 hours ago"),
            (DAY, "1 day ago"),
            (6 * DAY, "6 days ago"),
        ],
    )
    def test_relative(self, delta, expected):
        assert format_relative_time(self.NOW - delta, now=self.NOW) == expected

    def test_older_than_a_week_shows_date(self):
        timestamp = self.NOW - 8 * DAY
        expected = datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d")
        assert format_relative_time(timestamp, now=self.NOW) == expected
