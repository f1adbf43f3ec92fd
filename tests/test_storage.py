import json
import logging
from datetime import datetime, timezone

import pytest

from stock_dashboard.models import FetchLedger
from stock_dashboard.storage import (
  LEGACY_TIMESTAMP_KEY,
  STORAGE_KEY,
  FileStorage,
  LedgerStore,
  MemoryStorage,
)

from conftest import make_ledger


@pytest.fixture(params=["memory", "file"])
def storage(request, tmp_path):
  if request.param == "memory":
    return MemoryStorage()
  return FileStorage(tmp_path / "store")


def test_load_after_save_reproduces_the_ledger(storage):
  store = LedgerStore(storage)
  ledger = make_ledger("AAPL", "JPM", fetched_at=datetime(2024, 1, 6, 11, 5, 30, 123456, tzinfo=timezone.utc))

  assert store.save(ledger)
  loaded = store.load()

  assert loaded == ledger
  assert loaded.symbols == ["AAPL", "JPM"]
  assert loaded.get("JPM").series == ledger.get("JPM").series
  assert loaded.fetched_at == ledger.fetched_at


def test_load_returns_none_when_nothing_is_stored(storage):
  store = LedgerStore(storage)
  assert store.load() is None
  assert store.last_fetch_time() is None


def test_blob_uses_records_and_fetched_at_keys():
  storage = MemoryStorage()
  LedgerStore(storage).save(make_ledger("AAPL"))

  blob = json.loads(storage.get_item(STORAGE_KEY))

  assert set(blob) == {"records", "fetchedAt"}
  assert "changePercent" in blob["records"][0]


def test_save_overwrites_the_whole_ledger(storage):
  store = LedgerStore(storage)
  store.save(make_ledger("AAPL", "JPM"))
  store.save(make_ledger("XOM"))
  assert store.load().symbols == ["XOM"]


@pytest.mark.parametrize(
  "raw",
  [
    "{not json",
    json.dumps({"stocks": [], "timestamp": 1700000000000}),
    json.dumps({"records": [], "fetchedAt": "2024-01-06T11:00:00"}),
    json.dumps({"records": [{"symbol": "AAPL"}], "fetchedAt": "2024-01-06T11:00:00Z"}),
  ],
)
def test_malformed_blob_is_a_cache_miss(raw, caplog):
  store = LedgerStore(MemoryStorage({STORAGE_KEY: raw}))
  with caplog.at_level(logging.WARNING):
    assert store.load() is None
  assert "Ignoring stored stock data" in caplog.text


def test_clear_removes_ledger_and_legacy_timestamp():
  storage = MemoryStorage({LEGACY_TIMESTAMP_KEY: "1700000000000"})
  store = LedgerStore(storage)
  store.save(make_ledger("AAPL"))

  store.clear()

  assert storage.get_item(STORAGE_KEY) is None
  assert storage.get_item(LEGACY_TIMESTAMP_KEY) is None


def test_legacy_timestamp_key_is_not_used_for_loading():
  store = LedgerStore(MemoryStorage({LEGACY_TIMESTAMP_KEY: "1700000000000"}))
  assert store.last_fetch_time() is None


def test_file_storage_round_trips_values(tmp_path):
  storage = FileStorage(tmp_path / "nested" / "dir")
  assert storage.get_item("k") is None

  storage.set_item("k", "v1")
  storage.set_item("k", "v2")
  assert storage.get_item("k") == "v2"
  assert [p.name for p in (tmp_path / "nested" / "dir").iterdir()] == ["k.json"]

  storage.remove_item("k")
  storage.remove_item("k")
  assert storage.get_item("k") is None


def test_write_failure_is_logged_not_raised(caplog):
  class BrokenStorage(MemoryStorage):
    def set_item(self, key, value):
      raise PermissionError("read-only file system")

  with caplog.at_level(logging.ERROR):
    assert LedgerStore(BrokenStorage()).save(make_ledger("AAPL")) is False
  assert "read-only" in caplog.text


def test_loaded_ledger_is_a_fetch_ledger(storage):
  store = LedgerStore(storage)
  store.save(make_ledger("AAPL"))
  assert isinstance(store.load(), FetchLedger)
