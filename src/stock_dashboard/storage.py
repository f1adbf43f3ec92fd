from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from stock_dashboard.errors import StoreCorruptError
from stock_dashboard.interfaces import KeyValueStorage
from stock_dashboard.models import FetchLedger

STORAGE_KEY = "stockData"
# Superseded scheme that stored only the fetch time; never written anymore.
LEGACY_TIMESTAMP_KEY = "lastFetchTimestamp"


class MemoryStorage(KeyValueStorage):
  """In-process storage, lost when the process exits."""

  def __init__(self, initial: dict[str, str] | None = None):
    self._items = dict(initial or {})

  def get_item(self, key: str) -> str | None:
    return self._items.get(key)

  def set_item(self, key: str, value: str) -> None:
    self._items[key] = value

  def remove_item(self, key: str) -> None:
    self._items.pop(key, None)


class FileStorage(KeyValueStorage):
  """Stores each key as a UTF-8 file inside a directory."""

  def __init__(self, directory: Path | str):
    self.directory = Path(directory).expanduser()

  def _path(self, key: str) -> Path:
    return self.directory / f"{key}.json"

  def get_item(self, key: str) -> str | None:
    path = self._path(key)
    if not path.exists():
      return None
    return path.read_text(encoding="utf-8")

  def set_item(self, key: str, value: str) -> None:
    self.directory.mkdir(parents=True, exist_ok=True)
    # Write to a sibling temp file first so readers never see a half-written value.
    fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
    try:
      with os.fdopen(fd, "w", encoding="utf-8") as tmp:
        tmp.write(value)
      os.replace(tmp_name, self._path(key))
    except BaseException:
      Path(tmp_name).unlink(missing_ok=True)
      raise

  def remove_item(self, key: str) -> None:
    self._path(key).unlink(missing_ok=True)


class LedgerStore:
  """Persists the whole FetchLedger under a single storage key."""

  def __init__(self, storage: KeyValueStorage):
    self._storage = storage

  def save(self, ledger: FetchLedger) -> bool:
    """Overwrites the stored ledger. Returns False if the write failed."""
    blob = ledger.model_dump_json(by_alias=True)
    try:
      self._storage.set_item(STORAGE_KEY, blob)
    except OSError as e:
      logging.error(f"A storage error occurred while saving the ledger: {e}")
      return False
    logging.info(
      f"Saved {len(ledger.records)} records fetched at {ledger.fetched_at.isoformat()}."
    )
    return True

  def load(self) -> FetchLedger | None:
    """Returns the stored ledger, or None if it is missing or unreadable."""
    try:
      raw = self._storage.get_item(STORAGE_KEY)
    except OSError as e:
      logging.error(f"A storage error occurred while loading the ledger: {e}")
      return None
    if raw is None:
      return None
    try:
      return self._decode(raw)
    except StoreCorruptError as e:
      logging.warning(f"Ignoring stored stock data: {e}")
      return None

  @staticmethod
  def _decode(raw: str) -> FetchLedger:
    try:
      return FetchLedger.model_validate_json(raw)
    except ValidationError as e:
      raise StoreCorruptError(f"Stored ledger is malformed: {e}") from e

  def last_fetch_time(self):
    """Returns the fetch time of the stored ledger, if any."""
    ledger = self.load()
    return ledger.fetched_at if ledger else None

  def clear(self) -> None:
    """Removes the ledger along with any legacy timestamp entry."""
    for key in (STORAGE_KEY, LEGACY_TIMESTAMP_KEY):
      self._storage.remove_item(key)
