from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from stock_dashboard.models import StockRecord


def utc_now() -> datetime:
  return datetime.now(timezone.utc)


@dataclass(frozen=True)
class _Entry:
  record: StockRecord
  stored_at: datetime


class QuoteCache:
  """Short-lived per-symbol cache of normalized records.

  Entries expire ``ttl`` after they were stored, measured with the injected
  ``clock`` so expiry can be driven deterministically.
  """

  def __init__(
    self,
    ttl: timedelta = timedelta(seconds=30),
    clock: Callable[[], datetime] = utc_now,
  ):
    self.ttl = ttl
    self._clock = clock
    self._entries: dict[str, _Entry] = {}

  def get(self, symbol: str) -> StockRecord | None:
    entry = self._entries.get(symbol)
    if entry is None:
      return None
    if self._clock() - entry.stored_at >= self.ttl:
      del self._entries[symbol]
      return None
    return entry.record

  def put(self, record: StockRecord) -> None:
    self._entries[record.symbol] = _Entry(record=record, stored_at=self._clock())

  def clear(self) -> None:
    self._entries.clear()

  def __len__(self) -> int:
    return len(self._entries)
