from __future__ import annotations

from datetime import datetime, timezone

import pytest
import requests

from stock_dashboard.models import FetchLedger, QuotePoint, StockRecord

RATE_LIMIT_NOTE = {
  "Note": "Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute."
}


def intraday_payload(symbol: str, prices: dict[str, float | str], interval: str = "5min") -> dict:
  """Builds a TIME_SERIES_INTRADAY style body from timestamp -> close price."""
  return {
    "Meta Data": {
      "1. Information": f"Intraday ({interval}) open, high, low, close prices and volume",
      "2. Symbol": symbol,
      "3. Last Refreshed": max(prices) if prices else "",
      "4. Interval": interval,
      "5. Output Size": "Compact",
      "6. Time Zone": "US/Eastern",
    },
    f"Time Series ({interval})": {
      ts: {
        "1. open": str(price),
        "2. high": str(price),
        "3. low": str(price),
        "4. close": str(price),
        "5. volume": "1000",
      }
      for ts, price in prices.items()
    },
  }


AAPL_PRICES = {
  "2024-01-05 19:55:00": 181.5,
  "2024-01-05 19:45:00": 180.0,
  "2024-01-05 19:50:00": 181.0,
}


class FakeResponse:
  def __init__(self, body, status_code: int = 200):
    self._body = body
    self.status_code = status_code

  def raise_for_status(self):
    if self.status_code >= 400:
      raise requests.HTTPError(f"{self.status_code} Server Error")

  def json(self):
    if isinstance(self._body, Exception):
      raise self._body
    return self._body


class FakeSession:
  """Replays scripted outcomes; an outcome is a body, a FakeResponse or an exception.

  ``routes`` maps (function, symbol) to a list of outcomes; ``script`` is used
  for any request not matched by a route.
  """

  def __init__(self, script=None, routes=None):
    self.script = list(script or [])
    self.routes = {key: list(value) for key, value in (routes or {}).items()}
    self.calls: list[dict] = []

  def get(self, url, params=None, timeout=None):
    params = dict(params or {})
    self.calls.append({"url": url, "params": params, "timeout": timeout})
    key = (params.get("function"), params.get("symbol"))
    queue = self.routes.get(key, self.script)
    if not queue:
      raise AssertionError(f"Unexpected request: {params}")
    # The last outcome of a queue repeats forever.
    outcome = queue.pop(0) if len(queue) > 1 else queue[0]
    if isinstance(outcome, Exception):
      raise outcome
    if isinstance(outcome, FakeResponse):
      return outcome
    return FakeResponse(outcome)

  def symbols_requested(self, function: str = "TIME_SERIES_INTRADAY") -> list[str]:
    return [c["params"]["symbol"] for c in self.calls if c["params"].get("function") == function]


class RecordingSleep:
  def __init__(self):
    self.delays: list[float] = []

  def __call__(self, seconds: float) -> None:
    self.delays.append(seconds)


class FixedClock:
  def __init__(self, moment: datetime):
    self.moment = moment

  def __call__(self) -> datetime:
    return self.moment


@pytest.fixture
def sleep() -> RecordingSleep:
  return RecordingSleep()


@pytest.fixture
def clock() -> FixedClock:
  return FixedClock(datetime(2024, 1, 6, 12, 0, tzinfo=timezone.utc))


def make_record(symbol: str = "AAPL", prices=(100.0, 101.0, 99.5)) -> StockRecord:
  series = [
    QuotePoint(timestamp=f"2024-01-05 19:{45 + 5 * i:02d}:00", price=price)
    for i, price in enumerate(prices)
  ]
  return StockRecord.from_series(symbol=symbol, name=f"{symbol} Inc.", series=series)


def make_ledger(*symbols: str, fetched_at: datetime | None = None) -> FetchLedger:
  return FetchLedger(
    records=[make_record(s) for s in symbols],
    fetched_at=fetched_at or datetime(2024, 1, 6, 11, 30, tzinfo=timezone.utc),
  )
