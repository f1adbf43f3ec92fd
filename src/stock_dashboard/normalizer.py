from __future__ import annotations

import logging
from typing import Any

from stock_dashboard.errors import NoDataAvailableError
from stock_dashboard.models import QuotePoint, StockRecord
from stock_dashboard.utils.parsers import parse_price, parse_timestamp

_CLOSE_FIELD = "4. close"
_META_DATA_FIELD = "Meta Data"


def series_field(interval: str = "5min") -> str:
  """Returns the payload key holding the time series for an interval."""
  return f"Time Series ({interval})"


def _resolve_name(symbol: str, payload: dict[str, Any], name: str | None) -> str:
  """Picks the display name: explicit, then metadata, then overview, then symbol."""
  if name:
    return name
  meta = payload.get(_META_DATA_FIELD)
  if isinstance(meta, dict):
    for key, value in meta.items():
      # Metadata keys are numbered, e.g. "2. Name".
      if key.split(". ", 1)[-1] == "Name" and isinstance(value, str) and value:
        return value
  overview_name = payload.get("Name")
  if isinstance(overview_name, str) and overview_name:
    return overview_name
  return symbol


def normalize(
  symbol: str,
  payload: dict[str, Any],
  name: str | None = None,
  interval: str = "5min",
) -> StockRecord:
  """Converts a raw intraday payload into a fully validated StockRecord.

  The upstream series is a mapping whose iteration order is not trusted;
  points are sorted by their parsed timestamp before price and change are
  derived from the first and last points.

  Raises:
    NoDataAvailableError: If the series is absent or empty, or any entry fails
      to parse. No partial record is ever returned.
  """
  if not isinstance(payload, dict):
    raise NoDataAvailableError(f"No data available for {symbol}")

  raw_series = payload.get(series_field(interval))
  if not isinstance(raw_series, dict) or not raw_series:
    raise NoDataAvailableError(f"No data available for {symbol}")

  try:
    entries = []
    for timestamp, values in raw_series.items():
      entries.append(
        (
          parse_timestamp(timestamp),
          QuotePoint(timestamp=timestamp, price=parse_price(values[_CLOSE_FIELD])),
        )
      )
    entries.sort(key=lambda entry: entry[0])
    series = [point for _, point in entries]
    record = StockRecord.from_series(
      symbol=symbol, name=_resolve_name(symbol, payload, name), series=series
    )
  except (KeyError, TypeError, ValueError) as e:
    # pydantic's ValidationError is a ValueError.
    raise NoDataAvailableError(f"Malformed time series for {symbol}: {e}") from e

  logging.debug(f"Normalized {len(record.series)} points for {symbol}.")
  return record
