from __future__ import annotations

import math
from datetime import datetime

_TIMESTAMP_FORMATS = [
  "%Y-%m-%d %H:%M:%S",  # Intraday series keys
  "%Y-%m-%d %H:%M",
  "%Y-%m-%d",  # Daily series keys
]


def parse_timestamp(value: str) -> datetime:
  """Parses an Alpha Vantage series key into a naive datetime.

  Intraday keys carry no offset; they are in the exchange zone reported by the
  payload's metadata. Comparisons only ever happen within one series, so the
  zone is left unattached.

  Args:
    value: The raw key, e.g. "2024-01-05 19:55:00".

  Returns:
    The parsed datetime.

  Raises:
    ValueError: If the value matches none of the known formats.
  """
  if not isinstance(value, str):
    raise ValueError(f"timestamp must be a string, got {type(value).__name__}")
  text = value.strip()
  for fmt in _TIMESTAMP_FORMATS:
    try:
      return datetime.strptime(text, fmt)
    except ValueError:
      continue
  raise ValueError(f"Unrecognized timestamp format: {value!r}")


def parse_price(value) -> float:
  """Converts a price field to a float, rejecting blanks, NaN and infinities."""
  if isinstance(value, bool) or value is None:
    raise ValueError(f"Invalid price value: {value!r}")
  price = float(value)
  if not math.isfinite(price):
    raise ValueError(f"Invalid price value: {value!r}")
  return price
