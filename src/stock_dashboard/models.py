from __future__ import annotations

import math
from datetime import datetime, timezone

from pydantic import (
  AwareDatetime,
  BaseModel,
  ConfigDict,
  Field,
  field_validator,
  model_validator,
)

from stock_dashboard.utils.parsers import parse_timestamp


class QuotePoint(BaseModel):
  """A single (timestamp, price) sample of an intraday series."""

  model_config = ConfigDict(frozen=True)

  timestamp: str
  price: float

  @field_validator("price")
  @classmethod
  def check_finite(cls, v: float) -> float:
    if not math.isfinite(v):
      raise ValueError(f"price must be a finite number, got {v!r}")
    return v

  @property
  def moment(self) -> datetime:
    return parse_timestamp(self.timestamp)


class StockRecord(BaseModel):
  """Represents the normalized view of one symbol's latest intraday data."""

  model_config = ConfigDict(frozen=True, populate_by_name=True)

  symbol: str
  name: str
  price: float
  change: float
  change_percent: float = Field(alias="changePercent")
  series: list[QuotePoint]

  @model_validator(mode="after")
  def check_series(self) -> StockRecord:
    """Rejects records whose derived fields disagree with their series."""
    if not self.series:
      raise ValueError(f"series for {self.symbol} must not be empty")
    moments = [point.moment for point in self.series]
    if any(later <= earlier for earlier, later in zip(moments, moments[1:])):
      raise ValueError(f"series for {self.symbol} is not strictly ascending")
    if self.price != self.series[-1].price:
      raise ValueError(f"price for {self.symbol} does not match the latest point")
    return self

  @classmethod
  def from_series(
    cls, symbol: str, name: str, series: list[QuotePoint]
  ) -> StockRecord:
    """Builds a record, deriving price and change from an ordered series.

    Raises:
      ValueError: If the series is empty or its first price is zero.
    """
    if not series:
      raise ValueError(f"series for {symbol} must not be empty")
    first, last = series[0].price, series[-1].price
    if first == 0:
      raise ValueError(f"first price for {symbol} is zero; change percent is undefined")
    change = last - first
    return cls(
      symbol=symbol,
      name=name,
      price=last,
      change=change,
      change_percent=change / first * 100,
      series=series,
    )


class FetchLedger(BaseModel):
  """The persisted set of records together with the instant they were fetched."""

  model_config = ConfigDict(frozen=True, populate_by_name=True)

  records: list[StockRecord]
  fetched_at: AwareDatetime = Field(alias="fetchedAt")

  @field_validator("records")
  @classmethod
  def check_unique_symbols(cls, v: list[StockRecord]) -> list[StockRecord]:
    seen: set[str] = set()
    for record in v:
      if record.symbol in seen:
        raise ValueError(f"duplicate record for symbol {record.symbol!r}")
      seen.add(record.symbol)
    return v

  @field_validator("fetched_at")
  @classmethod
  def to_utc(cls, v: datetime) -> datetime:
    return v.astimezone(timezone.utc)

  @property
  def symbols(self) -> list[str]:
    return [record.symbol for record in self.records]

  def get(self, symbol: str) -> StockRecord | None:
    return next((r for r in self.records if r.symbol == symbol), None)
