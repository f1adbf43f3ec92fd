from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

import pandas as pd

from stock_dashboard.errors import DashboardError
from stock_dashboard.models import FetchLedger, StockRecord
from stock_dashboard.scheduler import next_trigger
from stock_dashboard.service import RefreshService


class SymbolSelection:
  """The set of symbols shown in the comparison chart, in display order."""

  def __init__(self, symbols: Iterable[str] = ()):
    self._symbols = list(dict.fromkeys(symbols))

  def toggle(self, symbol: str) -> bool:
    """Adds or removes a symbol. Returns True if it is now selected."""
    if symbol in self._symbols:
      self._symbols.remove(symbol)
      return False
    self._symbols.append(symbol)
    return True

  def __contains__(self, symbol: object) -> bool:
    return symbol in self._symbols

  def __iter__(self):
    return iter(self._symbols)

  def __len__(self) -> int:
    return len(self._symbols)

  def __repr__(self) -> str:
    return f"SymbolSelection({self._symbols!r})"


@dataclass
class DashboardState:
  """Everything a rendering layer needs to draw the dashboard."""

  records: list[StockRecord] = field(default_factory=list)
  last_update: datetime | None = None
  next_refresh: datetime | None = None
  error: str | None = None
  selection: SymbolSelection = field(default_factory=SymbolSelection)

  @property
  def selected_records(self) -> list[StockRecord]:
    return [r for r in self.records if r.symbol in self.selection]


def comparison_frame(
  records: Sequence[StockRecord], selected: Iterable[str] | None = None
) -> pd.DataFrame:
  """Aligns the price series of the selected records on a shared time index.

  Returns:
    A DataFrame indexed by timestamp with one column per selected symbol, in
    record order. Timestamps missing from a series are NaN.
  """
  wanted = None if selected is None else set(selected)
  columns = [
    pd.Series(
      [p.price for p in record.series],
      index=pd.DatetimeIndex([p.moment for p in record.series], name="timestamp"),
      name=record.symbol,
    )
    for record in records
    if wanted is None or record.symbol in wanted
  ]
  if not columns:
    return pd.DataFrame(index=pd.DatetimeIndex([], name="timestamp"))
  return pd.concat(columns, axis=1).sort_index()


class Dashboard:
  """Drives the load/refresh flow and turns its outcome into a DashboardState."""

  def __init__(self, service: RefreshService):
    self.service = service
    self.selection = SymbolSelection(service.symbols)

  def toggle(self, symbol: str) -> bool:
    return self.selection.toggle(symbol)

  def _state(self, ledger: FetchLedger | None, error: str | None = None) -> DashboardState:
    last_update = ledger.fetched_at if ledger else None
    return DashboardState(
      records=list(ledger.records) if ledger else [],
      last_update=last_update,
      next_refresh=next_trigger(last_update, self.service.now()),
      error=error,
      selection=self.selection,
    )

  def load(self, force: bool = False) -> DashboardState:
    """Loads stored data, refreshing when due (or when ``force`` is set).

    Errors never escape: they are reported in ``state.error`` alongside
    whatever data was stored before.
    """
    try:
      if force:
        ledger = self.service.refresh() or self.service.store.load()
      else:
        ledger = self.service.load_or_refresh()
    except DashboardError as e:
      logging.error(f"Error fetching stock data: {e}")
      return self._state(self.service.store.load(), error=str(e))
    return self._state(ledger)
