from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

import requests

from stock_dashboard.cache import QuoteCache, utc_now
from stock_dashboard.config import Settings
from stock_dashboard.errors import (
  ConfigMissingError,
  NetworkFailureError,
  NoDataAvailableError,
  RateLimitedError,
)
from stock_dashboard.interfaces import IntradayFetcher, KeyValueStorage, OverviewFetcher
from stock_dashboard.models import FetchLedger, StockRecord
from stock_dashboard.normalizer import normalize
from stock_dashboard.providers.alpha_vantage import AlphaVantageProvider
from stock_dashboard.scheduler import is_refresh_due
from stock_dashboard.storage import FileStorage, LedgerStore


@dataclass(frozen=True)
class _CycleOutcome:
  """What the most recent refresh cycle produced, shared with waiting callers."""

  symbols: list[str]
  ledger: FetchLedger | None = None
  error: Exception | None = None


class RefreshService:
  """Runs refresh cycles over the configured symbols and persists the result.

  Symbols are fetched one after another with a pause between upstream calls
  to stay under the per-minute quota. At most one refresh runs at a time;
  callers arriving while a cycle for the same symbols is in flight wait for
  it and share its result or error instead of issuing their own upstream calls.
  """

  def __init__(
    self,
    provider: AlphaVantageProvider | None,
    store: LedgerStore,
    symbols: Sequence[str],
    interval: str = "5min",
    symbol_delay: float = 2.0,
    resolve_names: bool = False,
    cache: QuoteCache | None = None,
    clock: Callable[[], datetime] = utc_now,
    sleep: Callable[[float], None] = time.sleep,
  ):
    self.provider = provider
    self.store = store
    self.symbols = list(symbols)
    self.interval = interval
    self.symbol_delay = symbol_delay
    self.resolve_names = resolve_names
    self.cache = cache if cache is not None else QuoteCache(clock=clock)
    self._clock = clock
    self._sleep = sleep
    self._refresh_lock = threading.Lock()
    self._last_outcome: _CycleOutcome | None = None

  @classmethod
  def from_settings(
    cls,
    settings: Settings,
    storage: KeyValueStorage | None = None,
    session: requests.Session | None = None,
    clock: Callable[[], datetime] = utc_now,
    sleep: Callable[[float], None] = time.sleep,
  ) -> RefreshService:
    """Wires a service from settings.

    A missing API key does not fail here: stored data can still be served,
    and the error surfaces as soon as a refresh is attempted.
    """
    provider = (
      AlphaVantageProvider.from_settings(settings, session=session, sleep=sleep)
      if settings.api_key
      else None
    )
    return cls(
      provider=provider,
      store=LedgerStore(storage or FileStorage(settings.storage_dir)),
      symbols=settings.symbols,
      interval=settings.interval,
      symbol_delay=settings.symbol_delay_seconds,
      resolve_names=settings.resolve_names,
      cache=QuoteCache(ttl=timedelta(seconds=settings.cache_ttl_seconds), clock=clock),
      clock=clock,
      sleep=sleep,
    )

  def now(self) -> datetime:
    return self._clock()

  def _require_provider(self) -> AlphaVantageProvider:
    if self.provider is None:
      raise ConfigMissingError(
        "Alpha Vantage API key is not set. Please set ALPHA_VANTAGE_API_KEY in your .env file."
      )
    return self.provider

  def _lookup_name(self, symbol: str) -> str | None:
    """Looks up the company name; failures fall back to the symbol."""
    get_overview = self._require_provider().get_fetcher(OverviewFetcher)
    self._sleep(self.symbol_delay)
    try:
      overview = get_overview(symbol=symbol)
    except (RateLimitedError, NetworkFailureError) as e:
      logging.warning(f"Could not resolve a name for {symbol}: {e}")
      return None
    name = overview.get("Name") if isinstance(overview, dict) else None
    return name or None

  def _fetch_uncached(self, symbol: str) -> StockRecord:
    get_intraday = self._require_provider().get_fetcher(IntradayFetcher)
    payload = get_intraday(symbol=symbol, interval=self.interval)
    name = self._lookup_name(symbol) if self.resolve_names else None
    record = normalize(symbol, payload, name=name, interval=self.interval)
    self.cache.put(record)
    return record

  def fetch_record(self, symbol: str) -> StockRecord:
    """Fetches and normalizes one symbol, consulting the cache first.

    Raises:
      ConfigMissingError: If no API key is configured.
      RateLimitedError: If upstream kept throttling.
      NetworkFailureError: If the request kept failing.
      NoDataAvailableError: If the payload holds no usable series.
    """
    cached = self.cache.get(symbol)
    if cached is not None:
      logging.info(f"Using cached data for {symbol}")
      return cached
    return self._fetch_uncached(symbol)

  def fetch_records(self, symbols: Sequence[str] | None = None) -> list[StockRecord]:
    """Fetches every symbol in turn, skipping the ones that fail.

    Raises:
      ConfigMissingError: If no API key is configured.
      RateLimitedError, NetworkFailureError: If no symbol succeeded and at least
        one of them failed this way; the last such error is raised.
    """
    symbols = list(self.symbols if symbols is None else symbols)
    self._require_provider()
    logging.info(f"Starting to fetch {len(symbols)} stocks: {', '.join(symbols)}")

    records: list[StockRecord] = []
    last_error: RateLimitedError | NetworkFailureError | None = None
    for i, symbol in enumerate(symbols):
      # Cache hits make no upstream call, so they also skip the inter-symbol delay.
      cached = self.cache.get(symbol)
      if cached is not None:
        logging.info(f"Using cached data for {symbol}")
        records.append(cached)
        continue

      try:
        records.append(self._fetch_uncached(symbol))
        logging.info(f"Successfully fetched data for {symbol}")
      except NoDataAvailableError as e:
        logging.warning(f"Skipping {symbol}: {e}")
      except (RateLimitedError, NetworkFailureError) as e:
        logging.error(f"Failed to fetch {symbol}: {e}")
        last_error = e

      # Spread upstream calls out, but not after the last one.
      if i < len(symbols) - 1:
        self._sleep(self.symbol_delay)

    missing = [s for s in symbols if s not in {r.symbol for r in records}]
    if missing:
      logging.warning(f"No data for symbols: {', '.join(missing)}")
    if not records and last_error is not None:
      raise last_error
    return records

  def _run_cycle(self, symbols: list[str]) -> FetchLedger | None:
    records = self.fetch_records(symbols)
    if not records:
      logging.warning("Refresh produced no records; keeping the stored data.")
      return None

    fetched_at = self._clock()
    previous = self.store.last_fetch_time()
    if previous is not None and previous > fetched_at:
      fetched_at = previous

    ledger = FetchLedger(records=records, fetched_at=fetched_at)
    self.store.save(ledger)
    return ledger

  def _run_recorded_cycle(self, symbols: list[str]) -> FetchLedger | None:
    """Runs a cycle while holding the lock and records its outcome for waiters."""
    self._last_outcome = _CycleOutcome(symbols=symbols)
    try:
      ledger = self._run_cycle(symbols)
    except Exception as e:
      self._last_outcome = _CycleOutcome(symbols=symbols, error=e)
      raise
    self._last_outcome = _CycleOutcome(symbols=symbols, ledger=ledger)
    return ledger

  def refresh(self, symbols: Sequence[str] | None = None) -> FetchLedger | None:
    """Runs one refresh cycle and stores its records.

    A caller arriving while a cycle for the same symbols is in flight waits
    for it and receives its result, or its error. A caller asking for other
    symbols waits, then runs its own cycle.

    Returns:
      The newly stored ledger, or None if no symbol produced a record.
    """
    requested = list(self.symbols if symbols is None else symbols)
    if self._refresh_lock.acquire(blocking=False):
      try:
        return self._run_recorded_cycle(requested)
      finally:
        self._refresh_lock.release()

    logging.info("A refresh is already in flight; waiting for its result.")
    with self._refresh_lock:
      outcome = self._last_outcome
      if outcome is None or outcome.symbols != requested:
        return self._run_recorded_cycle(requested)
    if outcome.error is not None:
      raise outcome.error
    return outcome.ledger

  def load_or_refresh(self) -> FetchLedger | None:
    """Serves stored data unless the schedule says a refresh is due."""
    stored = self.store.load()
    if stored is not None and not is_refresh_due(stored.fetched_at, self._clock()):
      logging.info(f"Using stored data fetched at {stored.fetched_at.isoformat()}")
      return stored

    logging.info("Refresh is due; fetching new data.")
    return self.refresh() or stored
