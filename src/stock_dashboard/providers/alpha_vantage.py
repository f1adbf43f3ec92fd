from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import Any

import requests

from stock_dashboard.config import Settings
from stock_dashboard.errors import ConfigMissingError
from stock_dashboard.interfaces import IntradayFetcher, OverviewFetcher
from stock_dashboard.utils.backoff import fetch_with_backoff

# --- Module Constants ---
_BASE_URL = "https://www.alphavantage.co/query"
_DEFAULT_INTERVAL = "5min"

# --- Private Fetcher Implementations ---


def _get_intraday_impl(
  fetch: Callable[..., Any], api_key: str, **kwargs: Any
) -> dict[str, Any]:
  """Fetches the intraday time series for ``symbol`` at ``interval``."""
  symbol = kwargs["symbol"]
  params = {
    "function": "TIME_SERIES_INTRADAY",
    "symbol": symbol,
    "interval": kwargs.get("interval") or _DEFAULT_INTERVAL,
    "apikey": api_key,
  }
  logging.info(f"Fetching intraday data for {symbol} from Alpha Vantage...")
  return fetch(_BASE_URL, params=params)


def _get_overview_impl(
  fetch: Callable[..., Any], api_key: str, **kwargs: Any
) -> dict[str, Any]:
  """Fetches the company overview for ``symbol``."""
  symbol = kwargs["symbol"]
  params = {"function": "OVERVIEW", "symbol": symbol, "apikey": api_key}
  logging.debug(f"Fetching company overview for {symbol} from Alpha Vantage.")
  return fetch(_BASE_URL, params=params)


# --- Public Provider Class ---


class AlphaVantageProvider:
  """Alpha Vantage client exposing intraday and overview fetchers.

  Every call goes through the bounded exponential-backoff fetcher, so callers
  see either a decoded payload or a RateLimitedError / NetworkFailureError.
  """

  def __init__(
    self,
    api_key: str | None,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    session: requests.Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
  ):
    if not api_key:
      raise ConfigMissingError("Alpha Vantage provider requires an API key.")

    fetch = functools.partial(
      fetch_with_backoff,
      max_attempts=max_attempts,
      base_delay=base_delay,
      session=session,
      sleep=sleep,
    )

    self._capabilities = {
      IntradayFetcher: functools.partial(_get_intraday_impl, fetch=fetch, api_key=api_key),
      OverviewFetcher: functools.partial(_get_overview_impl, fetch=fetch, api_key=api_key),
    }

  @classmethod
  def from_settings(
    cls,
    settings: Settings,
    session: requests.Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
  ) -> AlphaVantageProvider:
    return cls(
      api_key=settings.require_api_key(),
      max_attempts=settings.max_attempts,
      base_delay=settings.backoff_base_seconds,
      session=session,
      sleep=sleep,
    )

  def supports(self, interface_class: type) -> bool:
    return interface_class in self._capabilities

  def get_fetcher(self, interface_class: type):
    if not self.supports(interface_class):
      raise TypeError(f"This provider does not support {interface_class.__name__}")
    return self._capabilities[interface_class]
