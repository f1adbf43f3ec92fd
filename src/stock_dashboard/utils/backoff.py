from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

import requests

from stock_dashboard.errors import NetworkFailureError, RateLimitedError
from stock_dashboard.utils.rate_limit import is_rate_limited

_DEFAULT_TIMEOUT_SECONDS = 30


def fetch_with_backoff(
  url: str,
  params: Mapping[str, Any] | None = None,
  max_attempts: int = 3,
  base_delay: float = 1.0,
  session: requests.Session | None = None,
  sleep: Callable[[float], None] = time.sleep,
  timeout: float = _DEFAULT_TIMEOUT_SECONDS,
) -> Any:
  """Performs a GET and decodes the JSON body, retrying with exponential backoff.

  Attempt ``i`` (zero-based) that fails or comes back throttled is followed by
  a pause of ``base_delay * 2**i`` seconds. No jitter is applied.

  Args:
    url: The endpoint to query.
    params: Query parameters sent with every attempt.
    max_attempts: Total number of attempts, at least 1.
    base_delay: Pause in seconds after the first failed attempt.
    session: Object exposing ``get`` (a requests.Session); defaults to ``requests``.
    sleep: Blocking sleep used between attempts.
    timeout: Per-request timeout in seconds.

  Returns:
    The decoded JSON body of the first successful, non-throttled response.

  Raises:
    RateLimitedError: If the final attempt was throttled.
    NetworkFailureError: If the final attempt failed in transport or decoding.
  """
  if max_attempts < 1:
    raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

  client = session or requests
  for attempt in range(max_attempts):
    is_last = attempt == max_attempts - 1
    try:
      response = client.get(url, params=params, timeout=timeout)
      response.raise_for_status()
      payload = response.json()
    except (requests.exceptions.RequestException, ValueError) as e:
      if is_last:
        raise NetworkFailureError(
          f"Request to {url} failed after {max_attempts} attempts: {e}"
        ) from e
      logging.warning(f"Attempt {attempt + 1}/{max_attempts} to {url} failed: {e}")
    else:
      if not is_rate_limited(payload):
        return payload
      if is_last:
        raise RateLimitedError()
      logging.warning(f"Attempt {attempt + 1}/{max_attempts} to {url} was rate limited.")

    delay = base_delay * 2**attempt
    logging.info(f"Retrying in {delay:.1f}s...")
    sleep(delay)

  # Unreachable: the last attempt either returns or raises.
  raise NetworkFailureError(f"Request to {url} failed after {max_attempts} attempts")
