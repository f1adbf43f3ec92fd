from typing import Any

# Alpha Vantage reports throttling inside a 200 response under one of these keys.
_DIAGNOSTIC_KEYS = ("Note", "Information")
_LIMIT_MARKERS = ("API call frequency", "premium")


def is_rate_limited(payload: Any) -> bool:
  """Returns True if a decoded response signals throttling or a premium-only call.

  Missing or non-text diagnostic fields mean the payload is not limited.
  """
  if not isinstance(payload, dict):
    return False
  for key in _DIAGNOSTIC_KEYS:
    message = payload.get(key)
    if isinstance(message, str) and any(m in message for m in _LIMIT_MARKERS):
      return True
  return False
