class DashboardError(Exception):
  """Base class for every error raised by the dashboard core."""

  pass


class ConfigMissingError(DashboardError):
  """Raised when a required setting (such as the API key) is not configured."""

  pass


class RateLimitedError(DashboardError):
  """Raised when the upstream API keeps throttling after all retries."""

  def __init__(self, message: str | None = None):
    super().__init__(
      message
      or "API rate limit reached. Please try again in a few minutes "
      "or upgrade to a premium API key."
    )


class NetworkFailureError(DashboardError):
  """Raised when a request or its decoding keeps failing after all retries."""

  pass


class NoDataAvailableError(DashboardError):
  """Raised when a payload holds no usable time series for a symbol."""

  pass


class StoreCorruptError(DashboardError):
  """Raised when persisted bytes cannot be decoded into a ledger."""

  pass
