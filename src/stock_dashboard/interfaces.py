from abc import ABC, abstractmethod
from typing import Any


class IntradayFetcher(ABC):
  """Abstract base class for intraday time-series fetching functionality."""

  @abstractmethod
  def get_intraday(self, **kwargs: Any) -> dict[str, Any]:
    """Fetches the raw intraday payload for a symbol.

    Args:
      **kwargs: Provider-specific arguments (e.g., symbol, interval)

    Returns:
      The decoded response body
    """
    pass


class OverviewFetcher(ABC):
  """Abstract base class for company overview fetching functionality."""

  @abstractmethod
  def get_overview(self, **kwargs: Any) -> dict[str, Any]:
    """Fetches company metadata (name, sector, ...) for a symbol."""
    pass


class KeyValueStorage(ABC):
  """String key/value storage with browser local-storage semantics."""

  @abstractmethod
  def get_item(self, key: str) -> str | None:
    """Returns the stored value, or None when the key is absent."""
    pass

  @abstractmethod
  def set_item(self, key: str, value: str) -> None:
    """Stores a value, replacing any previous one."""
    pass

  @abstractmethod
  def remove_item(self, key: str) -> None:
    """Deletes a key; missing keys are ignored."""
    pass
