from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from stock_dashboard.errors import ConfigMissingError

API_KEY_ENV_VAR = "ALPHA_VANTAGE_API_KEY"

# One symbol per industry: technology, financials, healthcare, retail, energy.
DEFAULT_SYMBOLS = ["AAPL", "JPM", "JNJ", "WMT", "XOM"]

# Maps settings fields to the environment variables that override them.
_ENV_VARS = {
  "api_key": API_KEY_ENV_VAR,
  "symbols": "STOCK_SYMBOLS",
  "storage_dir": "STORAGE_DIR",
  "interval": "INTRADAY_INTERVAL",
  "max_attempts": "MAX_ATTEMPTS",
  "backoff_base_seconds": "BACKOFF_BASE_SECONDS",
  "symbol_delay_seconds": "SYMBOL_DELAY_SECONDS",
  "cache_ttl_seconds": "CACHE_TTL_SECONDS",
  "resolve_names": "RESOLVE_NAMES",
}


class Settings(BaseModel):
  """Runtime configuration for the dashboard core."""

  api_key: str | None = None
  symbols: list[str] = Field(default_factory=lambda: list(DEFAULT_SYMBOLS))
  storage_dir: Path = Field(default=Path("~/.stock_dashboard"), validate_default=True)
  interval: str = "5min"
  max_attempts: int = Field(default=3, ge=1)
  backoff_base_seconds: float = Field(default=1.0, ge=0)
  symbol_delay_seconds: float = Field(default=2.0, ge=0)
  cache_ttl_seconds: float = Field(default=30.0, ge=0)
  resolve_names: bool = False

  @field_validator("symbols", mode="before")
  @classmethod
  def split_symbols(cls, v):
    """Accepts a comma-separated string as well as a list."""
    if isinstance(v, str):
      v = v.split(",")
    symbols = [s.strip() for s in v if s and s.strip()]
    # Preserves first-seen order while dropping duplicates.
    return list(dict.fromkeys(symbols))

  @field_validator("storage_dir")
  @classmethod
  def expand_storage_dir(cls, v: Path) -> Path:
    return v.expanduser()

  def require_api_key(self) -> str:
    """Returns the API key, failing fast when it is not configured."""
    if not self.api_key:
      raise ConfigMissingError(
        f"Missing required env var '{API_KEY_ENV_VAR}'. "
        "Please set it in your .env file or as an environment variable."
      )
    return self.api_key


def load_settings(environ: dict[str, str] | None = None) -> Settings:
  """Builds Settings from environment variables, ignoring unset or blank ones.

  Raises:
    ValueError: If a variable holds a value of the wrong type.
  """
  environ = os.environ if environ is None else environ
  values = {
    field: environ[var]
    for field, var in _ENV_VARS.items()
    if environ.get(var, "").strip()
  }
  return Settings.model_validate(values)
