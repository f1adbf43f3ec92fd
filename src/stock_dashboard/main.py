from __future__ import annotations

import functools
import logging
import sys
import time
from pathlib import Path

import click
from dotenv import load_dotenv

from stock_dashboard.config import API_KEY_ENV_VAR, load_settings
from stock_dashboard.dashboard import Dashboard, DashboardState
from stock_dashboard.errors import ConfigMissingError, DashboardError
from stock_dashboard.scheduler import next_trigger, seconds_until_next_trigger
from stock_dashboard.service import RefreshService
from stock_dashboard.utils.savers import save_to_csv

# --- Setup ---
logging.basicConfig(
  level=logging.INFO,
  format="%(asctime)s - %(levelname)s - %(message)s",
  stream=sys.stdout,
)

# --- Error Handling Decorator ---


def cli_error_handler(func):
  """Decorator to handle common CLI errors, log them, and exit."""

  @functools.wraps(func)
  def wrapper(*args, **kwargs):
    try:
      return func(*args, **kwargs)
    except (DashboardError, ValueError) as e:
      logging.error(f"Error: {e}")
      sys.exit(1)
    except Exception as e:
      logging.error(f"An unexpected error occurred: {e}", exc_info=True)
      sys.exit(1)

  return wrapper


# --- Private Helpers ---


def _build_service(symbols: tuple[str, ...] = ()) -> RefreshService:
  settings = load_settings()
  if symbols:
    settings = settings.model_copy(
      update={"symbols": list(dict.fromkeys(s.strip() for s in symbols if s.strip()))}
    )
  return RefreshService.from_settings(settings)


def _format_time(moment) -> str:
  return moment.strftime("%Y-%m-%d %H:%M UTC") if moment else "never"


def _print_state(state: DashboardState) -> None:
  if state.error:
    click.echo(f"Error: {state.error}", err=True)
  if not state.records:
    click.echo("No data available")
  for record in state.records:
    marker = "*" if record.symbol in state.selection else " "
    click.echo(
      f"{marker} {record.symbol:<6} {record.name:<30} {record.price:>10.2f} "
      f"{record.change:>+9.2f} ({record.change_percent:+.2f}%)"
    )
  click.echo(f"Last updated: {_format_time(state.last_update)}")
  click.echo(f"Next refresh: {_format_time(state.next_refresh)}")


# --- CLI Commands ---


@click.group()
def cli():
  """A dashboard for near-real-time stock prices from Alpha Vantage."""
  load_dotenv()


@cli.command()
@click.option("--symbol", "symbols", multiple=True, help="Symbol(s) to show; defaults to STOCK_SYMBOLS.")
@cli_error_handler
def show(symbols):
  """Show stored data, refreshing first when a scheduled refresh is due."""
  state = Dashboard(_build_service(symbols)).load()
  _print_state(state)
  if state.error and not state.records:
    sys.exit(1)


@cli.command()
@click.option("--symbol", "symbols", multiple=True, help="Symbol(s) to refresh; defaults to STOCK_SYMBOLS.")
@cli_error_handler
def refresh(symbols):
  """Fetch fresh data for every symbol regardless of the schedule."""
  service = _build_service(symbols)
  ledger = service.refresh()
  if ledger is None:
    logging.warning("No stock data was fetched.")
    return
  logging.info(f"Refreshed {len(ledger.records)} stocks: {', '.join(ledger.symbols)}")


@cli.command(name="next-refresh")
@cli_error_handler
def next_refresh():
  """Print when the next scheduled refresh is due."""
  service = _build_service()
  click.echo(_format_time(next_trigger(service.store.last_fetch_time(), service.now())))


@cli.command()
@click.option("--output-dir", type=click.Path(file_okay=False, path_type=Path), default=Path("csv"), show_default=True)
@click.option("--filename", default="stock_data.csv", show_default=True)
@cli_error_handler
def export(output_dir: Path, filename: str):
  """Export the stored series to a CSV file."""
  ledger = _build_service().store.load()
  if ledger is None:
    logging.warning("No stored stock data to export.")
    return
  logging.info(f"Saving {len(ledger.records)} stocks to {filename}...")
  save_to_csv(ledger.records, filename, output_dir=output_dir)


@cli.command()
@click.option("--once", is_flag=True, help="Wait for a single trigger, then exit.")
@cli_error_handler
def watch(once: bool):
  """Refresh at each scheduled trigger time until interrupted."""
  service = _build_service()
  if service.provider is None:
    raise ConfigMissingError(
      f"Missing required env var '{API_KEY_ENV_VAR}'; watch cannot refresh without it."
    )
  dashboard = Dashboard(service)
  _print_state(dashboard.load())
  while True:
    now = service.now()
    # Wait for a real trigger instant even when nothing could be stored yet.
    wait = seconds_until_next_trigger(service.store.last_fetch_time() or now, now)
    logging.info(f"Sleeping {wait:.0f}s until the next scheduled refresh.")
    time.sleep(wait)
    _print_state(dashboard.load())
    if once:
      return


if __name__ == "__main__":
  cli()
