from types import SimpleNamespace

import pandas as pd
import pytest
from click.testing import CliRunner

from stock_dashboard import main
from stock_dashboard.main import cli
from stock_dashboard.providers.alpha_vantage import AlphaVantageProvider
from stock_dashboard.service import RefreshService
from stock_dashboard.storage import FileStorage, LedgerStore, MemoryStorage

from conftest import FakeSession, make_ledger


@pytest.fixture
def env(tmp_path, monkeypatch):
  monkeypatch.delenv("ALPHA_VANTAGE_API_KEY", raising=False)
  monkeypatch.delenv("STOCK_SYMBOLS", raising=False)
  monkeypatch.setenv("STORAGE_DIR", str(tmp_path / "store"))
  return tmp_path


def store_ledger(tmp_path, *symbols):
  LedgerStore(FileStorage(tmp_path / "store")).save(make_ledger(*symbols))


def test_show_prints_stored_records_and_reports_missing_key(env):
  store_ledger(env, "AAPL", "JPM")

  result = CliRunner().invoke(cli, ["show"])

  assert result.exit_code == 0
  assert "AAPL" in result.output
  assert "JPM" in result.output
  assert "Last updated: 2024-01-06 11:30 UTC" in result.output


def test_show_without_data_or_key_fails(env):
  result = CliRunner().invoke(cli, ["show"])
  assert result.exit_code == 1
  assert "No data available" in result.output


def test_refresh_without_key_exits_with_error(env):
  result = CliRunner().invoke(cli, ["refresh"])
  assert result.exit_code == 1


def test_next_refresh_prints_a_trigger_time(env):
  store_ledger(env, "AAPL")
  result = CliRunner().invoke(cli, ["next-refresh"])
  assert result.exit_code == 0
  assert result.output.strip().endswith(("01:00 UTC", "11:00 UTC"))


def test_export_writes_one_row_per_point(env):
  store_ledger(env, "AAPL", "JPM")
  out_dir = env / "csv"

  result = CliRunner().invoke(cli, ["export", "--output-dir", str(out_dir), "--filename", "prices.csv"])

  assert result.exit_code == 0
  frame = pd.read_csv(out_dir / "prices.csv")
  assert list(frame.columns) == ["symbol", "name", "timestamp", "price"]
  assert len(frame) == 6
  assert sorted(frame["symbol"].unique()) == ["AAPL", "JPM"]


def test_export_without_data_writes_nothing(env):
  out_dir = env / "csv"
  result = CliRunner().invoke(cli, ["export", "--output-dir", str(out_dir)])
  assert result.exit_code == 0
  assert not out_dir.exists()


def test_invalid_setting_exits_with_error(env, monkeypatch):
  monkeypatch.setenv("MAX_ATTEMPTS", "many")
  result = CliRunner().invoke(cli, ["show"])
  assert result.exit_code == 1


def build_watch_service(session, clock, sleep):
  provider = AlphaVantageProvider(api_key="demo", session=session, sleep=sleep)
  return RefreshService(
    provider=provider,
    store=LedgerStore(MemoryStorage()),
    symbols=["AAPL"],
    clock=clock,
    sleep=sleep,
  )


def test_watch_without_key_exits_before_waiting(env, monkeypatch):
  waits = []
  monkeypatch.setattr(main, "time", SimpleNamespace(sleep=waits.append))

  result = CliRunner().invoke(cli, ["watch"])

  assert result.exit_code == 1
  assert waits == []


def test_watch_waits_for_next_trigger_when_nothing_is_stored(env, monkeypatch, clock, sleep):
  session = FakeSession([{}])
  monkeypatch.setattr(main, "_build_service", lambda *args: build_watch_service(session, clock, sleep))
  waits = []
  monkeypatch.setattr(main, "time", SimpleNamespace(sleep=waits.append))

  result = CliRunner().invoke(cli, ["watch", "--once"])

  assert result.exit_code == 0
  # 12:00 UTC: the next trigger is 01:00 UTC the following day.
  assert waits == [13 * 3600.0]
  assert len(session.calls) == 2


def test_watch_keeps_pausing_between_empty_refreshes(env, monkeypatch, clock, sleep):
  session = FakeSession([{}])
  monkeypatch.setattr(main, "_build_service", lambda *args: build_watch_service(session, clock, sleep))
  waits = []

  def record_wait(seconds):
    waits.append(seconds)
    if len(waits) == 3:
      raise KeyboardInterrupt

  monkeypatch.setattr(main, "time", SimpleNamespace(sleep=record_wait))

  CliRunner().invoke(cli, ["watch"])

  assert waits == [13 * 3600.0] * 3
  assert len(session.calls) == 3
