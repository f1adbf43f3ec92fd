import logging
from pathlib import Path

import pandas as pd

from stock_dashboard.models import StockRecord

OUTPUT_DIR = Path("csv")


def records_to_frame(records: list[StockRecord]) -> pd.DataFrame:
  """Flattens records into one row per (symbol, timestamp) point."""
  rows = [
    {
      "symbol": record.symbol,
      "name": record.name,
      "timestamp": point.timestamp,
      "price": point.price,
    }
    for record in records
    for point in record.series
  ]
  return pd.DataFrame(rows, columns=["symbol", "name", "timestamp", "price"])


def save_to_csv(records: list[StockRecord], filename: str, output_dir: Path = OUTPUT_DIR) -> Path | None:
  """Writes the series of every record to a CSV file.

  Returns:
    The written path, or None if nothing was written.
  """
  if not records:
    logging.warning("No data provided to write to CSV.")
    return None

  output_path = Path(output_dir) / filename
  try:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    records_to_frame(records).to_csv(output_path, index=False, encoding="utf-8")
    logging.info(f"Data successfully written to {output_path}")
    return output_path
  except OSError as e:
    logging.error(f"A file system error occurred while writing to {output_path}: {e}")
    return None
