# src/backtest_runner.py
"""
Replay historical prices through the signal engine.

Input: CSV with a header row and at least the columns ``timestamp`` and ``price``
(extra columns are ignored), one sample per line, oldest first.

Behaviour:
- Each record is fed to ``SignalEngine.process`` in file order, exactly as the live
  loop would feed a polled quote, so a backtest exercises the same rules and
  notifications as live trading.
- A malformed record (missing field, non-numeric price) is logged and skipped; the
  replay continues with the next line.
- A record that parses but is not a usable price (NaN, negative, zero) is rejected
  by the engine, logged and counted separately.
- Outputs a ``BacktestReport`` and logs the final realized profit.
"""

from __future__ import annotations

import csv
import logging
import os
from dataclasses import dataclass, field
from typing import Iterator, List

from engine import SignalEngine
from errors import InvalidSample, RecordParseError
from models import PriceSample, SellSignal, StopLossTriggered

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("timestamp", "price")


@dataclass
class BacktestReport:
    records_read: int = 0
    samples_processed: int = 0
    records_skipped: int = 0
    samples_rejected: int = 0
    buys: int = 0
    sells: int = 0
    stop_losses: int = 0
    realized_profit: float = 0.0
    max_drawdown: float = 0.0
    profit_curve: List[float] = field(default_factory=list)  # realized profit after each sell


# --- CSV ingestion ---

def parse_price_record(row: dict, line: int) -> PriceSample:
    ts_raw = row.get("timestamp")
    price_raw = row.get("price")
    if ts_raw is None or price_raw is None:
        raise RecordParseError(line, "missing timestamp or price", row)
    ts = ts_raw.strip()
    if not ts:
        raise RecordParseError(line, "empty timestamp", row)
    try:
        price = float(price_raw)
    except ValueError:
        raise RecordParseError(line, f"price {price_raw!r} is not a number", row) from None
    return PriceSample(timestamp=ts, price=price)


class PriceRecordReader:
    """Iterates ``PriceSample``s from a CSV file, skipping malformed records.

    ``skipped`` counts the records dropped so far.
    """

    def __init__(self, path: str):
        if not os.path.exists(path):
            raise FileNotFoundError(path)
        self.path = path
        self.read = 0
        self.skipped = 0

    def __iter__(self) -> Iterator[PriceSample]:
        # Undecodable bytes become U+FFFD so the damaged record fails to parse on its own.
        with open(self.path, "r", newline="", encoding="utf-8", errors="replace") as f:
            reader = csv.DictReader(f)
            header = [h.strip().lower() for h in (reader.fieldnames or [])]
            missing = [c for c in REQUIRED_COLUMNS if c not in header]
            if missing:
                raise ValueError(f"{self.path}: missing column(s) {', '.join(missing)}")
            reader.fieldnames = header

            for row in reader:
                if not any((v or "").strip() for k, v in row.items() if k is not None):
                    continue  # blank line
                self.read += 1
                try:
                    yield parse_price_record(row, reader.line_num)
                except RecordParseError as exc:
                    self.skipped += 1
                    logger.error("CSV parsing error in %s: %s", self.path, exc)


def iter_price_records(path: str) -> Iterator[PriceSample]:
    return iter(PriceRecordReader(path))


# --- Metrics ---

def max_drawdown(curve: List[float]) -> float:
    """Largest peak-to-trough fall of the realized-profit curve (starts at 0)."""
    max_eq = 0.0
    max_dd = 0.0
    for eq in curve:
        if eq > max_eq:
            max_eq = eq
        dd = max_eq - eq
        if dd > max_dd:
            max_dd = dd
    return max_dd


# --- Runner ---

async def run_backtest(engine: SignalEngine, csv_path: str = "historical_prices.csv") -> BacktestReport:
    logger.info("Starting BACKTEST mode on %s", csv_path)
    records = PriceRecordReader(csv_path)
    report = BacktestReport()

    for sample in records:
        try:
            decisions = await engine.process(sample.price, sample.timestamp)
        except InvalidSample as exc:
            report.samples_rejected += 1
            logger.error("Rejected historical sample: %s", exc)
            continue
        report.samples_processed += 1
        for decision in decisions:
            if isinstance(decision, (SellSignal, StopLossTriggered)):
                report.profit_curve.append(decision.realized_profit)

    report.records_read = records.read
    report.records_skipped = records.skipped
    report.buys = engine.ledger.buys
    report.sells = engine.ledger.sells
    report.stop_losses = engine.ledger.stop_losses
    report.realized_profit = engine.realized_profit
    report.max_drawdown = max_drawdown(report.profit_curve)

    logger.info("Backtest complete. Final profit: $%.2f", report.realized_profit)
    logger.info(
        "Samples: %d processed, %d skipped, %d rejected | trades: %d buys, %d sells (%d stop-loss) | max drawdown: $%.2f",
        report.samples_processed,
        report.records_skipped,
        report.samples_rejected,
        report.buys,
        report.sells,
        report.stop_losses,
        report.max_drawdown,
    )
    return report
