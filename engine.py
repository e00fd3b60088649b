# src/engine.py
"""Streaming crossover engine.

``SignalEngine.process`` takes one price at a time, in arrival order, and runs
three rules against it:

1. spike alert: a single-step move larger than ``spike_threshold_pct``, once
   ``spike_min_samples`` earlier samples have been seen. Never touches the position.
2. stop-loss: while LONG, a loss from entry at or beyond ``stop_loss_pct`` forces a
   sell. When it fires the crossover rule is skipped for that sample.
3. crossover: FLAT and short SMA strictly above long SMA -> buy; LONG and short SMA
   not above long SMA -> sell.

Rules 2 and 3 only run once the long window is filled. Every decision is logged and
handed to the notification sink before ``process`` returns.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

from errors import InvalidSample
from indicators import RollingWindowTracker, percent_change
from models import (
    BuySignal,
    Decision,
    Position,
    PriceSample,
    SellSignal,
    SpikeAlert,
    StatusResponse,
    StopLossTriggered,
    decision_payload,
    profit_message,
)
from notifier import NotificationSink, NullSink

logger = logging.getLogger(__name__)


@dataclass
class PositionLedger:
    position: Position = Position.FLAT
    entry_price: float = 0.0  # stale once FLAT
    realized_profit: float = 0.0
    buys: int = 0
    sells: int = 0
    stop_losses: int = 0

    def open(self, price: float) -> None:
        self.position = Position.LONG
        self.entry_price = price
        self.buys += 1

    def close(self, price: float, stop_loss: bool = False) -> float:
        """Flatten the position at ``price`` and return the profit of this trade."""
        profit = price - self.entry_price
        self.realized_profit += profit
        self.position = Position.FLAT
        self.sells += 1
        if stop_loss:
            self.stop_losses += 1
        return profit


class SignalEngine:
    def __init__(
        self,
        short_window: int = 5,
        long_window: int = 20,
        stop_loss_pct: float = 5.0,
        sink: Optional[NotificationSink] = None,
        spike_threshold_pct: float = 2.0,
        spike_min_samples: int = 5,
    ):
        if stop_loss_pct <= 0:
            raise ValueError("stop_loss_pct must be a positive percentage")
        if long_window <= short_window:
            logger.warning(
                "SMA%d is not longer than SMA%d; crossovers will not be meaningful",
                long_window,
                short_window,
            )
        self.short_window = short_window
        self.long_window = long_window
        self.stop_loss_pct = stop_loss_pct
        self.spike_threshold_pct = spike_threshold_pct
        self.spike_min_samples = spike_min_samples
        self.sink: NotificationSink = sink or NullSink()

        self.tracker = RollingWindowTracker(short_window, long_window)
        self.ledger = PositionLedger()
        self.last_sample: Optional[PriceSample] = None
        self.latest_decision: Optional[Decision] = None
        self.decisions_emitted = 0
        # Copy of status() taken only between samples; readers that may run while
        # process() is suspended on a notification use this one.
        self.published: StatusResponse = self.status()
        self.published_decisions = 0

    # --- read-only views ---

    @property
    def position(self) -> Position:
        return self.ledger.position

    @property
    def entry_price(self) -> Optional[float]:
        if self.ledger.position is Position.LONG:
            return self.ledger.entry_price
        return None

    @property
    def realized_profit(self) -> float:
        return self.ledger.realized_profit

    @property
    def samples_processed(self) -> int:
        return self.tracker.count

    def status(self) -> StatusResponse:
        last = self.last_sample
        return StatusResponse(
            position=self.position.value,
            entry_price=self.entry_price,
            realized_profit=self.realized_profit,
            samples_processed=self.samples_processed,
            last_price=last.price if last else None,
            last_timestamp=last.timestamp if last else None,
            short_sma=self.tracker.short_sma,
            long_sma=self.tracker.long_sma,
            short_window=self.short_window,
            long_window=self.long_window,
            stop_loss_pct=self.stop_loss_pct,
            latest_decision=decision_payload(self.latest_decision) if self.latest_decision else None,
        )

    # --- processing ---

    async def process(self, price: float, timestamp: str) -> List[Decision]:
        """Feed one sample through the rules and return the decisions it produced.

        Raises ``InvalidSample`` before touching any state if ``price`` is not a
        finite, positive number.
        """
        price = self._validate(price, timestamp)
        try:
            return await self._apply(price, timestamp)
        finally:
            self.published = self.status()
            self.published_decisions = self.decisions_emitted

    async def _apply(self, price: float, timestamp: str) -> List[Decision]:
        seen_before = self.tracker.count
        short_sma, long_sma = self.tracker.update(price)
        self.last_sample = PriceSample(timestamp=timestamp, price=price)

        decisions: List[Decision] = []

        prev_price = self.tracker.previous
        if seen_before >= self.spike_min_samples and prev_price is not None:
            change_pct = percent_change(price, prev_price)
            if abs(change_pct) > self.spike_threshold_pct:
                alert = SpikeAlert(
                    timestamp=timestamp,
                    change_pct=change_pct,
                    direction="up" if change_pct > 0 else "down",
                )
                logger.warning(alert.message())
                await self._emit(alert)
                decisions.append(alert)

        if short_sma is None or long_sma is None:
            return decisions

        if self.ledger.position is Position.LONG:
            loss_pct = percent_change(price, self.ledger.entry_price)
            if loss_pct <= -self.stop_loss_pct:
                profit = self.ledger.close(price, stop_loss=True)
                stop = StopLossTriggered(
                    timestamp=timestamp,
                    price=price,
                    loss_pct=loss_pct,
                    profit=profit,
                    realized_profit=self.ledger.realized_profit,
                )
                await self._record_sell(stop)
                decisions.append(stop)
                return decisions

        above_now = short_sma > long_sma
        if self.ledger.position is Position.FLAT and above_now:
            self.ledger.open(price)
            buy = BuySignal(
                timestamp=timestamp,
                price=price,
                short_sma=short_sma,
                long_sma=long_sma,
                short_window=self.short_window,
                long_window=self.long_window,
            )
            logger.info(buy.message())
            await self._emit(buy)
            decisions.append(buy)
        elif self.ledger.position is Position.LONG and not above_now:
            profit = self.ledger.close(price)
            sell = SellSignal(
                timestamp=timestamp,
                price=price,
                short_sma=short_sma,
                long_sma=long_sma,
                short_window=self.short_window,
                long_window=self.long_window,
                profit=profit,
                realized_profit=self.ledger.realized_profit,
            )
            await self._record_sell(sell)
            decisions.append(sell)

        return decisions

    def _validate(self, price: object, timestamp: str) -> float:
        if isinstance(price, bool):
            raise InvalidSample(price, timestamp)
        try:
            value = float(price)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise InvalidSample(price, timestamp) from None
        # Zero is rejected too: every percentage rule divides by a prior price.
        if not math.isfinite(value) or value <= 0.0:
            raise InvalidSample(price, timestamp)
        return value

    async def _record_sell(self, decision: Decision) -> None:
        logger.info(decision.message())
        await self._emit(decision)
        summary = profit_message(self.ledger.realized_profit)
        logger.info(summary)
        await self.sink.notify(summary)

    async def _emit(self, decision: Decision) -> None:
        self.latest_decision = decision
        self.decisions_emitted += 1
        await self.sink.notify(decision.message())
