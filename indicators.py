"""Rolling-sum moving averages for a single price stream.

``RollingWindowTracker`` keeps the most recent prices (newest first) in a bounded
deque together with two running sums, one per window. Each ``update`` adds the
new price and subtracts the value leaving each window, so the cost per sample is
O(1) and the history is never rescanned.

An SMA is only reported once its window is completely filled. Partial-window
averages are reported as ``None`` rather than a misleading value.
"""

from collections import deque
from typing import Optional, Tuple


class RollingWindowTracker:
    def __init__(self, short_window: int, long_window: int):
        if short_window <= 0 or long_window <= 0:
            raise ValueError("window sizes must be > 0")
        self.short_window = short_window
        self.long_window = long_window
        # At least two entries so the previous price is always available.
        self._prices: deque[float] = deque()
        self._capacity = max(short_window, long_window, 2)
        self._short_sum = 0.0
        self._long_sum = 0.0
        self._count = 0

    def update(self, price: float) -> Tuple[Optional[float], Optional[float]]:
        """Push ``price`` and return ``(short_sma, long_sma)``.

        Either value is ``None`` until that window has seen enough samples.
        """
        # prices[w - 1] is the value about to slide out of a window of size w.
        n = len(self._prices)
        if n >= self.short_window:
            self._short_sum -= self._prices[self.short_window - 1]
        if n >= self.long_window:
            self._long_sum -= self._prices[self.long_window - 1]

        self._short_sum += price
        self._long_sum += price
        self._prices.appendleft(price)
        if len(self._prices) > self._capacity:
            self._prices.pop()
        self._count += 1

        return self.short_sma, self.long_sma

    @property
    def short_sma(self) -> Optional[float]:
        if self._count < self.short_window:
            return None
        return self._short_sum / self.short_window

    @property
    def long_sma(self) -> Optional[float]:
        if self._count < self.long_window:
            return None
        return self._long_sum / self.long_window

    @property
    def short_sum(self) -> float:
        return self._short_sum

    @property
    def long_sum(self) -> float:
        return self._long_sum

    @property
    def count(self) -> int:
        """Total number of prices seen, not just the retained ones."""
        return self._count

    @property
    def latest(self) -> Optional[float]:
        return self._prices[0] if self._prices else None

    @property
    def previous(self) -> Optional[float]:
        """The price observed one sample before the latest."""
        return self._prices[1] if len(self._prices) > 1 else None


def percent_change(current: float, reference: float) -> float:
    return (current - reference) / reference * 100.0
