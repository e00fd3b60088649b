# src/errors.py
"""Exception types shared by the engine, the feed drivers and the notifier."""

from typing import Optional


class SignalBotError(Exception):
    """Base class for every error raised by the signal bot."""


class InvalidSample(SignalBotError, ValueError):
    """A price that is not a finite, positive number. Nothing was mutated."""

    def __init__(self, price: object, timestamp: str = ""):
        self.price = price
        self.timestamp = timestamp
        super().__init__(f"invalid price {price!r} at {timestamp or '<no timestamp>'}")


class RecordParseError(SignalBotError, ValueError):
    """A historical record that could not be turned into a price sample."""

    def __init__(self, line: int, reason: str, raw: Optional[dict] = None):
        self.line = line
        self.reason = reason
        self.raw = raw
        super().__init__(f"line {line}: {reason}")


class FeedError(SignalBotError):
    pass


class TransientFeedError(FeedError):
    """Network hiccup, timeout or 429/5xx. Worth retrying."""


class FatalFeedError(FeedError):
    """Retries exhausted or the quote endpoint returned something unusable."""


class NotificationDeliveryError(SignalBotError):
    pass
