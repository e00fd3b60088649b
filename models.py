# src/models.py
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Literal, Optional, Union

from pydantic import BaseModel


# One observation from a feed driver (live quote or historical record)
@dataclass
class PriceSample:
    timestamp: str
    price: float


class Position(str, Enum):
    FLAT = "FLAT"
    LONG = "LONG"


# --- Decisions emitted by the engine ---

@dataclass(frozen=True)
class SpikeAlert:
    kind: ClassVar[str] = "spike_alert"

    timestamp: str
    change_pct: float
    direction: Literal["up", "down"]

    def message(self) -> str:
        arrow = "↑" if self.direction == "up" else "↓"
        return f"{self.timestamp}: ALERT - Price {self.change_pct:.2f}% ({arrow})"


@dataclass(frozen=True)
class BuySignal:
    kind: ClassVar[str] = "buy"

    timestamp: str
    price: float
    short_sma: float
    long_sma: float
    short_window: int
    long_window: int

    def message(self) -> str:
        return (
            f"✅ BUY SIGNAL\nPrice: ${self.price:.2f}\n"
            f"SMA{self.short_window}: {self.short_sma:.2f}\n"
            f"SMA{self.long_window}: {self.long_sma:.2f}"
        )


@dataclass(frozen=True)
class SellSignal:
    kind: ClassVar[str] = "sell"

    timestamp: str
    price: float
    short_sma: float
    long_sma: float
    short_window: int
    long_window: int
    profit: float
    realized_profit: float

    def message(self) -> str:
        return (
            f"🛑 SELL SIGNAL\nPrice: ${self.price:.2f}\n"
            f"SMA{self.short_window}: {self.short_sma:.2f}\n"
            f"SMA{self.long_window}: {self.long_sma:.2f}"
        )


@dataclass(frozen=True)
class StopLossTriggered:
    kind: ClassVar[str] = "stop_loss"

    timestamp: str
    price: float
    loss_pct: float
    profit: float
    realized_profit: float

    def message(self) -> str:
        return f"🚨 STOP-LOSS TRIGGERED!\nSold at ${self.price:.2f}\nLoss: {self.loss_pct:.2f}%"


Decision = Union[SpikeAlert, BuySignal, SellSignal, StopLossTriggered]


def decision_payload(decision: Decision) -> Dict[str, Any]:
    """JSON-friendly view of a decision, tagged with its kind."""
    payload: Dict[str, Any] = {"kind": decision.kind}
    payload.update(asdict(decision))
    payload["message"] = decision.message()
    return payload


def profit_message(realized_profit: float) -> str:
    return f"💰 Current profit: ${realized_profit:.2f}"


# --- Live quote endpoint (CoinGecko /coins/{id} shape) ---

class CurrentPrice(BaseModel):
    usd: float


class MarketData(BaseModel):
    current_price: CurrentPrice
    last_updated: str


class CoinData(BaseModel):
    market_data: MarketData

    @property
    def current_price_usd(self) -> float:
        return self.market_data.current_price.usd

    @property
    def last_updated_timestamp(self) -> str:
        return self.market_data.last_updated


# The response model for the GET /status endpoint
class StatusResponse(BaseModel):
    position: Literal["FLAT", "LONG"]
    entry_price: Optional[float] = None  # only set while LONG
    realized_profit: float
    samples_processed: int
    last_price: Optional[float] = None
    last_timestamp: Optional[str] = None
    short_sma: Optional[float] = None
    long_sma: Optional[float] = None
    short_window: int
    long_window: int
    stop_loss_pct: float
    latest_decision: Optional[Dict[str, Any]] = None
