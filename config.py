# src/config.py
import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from price_feed import COINGECKO_BITCOIN_URL

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    """Runtime options. Precedence: CLI flags > env (SIGNAL_BOT_*) > .env > defaults."""

    model_config = SettingsConfigDict(
        env_prefix="SIGNAL_BOT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Mode
    backtest: bool = False
    historical_data: Path = Path("historical_prices.csv")

    # Strategy
    sma_short: int = Field(default=5, ge=1)
    sma_long: int = Field(default=20, ge=1)
    stop_loss: float = Field(default=5.0, gt=0)  # percent below entry
    spike_threshold_pct: float = Field(default=2.0, ge=0)
    spike_min_samples: int = Field(default=5, ge=1)

    # Notifications (same variable names the bot has always read)
    telegram_bot_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("telegram_bot_token", "TELEGRAM_BOT_TOKEN"),
    )
    telegram_chat_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("telegram_chat_id", "TELEGRAM_CHAT_ID"),
    )
    notify_timeout_s: float = Field(default=10.0, gt=0)

    # Live feed
    feed_url: str = COINGECKO_BITCOIN_URL
    poll_interval_s: float = Field(default=60.0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    retry_backoff_s: float = Field(default=2.0, ge=0)
    request_timeout_s: float = Field(default=10.0, gt=0)

    # Status API (live mode only)
    serve: bool = False
    host: str = "127.0.0.1"
    port: int = 8001

    log_level: str = "INFO"


def build_arg_parser() -> argparse.ArgumentParser:
    # Flags default to None so that only flags actually given override the environment.
    p = argparse.ArgumentParser(
        prog="signal-bot",
        description="SMA crossover signal bot with stop-loss and spike alerts.",
    )
    p.add_argument("--backtest", action="store_true", default=None, help="replay historical data instead of polling")
    p.add_argument("--historical-data", dest="historical_data", type=Path, help="CSV with timestamp,price columns")
    p.add_argument("--sma-short", dest="sma_short", type=int)
    p.add_argument("--sma-long", dest="sma_long", type=int)
    p.add_argument("--stop-loss", dest="stop_loss", type=float, help="stop-loss percentage, e.g. 5.0")
    p.add_argument("--spike-threshold", dest="spike_threshold_pct", type=float)
    p.add_argument("--telegram-token", dest="telegram_bot_token")
    p.add_argument("--telegram-chat-id", dest="telegram_chat_id")
    p.add_argument("--feed-url", dest="feed_url")
    p.add_argument("--poll-interval", dest="poll_interval_s", type=float, help="seconds between quotes")
    p.add_argument("--max-retries", dest="max_retries", type=int)
    p.add_argument("--serve", action="store_true", default=None, help="expose the status API while trading live")
    p.add_argument("--host")
    p.add_argument("--port", type=int)
    p.add_argument("--log-level", dest="log_level")
    return p


def load_settings(argv: Optional[Sequence[str]] = None) -> Settings:
    args = build_arg_parser().parse_args(argv)
    overrides = {k: v for k, v in vars(args).items() if v is not None}
    return Settings(**overrides)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
