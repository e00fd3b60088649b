# src/cli.py
import asyncio
import logging
import sys
from typing import Optional, Sequence

import httpx
import uvicorn

from backtest_runner import run_backtest
from config import Settings, configure_logging, load_settings
from engine import SignalEngine
from errors import FatalFeedError
from main import create_app
from notifier import announce_startup, build_sink
from price_feed import PriceFeedClient, run_live

logger = logging.getLogger(__name__)


async def _run_live_with_api(engine: SignalEngine, feed: PriceFeedClient, settings: Settings) -> None:
    config = uvicorn.Config(
        create_app(engine),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    server_task = asyncio.create_task(server.serve())
    try:
        await run_live(engine, feed, interval_s=settings.poll_interval_s)
    finally:
        server.should_exit = True
        await server_task


async def run(settings: Settings) -> int:
    sink = build_sink(settings.telegram_bot_token, settings.telegram_chat_id, settings.notify_timeout_s)
    try:
        await announce_startup(sink)
        engine = SignalEngine(
            short_window=settings.sma_short,
            long_window=settings.sma_long,
            stop_loss_pct=settings.stop_loss,
            sink=sink,
            spike_threshold_pct=settings.spike_threshold_pct,
            spike_min_samples=settings.spike_min_samples,
        )

        if settings.backtest:
            try:
                await run_backtest(engine, str(settings.historical_data))
            except (OSError, ValueError) as exc:
                logger.error("Cannot read historical data: %s", exc)
                return 1
            return 0

        async with httpx.AsyncClient(timeout=settings.request_timeout_s) as http:
            feed = PriceFeedClient(
                http,
                url=settings.feed_url,
                max_retries=settings.max_retries,
                retry_backoff_s=settings.retry_backoff_s,
            )
            try:
                if settings.serve:
                    await _run_live_with_api(engine, feed, settings)
                else:
                    await run_live(engine, feed, interval_s=settings.poll_interval_s)
            except FatalFeedError as exc:
                logger.error("API request failed: %s", exc)
                logger.info("Stopped. Realized profit: $%.2f", engine.realized_profit)
                return 1
        return 0
    finally:
        await sink.aclose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = load_settings(argv)
    configure_logging(settings.log_level)
    try:
        return asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Terminated by user.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
