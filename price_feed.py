# price_feed.py
# Live quote polling for the engine.
# Usage example:
#   import asyncio, httpx
#   from price_feed import PriceFeedClient, price_stream
#   async def main():
#       async with httpx.AsyncClient(timeout=10.0) as http:
#           feed = PriceFeedClient(http)
#           async for sample in price_stream(feed, interval_s=60):
#               print(sample)
#   asyncio.run(main())

import asyncio
import logging
import time
from typing import AsyncIterator, Dict, Optional

import httpx
from pydantic import ValidationError

from engine import SignalEngine
from errors import FatalFeedError, InvalidSample, TransientFeedError
from models import CoinData, PriceSample

logger = logging.getLogger(__name__)

COINGECKO_BITCOIN_URL = "https://api.coingecko.com/api/v3/coins/bitcoin"
COINGECKO_PARAMS: Dict[str, str] = {
    "localization": "false",
    "tickers": "false",
    "community_data": "false",
    "developer_data": "false",
}


class PriceFeedClient:
    """Fetches one quote per call, retrying transient failures with doubling backoff."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str = COINGECKO_BITCOIN_URL,
        params: Optional[Dict[str, str]] = None,
        max_retries: int = 3,
        retry_backoff_s: float = 2.0,
    ):
        self.client = client
        self.url = url
        self.params = COINGECKO_PARAMS if params is None else params
        self.max_retries = max_retries
        self.retry_backoff_s = retry_backoff_s

    async def fetch_sample(self) -> PriceSample:
        retries = 0
        while True:
            try:
                return await self._fetch_once()
            except TransientFeedError as exc:
                if retries >= self.max_retries:
                    raise FatalFeedError(
                        f"quote request failed after {retries} retries: {exc}"
                    ) from exc
                retries += 1
                delay = self.retry_backoff_s * 2 ** (retries - 1)
                logger.warning(
                    "Quote request failed (%s); retry %d/%d in %.1fs",
                    exc, retries, self.max_retries, delay,
                )
                await asyncio.sleep(delay)

    async def _fetch_once(self) -> PriceSample:
        try:
            resp = await self.client.get(self.url, params=self.params)
        except httpx.TransportError as exc:
            raise TransientFeedError(f"{type(exc).__name__}: {exc}") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientFeedError(f"HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise FatalFeedError(f"HTTP {resp.status_code} from {self.url}")

        try:
            coin = CoinData.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise FatalFeedError(f"unexpected quote response: {exc}") from exc
        return PriceSample(timestamp=coin.last_updated_timestamp, price=coin.current_price_usd)


async def price_stream(feed: PriceFeedClient, interval_s: float = 60.0) -> AsyncIterator[PriceSample]:
    """Yield one sample per tick, paced against a fixed schedule.

    The first quote is fetched immediately. The next one is not requested until the
    consumer has finished with the current sample and asks for more.
    """
    next_deadline = time.monotonic()
    while True:
        sample = await feed.fetch_sample()
        yield sample
        next_deadline += interval_s
        sleep_s = next_deadline - time.monotonic()
        if sleep_s > 0:
            await asyncio.sleep(sleep_s)
        else:
            # Fell behind (slow retries); restart the schedule from now.
            next_deadline = time.monotonic()


async def run_live(
    engine: SignalEngine,
    feed: PriceFeedClient,
    interval_s: float = 60.0,
    max_samples: Optional[int] = None,
) -> int:
    """Drive ``engine`` from the live feed. Returns the number of polls handled.

    Runs until ``max_samples`` polls (forever when ``None``). ``FatalFeedError``
    propagates to the caller.
    """
    logger.info("Starting LIVE trading mode (polling every %.0fs)", interval_s)
    polls = 0
    async for sample in price_stream(feed, interval_s=interval_s):
        polls += 1
        try:
            await engine.process(sample.price, sample.timestamp)
        except InvalidSample as exc:
            logger.error("Rejected live sample: %s", exc)
        if max_samples is not None and polls >= max_samples:
            break
    return polls
