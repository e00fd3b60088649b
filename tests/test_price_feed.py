"""Live feed client: quote parsing, retry/backoff and fatal classification.

The quote endpoint is faked with ``httpx.MockTransport``; backoff is set to zero so
retries do not slow the suite down.
"""

import httpx
import pytest

from engine import SignalEngine
from errors import FatalFeedError
from price_feed import PriceFeedClient, price_stream, run_live

URL = "https://quotes.test/api/v3/coins/bitcoin"


def quote(price, ts="2024-05-01T12:00:00.000Z"):
    return {"id": "bitcoin", "market_data": {"current_price": {"usd": price, "eur": 1.0}, "last_updated": ts}}


def make_feed(handler, max_retries=3):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PriceFeedClient(client, url=URL, max_retries=max_retries, retry_backoff_s=0.0)


@pytest.mark.asyncio
async def test_fetch_sample_parses_quote():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=quote(64123.5))

    feed = make_feed(handler)
    sample = await feed.fetch_sample()

    assert sample.price == 64123.5
    assert sample.timestamp == "2024-05-01T12:00:00.000Z"
    assert seen[0].url.params["tickers"] == "false"


@pytest.mark.asyncio
async def test_transient_failures_are_retried():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        if calls["n"] == 2:
            return httpx.Response(503)
        return httpx.Response(200, json=quote(100.0))

    sample = await make_feed(handler).fetch_sample()
    assert sample.price == 100.0
    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_exhausted_retries_are_fatal():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(FatalFeedError, match="after 3 retries"):
        await make_feed(handler, max_retries=3).fetch_sample()
    assert calls["n"] == 4  # first attempt + 3 retries


@pytest.mark.asyncio
async def test_backoff_doubles(monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("price_feed.asyncio.sleep", fake_sleep)

    def handler(request):
        return httpx.Response(429)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    feed = PriceFeedClient(client, url=URL, max_retries=3, retry_backoff_s=2.0)
    with pytest.raises(FatalFeedError):
        await feed.fetch_sample()
    assert delays == [2.0, 4.0, 8.0]


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(200, json={"market_data": {"last_updated": "x"}}),
    httpx.Response(200, text="<html>maintenance</html>"),
    httpx.Response(404, json={"error": "coin not found"}),
])
async def test_unusable_responses_are_fatal_without_retry(response):
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return response

    with pytest.raises(FatalFeedError):
        await make_feed(handler).fetch_sample()
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_price_stream_yields_in_order():
    prices = iter([1.0, 2.0, 3.0])

    def handler(request):
        return httpx.Response(200, json=quote(next(prices)))

    got = []
    async for sample in price_stream(make_feed(handler), interval_s=0.0):
        got.append(sample.price)
        if len(got) == 3:
            break
    assert got == [1.0, 2.0, 3.0]


@pytest.mark.asyncio
async def test_run_live_skips_invalid_sample(sink):
    prices = iter([100.0, -5.0, 101.0])

    def handler(request):
        return httpx.Response(200, json=quote(next(prices)))

    engine = SignalEngine(short_window=2, long_window=3, sink=sink)
    polls = await run_live(engine, make_feed(handler), interval_s=0.0, max_samples=3)

    assert polls == 3
    assert engine.samples_processed == 2
    assert engine.last_sample.price == 101.0


@pytest.mark.asyncio
async def test_run_live_stops_on_fatal_feed_error(sink):
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] <= 2:
            return httpx.Response(200, json=quote(100.0 + calls["n"]))
        raise httpx.ConnectError("down", request=request)

    engine = SignalEngine(short_window=2, long_window=3, sink=sink)
    with pytest.raises(FatalFeedError):
        await run_live(engine, make_feed(handler, max_retries=2), interval_s=0.0)
    assert engine.samples_processed == 2
