# src/notifier.py
"""Best-effort delivery of decision text to a chat channel.

A sink never raises into the engine: delivery failures are logged and dropped so a
chat outage cannot stall or abort strategy evaluation.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Union

import httpx

from errors import NotificationDeliveryError

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
STARTUP_MESSAGE = "🚀 Trading bot started!"


class NotificationSink(ABC):
    @abstractmethod
    async def notify(self, text: str) -> None:
        ...

    async def aclose(self) -> None:
        return None


class NullSink(NotificationSink):
    """Used when no chat credentials are configured."""

    async def notify(self, text: str) -> None:
        return None


class TelegramSink(NotificationSink):
    def __init__(
        self,
        token: str,
        chat_id: Union[int, str],
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: float = 10.0,
        base_url: str = TELEGRAM_API_URL,
    ):
        self.chat_id = chat_id
        self._url = f"{base_url}/bot{token}/sendMessage"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def notify(self, text: str) -> None:
        try:
            await self._send(text)
        except NotificationDeliveryError as exc:
            logger.warning("Notification not delivered: %s", exc)

    async def _send(self, text: str) -> None:
        try:
            resp = await self._client.post(self._url, json={"chat_id": self.chat_id, "text": text})
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            # The URL embeds the token, so only the status goes into the message.
            raise NotificationDeliveryError(f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError(f"{type(exc).__name__}: {exc}") from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def parse_chat_id(raw: str) -> Union[int, str]:
    """Numeric ids become ints; ``@channel`` style names are kept as strings."""
    raw = raw.strip()
    try:
        return int(raw)
    except ValueError:
        return raw


def build_sink(
    token: Optional[str],
    chat_id: Optional[str],
    timeout_s: float = 10.0,
) -> NotificationSink:
    if not token or not chat_id:
        logger.info("Telegram credentials not configured; notifications disabled")
        return NullSink()
    return TelegramSink(token, parse_chat_id(chat_id), timeout_s=timeout_s)


async def announce_startup(sink: NotificationSink) -> None:
    await sink.notify(STARTUP_MESSAGE)
