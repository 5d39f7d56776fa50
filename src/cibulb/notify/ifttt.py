import asyncio

import aiohttp
from sanic.log import logger

from cibulb.config import Settings
from cibulb.errors import NotificationDeliveryError
from cibulb.model import AggregateStatus


class IftttNotifier:
    name = "ifttt"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str,
        key: str,
        event_prefix: str = "ci_build_",
        timeout: float = 10,
    ):
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.key = key
        self.event_prefix = event_prefix
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @classmethod
    def from_settings(
        cls, settings: Settings, session: aiohttp.ClientSession
    ) -> "IftttNotifier":
        if not settings.IFTTT_KEY:
            raise ValueError("IFTTT_KEY is required for the ifttt notifier")
        return cls(
            session,
            base_url=settings.IFTTT_BASE_URL,
            key=settings.IFTTT_KEY,
            event_prefix=settings.IFTTT_EVENT_PREFIX,
            timeout=settings.NOTIFICATION_TIMEOUT,
        )

    def event_name(self, status: AggregateStatus) -> str:
        return f"{self.event_prefix}{status.value}"

    def trigger_url(self, status: AggregateStatus) -> str:
        return f"{self.base_url}/trigger/{self.event_name(status)}/with/key/{self.key}"

    async def notify(self, status: AggregateStatus) -> str:
        url = self.trigger_url(status)
        logger.debug("Triggering IFTTT event %s", self.event_name(status))
        try:
            async with self.session.post(url, timeout=self.timeout) as resp:
                resp.raise_for_status()
                return await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise NotificationDeliveryError(
                self.name, f"trigger {self.event_name(status)} failed: {exc!r}"
            ) from exc
