from typing import Optional, Protocol

import aiohttp

from cibulb.config import Settings
from cibulb.model import AggregateStatus
from cibulb.notify.ifttt import IftttNotifier
from cibulb.notify.sns import SnsNotifier


class Notifier(Protocol):
    name: str

    async def notify(self, status: AggregateStatus) -> str:
        ...


def create_notifier(
    settings: Settings, session: Optional[aiohttp.ClientSession] = None
) -> Notifier:
    if settings.NOTIFIER == "sns":
        return SnsNotifier.from_settings(settings)
    if session is None:
        raise ValueError("The ifttt notifier needs an aiohttp session")
    return IftttNotifier.from_settings(settings, session)


__all__ = [
    "IftttNotifier",
    "Notifier",
    "SnsNotifier",
    "create_notifier",
]
