from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Any, Optional, Tuple

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError
from gidgethub.abc import GitHubAPI
import pydantic

from cibulb.errors import IndicatorError

logger = logging.getLogger("cibulb")

BULB_NAME = "icolorlive"
SERVICE_UUID = "f000ffa0-0451-4000-b000-000000000000"
CHANGE_COLOR_CHARACTERISTIC = "f000ffa4-0451-4000-b000-000000000000"


class BulbColor(Enum):
    OFF = 0
    BLUE = 1
    YELLOW = 2
    GREEN = 3
    RED = 4
    PINK = 5


RGB = {
    BulbColor.OFF: (0, 0, 0),
    BulbColor.BLUE: (0, 0, 26),
    BulbColor.YELLOW: (26, 26, 0),
    BulbColor.GREEN: (0, 26, 0),
    BulbColor.RED: (26, 0, 0),
    BulbColor.PINK: (26, 0, 26),
}


def get_rgb(color: BulbColor) -> Tuple[int, int, int]:
    return RGB[color]


def color_for_status(state: Optional[str]) -> BulbColor:
    if state == "pending":
        return BulbColor.YELLOW
    if state in ("failure", "error", "failed"):
        return BulbColor.RED
    if state == "success":
        return BulbColor.GREEN
    return BulbColor.PINK


class CommitStatus(pydantic.BaseModel):
    id: int
    state: str


async def fetch_build_status(
    gh: GitHubAPI, owner: str, repo: str, ref: str = "master"
) -> CommitStatus:
    url = f"/repos/{owner}/{repo}/commits/{ref}/statuses"
    logger.debug("Get commit statuses %s", url)
    statuses = await gh.getitem(url)
    if not statuses:
        raise IndicatorError(f"No commit status on {owner}/{repo}@{ref}")
    return CommitStatus.model_validate(statuses[0])


class Bulb:
    """
    A connected light. Obtain one with ``Bulb.connect`` and release it with
    ``disconnect``; nothing reconnects automatically.
    """

    def __init__(self, client: Any):
        self.client = client

    @property
    def device_id(self) -> str:
        return self.client.address

    @classmethod
    async def connect(
        cls,
        name: str = BULB_NAME,
        *,
        timeout: float = 10.0,
        scanner: Any = BleakScanner,
        client_factory: Any = BleakClient,
    ) -> Bulb:
        device = await scanner.find_device_by_name(name, timeout=timeout)
        if device is None:
            raise IndicatorError(f"No bulb named {name!r} found")

        client = client_factory(device)
        try:
            await client.connect()
        except (BleakError, asyncio.TimeoutError) as exc:
            raise IndicatorError(f"Cannot connect to {name!r}: {exc}") from exc

        if client.services.get_service(SERVICE_UUID) is None:
            await client.disconnect()
            raise IndicatorError(f"{name!r} does not expose service {SERVICE_UUID}")

        logger.info("Connected to bulb %s", client.address)
        return cls(client)

    async def disconnect(self) -> None:
        await self.client.disconnect()

    async def change_color(self, color: BulbColor) -> None:
        logger.debug("Changing bulb color to %s", color.name)
        try:
            await self.client.write_gatt_char(
                CHANGE_COLOR_CHARACTERISTIC, bytes(get_rgb(color)), response=False
            )
        except BleakError as exc:
            raise IndicatorError(f"Color write failed: {exc}") from exc

    async def show_status(self, state: Optional[str]) -> BulbColor:
        color = color_for_status(state)
        await self.change_color(color)
        return color
