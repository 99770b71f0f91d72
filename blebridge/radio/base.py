"""Radio stack interfaces consumed by the scanner and the connection session.

Implementations raise ``AdapterError`` for every lower-level failure.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Protocol

AdvertisementCallback = Callable[[str, str, int], None]

# GATT characteristic property bits.
PROP_READ = 0x02
PROP_WRITE_WITHOUT_RESPONSE = 0x04
PROP_WRITE = 0x08
PROP_NOTIFY = 0x10


class Characteristic(Protocol):
    uuid: str
    properties: int

    async def write(self, data: bytes) -> None:
        """Write with response (acknowledged by the peripheral)."""

    async def write_unacknowledged(self, data: bytes) -> None:
        """Write without response."""


class Service(Protocol):
    uuid: str

    async def discover_characteristics(
        self, uuids: Sequence[str] | None = None
    ) -> list[Characteristic]:
        """List characteristics, optionally restricted to normalized ``uuids``."""


class Link(Protocol):
    address: str

    async def discover_services(self, uuids: Sequence[str] | None = None) -> list[Service]:
        """List services, optionally restricted to normalized ``uuids``."""

    async def close(self) -> None:
        """Tear down the link."""


class Radio(Protocol):
    async def enable(self) -> None:
        """Activate the radio once at process start."""

    async def discover(self, on_advertisement: AdvertisementCallback, stop: asyncio.Event) -> None:
        """Report advertisements until ``stop`` is set, then return."""

    async def open(self, address: str) -> Link:
        """Open a link to a canonical ``address``."""
