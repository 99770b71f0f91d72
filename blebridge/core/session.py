"""Single-link connection session.

Every operation holds the session gate for its whole duration, so connect,
disconnect, liveness checks, describe, and transmissions never interleave on
the one physical link.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum

from blebridge.core.errors import AdapterError, LinkUnverified, NotConnected
from blebridge.core.model import (
    Capability,
    CharacteristicDescriptor,
    DeviceDescription,
    ServiceDescriptor,
)
from blebridge.radio.base import (
    PROP_NOTIFY,
    PROP_READ,
    PROP_WRITE,
    PROP_WRITE_WITHOUT_RESPONSE,
    Link,
    Radio,
)

LOGGER = logging.getLogger(__name__)

_CAPABILITY_BITS = (
    (PROP_READ, Capability.READ),
    (PROP_WRITE_WITHOUT_RESPONSE, Capability.WRITE_WITHOUT_RESPONSE),
    (PROP_WRITE, Capability.WRITE),
    (PROP_NOTIFY, Capability.NOTIFY),
)


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class Session:
    link: Link | None = None
    state: SessionState = SessionState.DISCONNECTED

    @property
    def connected(self) -> bool:
        return self.state is SessionState.CONNECTED and self.link is not None

    def clear(self) -> None:
        self.link = None
        self.state = SessionState.DISCONNECTED


def capabilities_from_properties(properties: int) -> frozenset[Capability]:
    return frozenset(cap for bit, cap in _CAPABILITY_BITS if properties & bit)


class ConnectionSession:
    def __init__(self, radio: Radio, session: Session | None = None) -> None:
        self._radio = radio
        self._session = session or Session()
        self._gate = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def address(self) -> str | None:
        link = self._session.link
        return link.address if link is not None else None

    async def connect(self, address: str) -> None:
        """Replace any current link with a verified link to ``address``.

        The session is only marked connected after a service discovery probe
        succeeds on the new link.
        """
        async with self._gate:
            if self._session.link is not None:
                await _close_best_effort(self._session.link, reason="replaced by new connect")
                self._session.clear()

            self._session.state = SessionState.CONNECTING
            try:
                link = await self._radio.open(address)
                try:
                    await link.discover_services()
                except Exception as exc:
                    await _close_best_effort(link, reason="link verification failed")
                    raise LinkUnverified(
                        f"connected to {address} but could not verify link: {exc}"
                    ) from exc
                except BaseException:
                    await _close_best_effort(link, reason="connect cancelled")
                    raise
            except BaseException:
                self._session.clear()
                raise

            self._session.link = link
            self._session.state = SessionState.CONNECTED

    async def is_connected(self) -> bool:
        """Re-probe the live link; a failed probe tears the session down."""
        async with self._gate:
            if not self._session.connected:
                return False
            link = self._session.link
            try:
                await link.discover_services()
            except AdapterError as exc:
                LOGGER.warning("ble link to %s failed liveness probe: %s", link.address, exc)
                await _close_best_effort(link, reason="stale link")
                self._session.clear()
                return False
            return True

    async def disconnect(self) -> None:
        async with self._gate:
            if not self._session.connected:
                return
            await self._session.link.close()
            self._session.clear()

    async def describe(self) -> DeviceDescription:
        async with self.live_link() as link:
            services = await link.discover_services()
            described: list[ServiceDescriptor] = []
            for service in services:
                try:
                    characteristics = await service.discover_characteristics()
                except AdapterError as exc:
                    LOGGER.warning(
                        "ble describe: could not list characteristics of %s: %s", service.uuid, exc
                    )
                    characteristics = []
                described.append(
                    ServiceDescriptor(
                        uuid=service.uuid,
                        characteristics=tuple(
                            CharacteristicDescriptor(
                                uuid=ch.uuid,
                                capabilities=capabilities_from_properties(ch.properties),
                            )
                            for ch in characteristics
                        ),
                    )
                )
            return DeviceDescription(address=link.address, services=tuple(described))

    @asynccontextmanager
    async def live_link(self) -> AsyncIterator[Link]:
        """Hold the session gate and yield the live link."""
        async with self._gate:
            if not self._session.connected:
                raise NotConnected("not connected")
            yield self._session.link


async def _close_best_effort(link: Link, *, reason: str) -> None:
    try:
        await link.close()
    except AdapterError as exc:
        LOGGER.warning("ble disconnect of %s (%s) failed: %s", link.address, reason, exc)
