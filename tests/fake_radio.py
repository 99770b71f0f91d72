"""In-memory radio used by the session, scanner, transmitter, and service tests."""

from __future__ import annotations

import asyncio

from blebridge.core.errors import AdapterError
from blebridge.radio.base import PROP_WRITE, PROP_WRITE_WITHOUT_RESPONSE

PRINTER_SERVICE = "000018f0-0000-1000-8000-00805f9b34fb"
PRINTER_CHAR = "00002af1-0000-1000-8000-00805f9b34fb"
BATTERY_SERVICE = "0000180f-0000-1000-8000-00805f9b34fb"
BATTERY_LEVEL_CHAR = "00002a19-0000-1000-8000-00805f9b34fb"


class FakeCharacteristic:
    def __init__(
        self,
        uuid: str,
        properties: int = PROP_WRITE | PROP_WRITE_WITHOUT_RESPONSE,
        *,
        fail_on_write: int | None = None,
    ) -> None:
        self.uuid = uuid
        self.properties = properties
        self.fail_on_write = fail_on_write
        self.writes: list[tuple[str, bytes]] = []
        self.events: list[tuple[str, str]] | None = None

    async def write(self, data: bytes) -> None:
        self._record("ack", data)

    async def write_unacknowledged(self, data: bytes) -> None:
        self._record("unack", data)

    def _record(self, mode: str, data: bytes) -> None:
        if self.fail_on_write is not None and len(self.writes) + 1 == self.fail_on_write:
            raise AdapterError("radio write fault")
        self.writes.append((mode, bytes(data)))
        if self.events is not None:
            self.events.append(("write", self.uuid))


class FakeService:
    def __init__(
        self,
        uuid: str,
        characteristics: list[FakeCharacteristic] | None = None,
        *,
        fail_discovery: bool = False,
    ) -> None:
        self.uuid = uuid
        self.characteristics = characteristics or []
        self.fail_discovery = fail_discovery

    async def discover_characteristics(self, uuids=None) -> list[FakeCharacteristic]:
        if self.fail_discovery:
            raise AdapterError(f"characteristic discovery failed for {self.uuid}")
        return [c for c in self.characteristics if uuids is None or c.uuid in uuids]


class FakeLink:
    def __init__(
        self,
        address: str,
        services: list[FakeService],
        events: list[tuple[str, str]],
        *,
        fail_probe: bool = False,
        probe_delay: float = 0.0,
    ) -> None:
        self.address = address
        self.services = services
        self.events = events
        self.fail_probe = fail_probe
        self.fail_close = False
        self.probe_delay = probe_delay
        self.closed = False
        self.probe_count = 0
        self.active = 0
        self.max_active = 0

    async def discover_services(self, uuids=None) -> list[FakeService]:
        self.probe_count += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.probe_delay:
                await asyncio.sleep(self.probe_delay)
            if self.closed:
                raise AdapterError(f"link to {self.address} is closed")
            if self.fail_probe:
                raise AdapterError(f"service discovery on {self.address} failed")
            return [s for s in self.services if uuids is None or s.uuid in uuids]
        finally:
            self.active -= 1

    async def close(self) -> None:
        self.events.append(("close", self.address))
        if self.fail_close:
            raise AdapterError(f"disconnect from {self.address} failed")
        self.closed = True


class FakeRadio:
    def __init__(self, services: list[FakeService] | None = None) -> None:
        self.services = services if services is not None else []
        self.events: list[tuple[str, str]] = []
        self.links: list[FakeLink] = []
        self.advertisements: list[tuple[str, str, int]] = []
        self.fail_open = False
        self.fail_enable = False
        self.fail_probe_for: set[str] = set()
        self.probe_delay = 0.0
        self.hang_on_stop = False
        self.stop_delay = 0.0
        self.discovery_error: Exception | None = None
        self.discover_calls = 0
        self.active_streams = 0
        self.max_active_streams = 0
        self.open_calls = 0

    async def enable(self) -> None:
        if self.fail_enable:
            raise AdapterError("adapter not available")

    async def discover(self, on_advertisement, stop: asyncio.Event) -> None:
        self.discover_calls += 1
        self.active_streams += 1
        self.max_active_streams = max(self.max_active_streams, self.active_streams)
        try:
            if self.discovery_error is not None:
                raise self.discovery_error
            for address, name, rssi in self.advertisements:
                on_advertisement(address, name, rssi)
                await asyncio.sleep(0)
            await stop.wait()
            if self.hang_on_stop:
                await asyncio.Event().wait()
        finally:
            # Slow scanner teardown, run even when the stream is cancelled.
            if self.stop_delay:
                await asyncio.sleep(self.stop_delay)
            self.active_streams -= 1

    async def open(self, address: str) -> FakeLink:
        self.open_calls += 1
        self.events.append(("open", address))
        if self.fail_open:
            raise AdapterError(f"could not connect to {address}")
        link = FakeLink(
            address,
            self.services,
            self.events,
            fail_probe=address in self.fail_probe_for,
            probe_delay=self.probe_delay,
        )
        self.links.append(link)
        return link


def printer_radio(**char_kwargs) -> tuple[FakeRadio, FakeCharacteristic]:
    characteristic = FakeCharacteristic(PRINTER_CHAR, **char_kwargs)
    radio = FakeRadio(services=[FakeService(PRINTER_SERVICE, [characteristic])])
    return radio, characteristic
