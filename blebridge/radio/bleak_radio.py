"""Radio implementation on top of bleak."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from blebridge.core.errors import AdapterError
from blebridge.core.identifiers import normalize_uuid
from blebridge.radio.base import AdvertisementCallback

# bleak reports properties by name; the session works with GATT bitflags.
_PROPERTY_FLAGS = {
    "broadcast": 0x01,
    "read": 0x02,
    "write-without-response": 0x04,
    "write": 0x08,
    "notify": 0x10,
    "indicate": 0x20,
    "authenticated-signed-writes": 0x40,
    "extended-properties": 0x80,
}


def _load_bleak() -> Any:
    try:
        import bleak  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise AdapterError("BLE radio requires 'bleak'. Install dependency and retry.") from exc
    return bleak


@contextmanager
def _adapter_errors(action: str) -> Iterator[None]:
    try:
        yield
    except AdapterError:
        raise
    except Exception as exc:
        raise AdapterError(f"{action} failed: {exc}") from exc


def property_flags(properties: Sequence[str]) -> int:
    flags = 0
    for name in properties:
        flags |= _PROPERTY_FLAGS.get(name, 0)
    return flags


def _matches(uuid: str, wanted: set[str] | None) -> bool:
    return wanted is None or normalize_uuid(uuid) in wanted


class BleakCharacteristic:
    def __init__(self, client: Any, characteristic: Any) -> None:
        self._client = client
        self._characteristic = characteristic
        self.uuid: str = characteristic.uuid
        self.properties: int = property_flags(characteristic.properties)

    async def write(self, data: bytes) -> None:
        with _adapter_errors(f"BLE write to {self.uuid}"):
            await self._client.write_gatt_char(self._characteristic, data, response=True)

    async def write_unacknowledged(self, data: bytes) -> None:
        with _adapter_errors(f"BLE write-without-response to {self.uuid}"):
            await self._client.write_gatt_char(self._characteristic, data, response=False)


class BleakService:
    def __init__(self, link: BleakLink, service: Any) -> None:
        self._link = link
        self._service = service
        self.uuid: str = service.uuid

    async def discover_characteristics(
        self, uuids: Sequence[str] | None = None
    ) -> list[BleakCharacteristic]:
        self._link.ensure_connected()
        wanted = {normalize_uuid(u) for u in uuids} if uuids is not None else None
        return [
            BleakCharacteristic(self._link.client, ch)
            for ch in self._service.characteristics
            if _matches(ch.uuid, wanted)
        ]


class BleakLink:
    def __init__(self, client: Any, address: str) -> None:
        self.client = client
        self.address = address

    def ensure_connected(self) -> None:
        if not self.client.is_connected:
            raise AdapterError(f"BLE link to {self.address} is no longer connected")

    async def discover_services(self, uuids: Sequence[str] | None = None) -> list[BleakService]:
        self.ensure_connected()
        wanted = {normalize_uuid(u) for u in uuids} if uuids is not None else None
        with _adapter_errors(f"BLE service discovery on {self.address}"):
            services = list(self.client.services)
        return [BleakService(self, s) for s in services if _matches(s.uuid, wanted)]

    async def close(self) -> None:
        with _adapter_errors(f"BLE disconnect from {self.address}"):
            await self.client.disconnect()


class BleakRadio:
    def __init__(self, *, connect_timeout_s: float = 10.0) -> None:
        self.connect_timeout_s = connect_timeout_s

    async def enable(self) -> None:
        """Check that a bleak backend is usable.

        bleak powers the adapter on demand, so there is nothing to switch on.
        """
        bleak = _load_bleak()
        with _adapter_errors("BLE adapter check"):
            bleak.BleakScanner()

    async def discover(self, on_advertisement: AdvertisementCallback, stop: asyncio.Event) -> None:
        bleak = _load_bleak()

        def _detection(device: Any, advertisement: Any) -> None:
            name = advertisement.local_name or device.name or ""
            on_advertisement(device.address, name, advertisement.rssi)

        with _adapter_errors("BLE scan"):
            scanner = bleak.BleakScanner(detection_callback=_detection)
            await scanner.start()
            try:
                await stop.wait()
            finally:
                await scanner.stop()

    async def open(self, address: str) -> BleakLink:
        bleak = _load_bleak()
        with _adapter_errors(f"BLE connect to {address}"):
            client = bleak.BleakClient(address, timeout=self.connect_timeout_s)
            await client.connect()
        return BleakLink(client, address)
