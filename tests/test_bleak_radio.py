from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from blebridge.core.errors import AdapterError
from blebridge.radio.base import PROP_NOTIFY, PROP_READ, PROP_WRITE, PROP_WRITE_WITHOUT_RESPONSE
from blebridge.radio.bleak_radio import BleakCharacteristic, BleakLink, property_flags

PRINTER_SERVICE = "000018f0-0000-1000-8000-00805f9b34fb"
PRINTER_CHAR = "00002af1-0000-1000-8000-00805f9b34fb"
BATTERY_SERVICE = "0000180f-0000-1000-8000-00805f9b34fb"


def _client(*, connected: bool = True) -> SimpleNamespace:
    printer_char = SimpleNamespace(uuid=PRINTER_CHAR, properties=["write", "write-without-response"])
    battery_char = SimpleNamespace(uuid="00002a19-0000-1000-8000-00805f9b34fb", properties=["read", "notify"])
    return SimpleNamespace(
        is_connected=connected,
        services=[
            SimpleNamespace(uuid=PRINTER_SERVICE, characteristics=[printer_char]),
            SimpleNamespace(uuid=BATTERY_SERVICE, characteristics=[battery_char]),
        ],
        write_gatt_char=AsyncMock(),
        disconnect=AsyncMock(),
    )


def test_property_flags_from_bleak_names() -> None:
    assert property_flags(["read", "notify"]) == PROP_READ | PROP_NOTIFY
    assert property_flags(["write", "write-without-response"]) == PROP_WRITE | PROP_WRITE_WITHOUT_RESPONSE
    assert property_flags(["reliable-write"]) == 0


@pytest.mark.asyncio
async def test_discover_services_filters_by_short_uuid() -> None:
    link = BleakLink(_client(), "66:22:B6:5C:5C:3C")

    services = await link.discover_services(["18F0"])

    assert [s.uuid for s in services] == [PRINTER_SERVICE]
    characteristics = await services[0].discover_characteristics(["2af1"])
    assert characteristics[0].properties == PROP_WRITE | PROP_WRITE_WITHOUT_RESPONSE


@pytest.mark.asyncio
async def test_discover_services_without_filter_lists_all() -> None:
    link = BleakLink(_client(), "66:22:B6:5C:5C:3C")

    services = await link.discover_services()

    assert [s.uuid for s in services] == [PRINTER_SERVICE, BATTERY_SERVICE]


@pytest.mark.asyncio
async def test_dropped_link_fails_discovery() -> None:
    link = BleakLink(_client(connected=False), "66:22:B6:5C:5C:3C")

    with pytest.raises(AdapterError, match="no longer connected"):
        await link.discover_services()


@pytest.mark.asyncio
async def test_write_modes_map_to_response_flag() -> None:
    client = _client()
    char = BleakCharacteristic(client, client.services[0].characteristics[0])

    await char.write(b"ab")
    await char.write_unacknowledged(b"cd")

    calls = client.write_gatt_char.await_args_list
    assert calls[0].args[1] == b"ab" and calls[0].kwargs == {"response": True}
    assert calls[1].args[1] == b"cd" and calls[1].kwargs == {"response": False}


@pytest.mark.asyncio
async def test_backend_errors_become_adapter_errors() -> None:
    client = _client()
    client.write_gatt_char.side_effect = OSError("att error 0x0e")
    client.disconnect.side_effect = RuntimeError("dbus gone")
    char = BleakCharacteristic(client, client.services[0].characteristics[0])
    link = BleakLink(client, "66:22:B6:5C:5C:3C")

    with pytest.raises(AdapterError, match="att error") as write_err:
        await char.write(b"x")
    assert isinstance(write_err.value.__cause__, OSError)

    with pytest.raises(AdapterError, match="BLE disconnect from 66:22:B6:5C:5C:3C failed"):
        await link.close()
