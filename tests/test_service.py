from __future__ import annotations

import asyncio
import logging

import pytest

from fake_radio import PRINTER_CHAR, PRINTER_SERVICE, printer_radio
from blebridge.core.errors import (
    AdapterError,
    ConfigValidationError,
    InvalidAddressFormat,
    NotConnected,
)
from blebridge.core.model import BLESettings, BridgeConfig
from blebridge.core.payload import text_receipt
from blebridge.core.service import BridgeService
from blebridge.core.session import SessionState

PRINTER = "66:22:B6:5C:5C:3C"


def _service(radio, **ble) -> BridgeService:
    settings = {
        "service_uuid": PRINTER_SERVICE,
        "write_characteristic_uuid": PRINTER_CHAR,
        "chunk_size": 8,
        "scan_seconds": 1,
    }
    settings.update(ble)
    service = BridgeService(config=BridgeConfig(ble=BLESettings(**settings)), radio=radio)
    service.transmitter._pace_s = 0
    service.debug_scan_seconds = 0.05
    return service


@pytest.mark.asyncio
async def test_print_text_sends_receipt_to_configured_characteristic() -> None:
    radio, characteristic = printer_radio()
    service = _service(radio)

    await service.connect()
    result = await service.print_text("Order #12")

    expected = text_receipt("Order #12")
    assert b"".join(data for _, data in characteristic.writes) == expected
    assert all(mode == "unack" for mode, _ in characteristic.writes)
    assert all(len(data) <= 8 for _, data in characteristic.writes)
    assert result.bytes_sent == len(expected)


@pytest.mark.asyncio
async def test_print_raw_honours_write_with_response() -> None:
    radio, characteristic = printer_radio()
    service = _service(radio, write_with_response=True)

    await service.connect(PRINTER)
    await service.print_raw(b"\x1b\x40")

    assert characteristic.writes == [("ack", b"\x1b\x40")]


@pytest.mark.asyncio
async def test_print_without_configured_uuids_is_rejected() -> None:
    radio, characteristic = printer_radio()
    service = _service(radio, service_uuid=None)
    await service.connect()

    with pytest.raises(ConfigValidationError):
        await service.print_text("hello")

    assert characteristic.writes == []


@pytest.mark.asyncio
async def test_print_requires_connection() -> None:
    radio, _ = printer_radio()
    service = _service(radio)

    with pytest.raises(NotConnected):
        await service.print_raw(b"abc")


@pytest.mark.asyncio
async def test_connect_normalizes_address() -> None:
    radio, _ = printer_radio()
    service = _service(radio)

    assert await service.connect(" 66-22-b6-5c-5c-3c ") == PRINTER
    assert radio.events == [("open", PRINTER)]
    assert await service.status() is True


@pytest.mark.asyncio
async def test_connect_rejects_malformed_address_without_radio() -> None:
    radio, _ = printer_radio()
    service = _service(radio)

    with pytest.raises(InvalidAddressFormat):
        await service.connect("66:22:B6:5C:3C")

    assert radio.events == []


@pytest.mark.asyncio
async def test_connect_failure_runs_diagnostic_scan(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="blebridge")
    radio, _ = printer_radio()
    radio.fail_open = True
    radio.advertisements = [("66:22:b6:5c:5c:3c", "MPT-II", -50), ("11:22:33:44:55:66", "Other", -80)]
    service = _service(radio)

    with pytest.raises(AdapterError):
        await service.connect()
    await service.drain_background()

    assert radio.discover_calls == 1
    assert "ble connect debug scan done: hits=2 target_visible=True" in caplog.text
    assert "name='MPT-II'" in caplog.text


@pytest.mark.asyncio
async def test_diagnostic_scan_skips_when_scanner_busy(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="blebridge")
    radio, _ = printer_radio()
    radio.fail_open = True
    service = _service(radio)

    scanning = asyncio.create_task(service.scan(1))
    await asyncio.sleep(0.02)
    with pytest.raises(AdapterError):
        await service.connect()
    await service.drain_background()
    await scanning

    assert "debug scan skipped" in caplog.text
    assert radio.discover_calls == 1


@pytest.mark.asyncio
async def test_diagnostic_scan_can_be_disabled() -> None:
    radio, _ = printer_radio()
    radio.fail_open = True
    service = _service(radio, debug_scan_on_connect_failure=False)

    with pytest.raises(AdapterError):
        await service.connect()
    await service.drain_background()

    assert radio.discover_calls == 0


@pytest.mark.asyncio
async def test_scan_uses_configured_filter() -> None:
    radio, _ = printer_radio()
    radio.advertisements = [("66:22:B6:5C:5C:3C", "MPT-II", -50), ("11:22:33:44:55:66", "Other", -80)]
    service = _service(radio, device_name_contains="mpt")

    hits = await service.scan(seconds=1)

    assert [hit.name for hit in hits] == ["MPT-II"]


@pytest.mark.asyncio
async def test_connected_block_disconnects_afterwards() -> None:
    radio, _ = printer_radio()
    service = _service(radio)

    async with service.connected() as address:
        assert address == PRINTER
        assert service.session.state is SessionState.CONNECTED

    assert service.session.state is SessionState.DISCONNECTED
    assert radio.links[0].closed


@pytest.mark.asyncio
async def test_connected_block_error_wins_over_disconnect_error() -> None:
    radio, _ = printer_radio()
    service = _service(radio)

    with pytest.raises(ValueError):
        async with service.connected():
            radio.links[0].fail_close = True
            raise ValueError("boom")


@pytest.mark.asyncio
async def test_start_logs_enable_failure(caplog: pytest.LogCaptureFixture) -> None:
    radio, _ = printer_radio()
    radio.fail_enable = True
    service = _service(radio)

    assert await service.start() is False
    assert "ble enable failed" in caplog.text
