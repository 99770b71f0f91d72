"""Service layer used by the CLI and the public API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from blebridge.core.config_loader import load_config
from blebridge.core.errors import (
    AdapterError,
    BridgeError,
    ConfigValidationError,
    InvalidAddressFormat,
    ScanBusy,
)
from blebridge.core.identifiers import normalize_address
from blebridge.core.model import BridgeConfig, DeviceDescription, ScanHit, SendResult
from blebridge.core.payload import text_receipt
from blebridge.core.scan import ScanCoordinator, ScanState
from blebridge.core.session import ConnectionSession, Session
from blebridge.core.transmit import Transmitter
from blebridge.radio.base import Radio
from blebridge.radio.bleak_radio import BleakRadio

DEBUG_SCAN_SECONDS = 4
DEBUG_SCAN_MAX_LOGGED_HITS = 8
LOGGER = logging.getLogger(__name__)


class BridgeService:
    debug_scan_seconds: float = DEBUG_SCAN_SECONDS

    def __init__(
        self,
        *,
        config: BridgeConfig | None = None,
        radio: Radio | None = None,
        scan_state: ScanState | None = None,
        session: Session | None = None,
    ) -> None:
        if config is None:
            loaded = load_config()
            config = loaded.config
            self.load_warnings = loaded.warnings
            for warning in loaded.warnings:
                LOGGER.warning(warning)
        else:
            self.load_warnings = ()
        self.config = config
        self.radio = radio or BleakRadio(connect_timeout_s=config.ble.connect_timeout_s)
        self.scanner = ScanCoordinator(self.radio, scan_state or ScanState())
        self.session = ConnectionSession(self.radio, session or Session())
        self.transmitter = Transmitter(self.session)
        self._background: set[asyncio.Task[None]] = set()

    async def start(self) -> bool:
        """Enable the radio; failure is logged and later operations fail on their own."""
        try:
            await self.radio.enable()
        except AdapterError as exc:
            LOGGER.error("ble enable failed: %s", exc)
            return False
        LOGGER.info("ble adapter enabled")
        return True

    async def scan(self, seconds: int | None = None, name_contains: str | None = None) -> list[ScanHit]:
        seconds = seconds if seconds is not None else self.config.ble.scan_seconds
        name_filter = name_contains if name_contains is not None else self.config.ble.device_name_contains
        LOGGER.info("ble scan start: seconds=%s filter=%r", seconds, name_filter)
        try:
            hits = await self.scanner.scan(seconds, name_filter)
        except BridgeError as exc:
            LOGGER.error("ble scan error: %s", exc)
            raise
        LOGGER.info("ble scan done: found=%d", len(hits))
        return hits

    async def connect(self, address: str | None = None) -> str:
        raw_address = address if address is not None else self.config.ble.printer_address
        try:
            normalized = normalize_address(raw_address)
        except InvalidAddressFormat as exc:
            LOGGER.warning("ble connect rejected: raw_address=%r err=%s", raw_address, exc)
            raise

        LOGGER.info("ble connect start: raw_address=%r normalized_address=%s", raw_address, normalized)
        try:
            await self.session.connect(normalized)
        except BridgeError as exc:
            LOGGER.error("ble connect error: normalized_address=%s err=%s", normalized, exc)
            if self.config.ble.debug_scan_on_connect_failure:
                self._schedule_debug_scan(normalized)
            raise
        LOGGER.info("ble connect ok: address=%s", normalized)
        return normalized

    async def status(self) -> bool:
        connected = await self.session.is_connected()
        LOGGER.info("ble status: connected=%s", connected)
        return connected

    async def disconnect(self) -> None:
        LOGGER.info("ble disconnect start")
        try:
            await self.session.disconnect()
        except BridgeError as exc:
            LOGGER.error("ble disconnect error: %s", exc)
            raise
        LOGGER.info("ble disconnect ok")

    async def describe(self) -> DeviceDescription:
        LOGGER.info("ble describe start")
        try:
            description = await self.session.describe()
        except BridgeError as exc:
            LOGGER.error("ble describe error: %s", exc)
            raise
        LOGGER.info("ble describe ok: services=%d", len(description.services))
        return description

    async def print_text(self, text: str) -> SendResult:
        return await self._print("print/text", text_receipt(text))

    async def print_raw(self, data: bytes) -> SendResult:
        return await self._print("print/raw", data)

    @asynccontextmanager
    async def connected(self, address: str | None = None) -> AsyncIterator[str]:
        """Connect for the duration of the block, then disconnect."""
        normalized = await self.connect(address)
        try:
            yield normalized
        except BaseException:
            # disconnect() logs its own failure; the block's error is the one to surface.
            with suppress(BridgeError):
                await self.disconnect()
            raise
        await self.disconnect()

    async def drain_background(self) -> None:
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _print(self, label: str, data: bytes) -> SendResult:
        ble = self.config.ble
        if not ble.service_uuid or not ble.write_characteristic_uuid:
            raise ConfigValidationError(
                "Invalid BLE configuration: ble.service_uuid and ble.write_characteristic_uuid are required for printing."
            )
        LOGGER.info(
            "%s: bytes=%d chunk=%d with_response=%s",
            label,
            len(data),
            ble.chunk_size,
            ble.write_with_response,
        )
        try:
            result = await self.transmitter.send(
                ble.service_uuid,
                ble.write_characteristic_uuid,
                data,
                chunk_size=ble.chunk_size,
                acknowledged=ble.write_with_response,
            )
        except BridgeError as exc:
            LOGGER.error("%s error: %s", label, exc)
            raise
        LOGGER.info("%s ok: bytes_sent=%d fragments=%d", label, result.bytes_sent, result.fragments)
        return result

    def _schedule_debug_scan(self, address: str) -> None:
        LOGGER.info("ble connect debug scan scheduled: address=%s", address)
        task = asyncio.create_task(self._log_connect_debug_scan(address))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _log_connect_debug_scan(self, address: str) -> None:
        LOGGER.info("ble connect debug scan start: address=%s seconds=%s", address, self.debug_scan_seconds)
        try:
            hits = await self.scanner.scan(self.debug_scan_seconds, "")
        except ScanBusy:
            LOGGER.info("ble connect debug scan skipped: another scan already in progress")
            return
        except BridgeError as exc:
            LOGGER.warning("ble connect debug scan failed: %s", exc)
            return

        visible = any(_same_address(hit.address, address) for hit in hits)
        LOGGER.info("ble connect debug scan done: hits=%d target_visible=%s", len(hits), visible)
        for i, hit in enumerate(hits):
            if i >= DEBUG_SCAN_MAX_LOGGED_HITS:
                LOGGER.info("ble connect debug scan: additional_hits=%d", len(hits) - i)
                break
            LOGGER.info(
                "ble connect debug hit[%d]: address=%s name=%r rssi=%d", i, hit.address, hit.name, hit.rssi
            )


def _same_address(advertised: str, address: str) -> bool:
    try:
        return normalize_address(advertised) == address
    except InvalidAddressFormat:
        return False
