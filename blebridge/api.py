"""Public async API for driving a BLE printer from other Python code.

Names exported here are kept stable across releases; the `blebridge.core`
and `blebridge.radio` modules may change without notice.
"""

from __future__ import annotations

from blebridge.core.config_loader import LoadedConfig, load_config
from blebridge.core.errors import (
    AdapterError,
    BridgeError,
    CharacteristicNotFound,
    ConfigLoadError,
    ConfigValidationError,
    FragmentWriteError,
    InvalidAddressFormat,
    InvalidUUIDFormat,
    LinkUnverified,
    NotConnected,
    PayloadError,
    ResolutionError,
    ScanBusy,
    ScanError,
    ScanTimeout,
    ServiceNotFound,
    SessionError,
)
from blebridge.core.identifiers import normalize_address, normalize_uuid
from blebridge.core.model import (
    BLESettings,
    BridgeConfig,
    Capability,
    CharacteristicDescriptor,
    DeviceDescription,
    LoggingSettings,
    ScanHit,
    SendResult,
    ServiceDescriptor,
)
from blebridge.core.payload import decode_base64_payload, text_receipt
from blebridge.core.service import BridgeService
from blebridge.radio.base import Radio

__all__ = [
    "AdapterError",
    "BridgeError",
    "CharacteristicNotFound",
    "ConfigLoadError",
    "ConfigValidationError",
    "FragmentWriteError",
    "InvalidAddressFormat",
    "InvalidUUIDFormat",
    "LinkUnverified",
    "NotConnected",
    "PayloadError",
    "ResolutionError",
    "ScanBusy",
    "ScanError",
    "ScanTimeout",
    "ServiceNotFound",
    "SessionError",
    "BLESettings",
    "BridgeConfig",
    "Capability",
    "CharacteristicDescriptor",
    "DeviceDescription",
    "LoadedConfig",
    "LoggingSettings",
    "ScanHit",
    "SendResult",
    "ServiceDescriptor",
    "Radio",
    "Client",
    "decode_base64_payload",
    "load_config",
    "normalize_address",
    "normalize_uuid",
    "text_receipt",
]


class Client:
    """Public async client for blebridge core capabilities.

    A `Client` owns one scan coordinator and one connection session. All
    session calls on the same client are serialized; a scan runs independently
    of them and at most one scan runs at a time.
    """

    def __init__(
        self,
        *,
        config: BridgeConfig | None = None,
        radio: Radio | None = None,
    ) -> None:
        self._service = BridgeService(config=config, radio=radio)

    @property
    def config(self) -> BridgeConfig:
        return self._service.config

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    async def start(self) -> bool:
        return await self._service.start()

    async def scan(self, *, seconds: int | None = None, name_contains: str | None = None) -> list[ScanHit]:
        return await self._service.scan(seconds, name_contains)

    async def connect(self, address: str | None = None) -> str:
        return await self._service.connect(address)

    async def disconnect(self) -> None:
        await self._service.disconnect()

    async def is_connected(self) -> bool:
        return await self._service.status()

    async def describe(self) -> DeviceDescription:
        return await self._service.describe()

    async def print_text(self, text: str) -> SendResult:
        return await self._service.print_text(text)

    async def print_raw(self, data: bytes) -> SendResult:
        return await self._service.print_raw(data)

    async def send(
        self,
        service_uuid: str,
        characteristic_uuid: str,
        payload: bytes,
        *,
        chunk_size: int = 0,
        acknowledged: bool = True,
    ) -> SendResult:
        """Write ``payload`` to any characteristic of the connected device."""
        return await self._service.transmitter.send(
            service_uuid,
            characteristic_uuid,
            payload,
            chunk_size=chunk_size,
            acknowledged=acknowledged,
        )

    async def close(self) -> None:
        await self._service.drain_background()
