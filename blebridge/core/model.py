"""Core data models used across the scanner, session, service, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class ScanHit:
    address: str
    name: str
    rssi: int


class Capability(str, Enum):
    READ = "read"
    WRITE = "write"
    WRITE_WITHOUT_RESPONSE = "write-without-response"
    NOTIFY = "notify"


@dataclass(frozen=True)
class CharacteristicDescriptor:
    uuid: str
    capabilities: frozenset[Capability]


@dataclass(frozen=True)
class ServiceDescriptor:
    uuid: str
    characteristics: tuple[CharacteristicDescriptor, ...]


@dataclass(frozen=True)
class DeviceDescription:
    address: str
    services: tuple[ServiceDescriptor, ...]


@dataclass(frozen=True)
class SendResult:
    bytes_sent: int
    fragments: int
    chunk_size: int
    acknowledged: bool


@dataclass(frozen=True)
class BLESettings:
    printer_address: str = "66:22:B6:5C:5C:3C"
    device_name_contains: str = ""
    service_uuid: str | None = None
    write_characteristic_uuid: str | None = None
    chunk_size: int = 180
    write_with_response: bool = False
    scan_seconds: int = 8
    connect_timeout_s: float = 10.0
    debug_scan_on_connect_failure: bool = True


@dataclass(frozen=True)
class LoggingSettings:
    file_path: str | None = None
    console_verbose: bool = False


@dataclass(frozen=True)
class BridgeConfig:
    ble: BLESettings = field(default_factory=BLESettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
