"""Paced, fragmented writes to a GATT characteristic."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator

from blebridge.core.errors import (
    AdapterError,
    CharacteristicNotFound,
    FragmentWriteError,
    ServiceNotFound,
)
from blebridge.core.identifiers import normalize_uuid
from blebridge.core.model import SendResult
from blebridge.core.session import ConnectionSession
from blebridge.radio.base import Characteristic, Link

DEFAULT_CHUNK_SIZE = 180
PACE_S = 0.01
LOGGER = logging.getLogger(__name__)


def split_fragments(payload: bytes, chunk_size: int) -> Iterator[bytes]:
    for offset in range(0, len(payload), chunk_size):
        yield payload[offset : offset + chunk_size]


class Transmitter:
    def __init__(self, session: ConnectionSession, *, pace_s: float = PACE_S) -> None:
        self._session = session
        self._pace_s = pace_s

    async def send(
        self,
        service_uuid: str,
        characteristic_uuid: str,
        payload: bytes,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        acknowledged: bool = True,
    ) -> SendResult:
        """Write ``payload`` in order, ``chunk_size`` bytes at a time.

        The first failed write aborts the transfer with ``FragmentWriteError``;
        fragments already written are not resent.
        """
        if chunk_size <= 0:
            chunk_size = DEFAULT_CHUNK_SIZE

        async with self._session.live_link() as link:
            characteristic = await _resolve(
                link, normalize_uuid(service_uuid), normalize_uuid(characteristic_uuid)
            )
            fragments = list(split_fragments(payload, chunk_size))
            write = characteristic.write if acknowledged else characteristic.write_unacknowledged
            bytes_sent = 0
            for index, fragment in enumerate(fragments, start=1):
                try:
                    await write(fragment)
                except AdapterError as exc:
                    raise FragmentWriteError(
                        f"write of fragment {index} of {len(fragments)} to {link.address} failed "
                        f"after {bytes_sent}/{len(payload)} bytes: {exc}",
                        fragment_index=index,
                        fragment_count=len(fragments),
                        bytes_sent=bytes_sent,
                        total_bytes=len(payload),
                    ) from exc
                bytes_sent += len(fragment)
                await asyncio.sleep(self._pace_s)

        LOGGER.debug("ble send: wrote %d bytes in %d fragments", bytes_sent, len(fragments))
        return SendResult(
            bytes_sent=bytes_sent,
            fragments=len(fragments),
            chunk_size=chunk_size,
            acknowledged=acknowledged,
        )


async def _resolve(link: Link, service_uuid: str, characteristic_uuid: str) -> Characteristic:
    services = await link.discover_services([service_uuid])
    if not services:
        raise ServiceNotFound(f"service {service_uuid} not found on {link.address}")
    characteristics = await services[0].discover_characteristics([characteristic_uuid])
    if not characteristics:
        raise CharacteristicNotFound(
            f"characteristic {characteristic_uuid} not found in service {service_uuid}"
        )
    return characteristics[0]
