"""Time-bounded peripheral discovery with single-pass admission."""

from __future__ import annotations

import asyncio
import logging
import threading

from blebridge.core.errors import ScanBusy, ScanTimeout
from blebridge.core.model import ScanHit
from blebridge.radio.base import Radio

DEFAULT_SCAN_SECONDS = 8
SCAN_STOP_GRACE_S = 2.0
LOGGER = logging.getLogger(__name__)


class ScanState:
    """Admission flag shared by every coordinator that drives one radio.

    Also keeps the discovery task of a pass that timed out while stopping, so
    the next admitted pass can force it down.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_progress = False
        self.stranded: asyncio.Task[None] | None = None

    @property
    def in_progress(self) -> bool:
        with self._lock:
            return self._in_progress

    def try_begin(self) -> bool:
        with self._lock:
            if self._in_progress:
                return False
            self._in_progress = True
            return True

    def finish(self) -> None:
        with self._lock:
            self._in_progress = False


class ScanCoordinator:
    def __init__(
        self,
        radio: Radio,
        state: ScanState | None = None,
        *,
        stop_grace_s: float = SCAN_STOP_GRACE_S,
    ) -> None:
        self._radio = radio
        self._state = state or ScanState()
        self._stop_grace_s = stop_grace_s

    @property
    def in_progress(self) -> bool:
        return self._state.in_progress

    async def scan(self, seconds: float = DEFAULT_SCAN_SECONDS, name_contains: str = "") -> list[ScanHit]:
        """Collect advertisements for ``seconds`` and return them in discovery order.

        Hits whose advertised name does not contain ``name_contains``
        (case-insensitive) are dropped. Raises ``ScanBusy`` without waiting if
        another pass holds admission, and ``ScanTimeout`` if the discovery
        stream is still running ``stop_grace_s`` after being told to stop.
        """
        if seconds <= 0:
            seconds = DEFAULT_SCAN_SECONDS

        if not self._state.try_begin():
            raise ScanBusy("bluetooth scan already in progress")
        try:
            await self._reap_stranded()
            return await self._run(seconds, name_contains)
        finally:
            self._state.finish()

    async def _run(self, seconds: float, name_contains: str) -> list[ScanHit]:
        hits: list[ScanHit] = []
        needle = name_contains.lower()

        def _on_advertisement(address: str, name: str, rssi: int) -> None:
            name = name or ""
            if needle and needle not in name.lower():
                return
            hits.append(ScanHit(address=address, name=name, rssi=rssi))

        stop = asyncio.Event()
        stream = asyncio.create_task(self._radio.discover(_on_advertisement, stop))
        try:
            await asyncio.sleep(seconds)
        finally:
            stop.set()

        done, _ = await asyncio.wait({stream}, timeout=self._stop_grace_s)
        if not done:
            self._state.stranded = stream
            stream.add_done_callback(_log_stranded_exit)
            raise ScanTimeout(
                f"bluetooth scan timed out while stopping after {seconds}s scan window"
            )

        stream.result()
        return list(hits)

    async def _reap_stranded(self) -> None:
        stranded = self._state.stranded
        if stranded is None:
            return
        if not stranded.done():
            LOGGER.warning("ble scan: cancelling discovery stream left running by a timed-out scan")
            stranded.cancel()
            await asyncio.wait({stranded}, timeout=self._stop_grace_s)
            if not stranded.done():
                raise ScanTimeout(
                    "bluetooth scan still stopping from an earlier timed-out scan; radio is busy"
                )
        self._state.stranded = None


def _log_stranded_exit(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        LOGGER.info("ble scan: stranded discovery stream cancelled")
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.warning("ble scan: stranded discovery stream failed: %s", exc)
    else:
        LOGGER.info("ble scan: stranded discovery stream stopped late")
