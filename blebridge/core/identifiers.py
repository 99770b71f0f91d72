"""Canonical forms for device addresses and GATT identifiers."""

from __future__ import annotations

import re

from blebridge.core.errors import InvalidAddressFormat, InvalidUUIDFormat

_OCTET_RE = re.compile(r"[0-9A-F]{2}")
_SHORT_UUID_RE = re.compile(r"[0-9a-f]{4}|[0-9a-f]{8}")
_FULL_UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")
_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"


def normalize_address(raw: str) -> str:
    """Return ``raw`` as six colon-separated uppercase hex pairs.

    Dashes are accepted as separators and surrounding whitespace is ignored.
    """
    cleaned = raw.strip().upper().replace("-", ":")
    parts = cleaned.split(":")
    if len(parts) != 6 or not all(_OCTET_RE.fullmatch(part) for part in parts):
        raise InvalidAddressFormat(f"invalid device address format: {raw!r}")
    return cleaned


def normalize_uuid(raw: str) -> str:
    """Return the lowercase 128-bit form of a 16-bit, 32-bit, or 128-bit UUID."""
    normalized = raw.strip().lower()
    if _SHORT_UUID_RE.fullmatch(normalized):
        return normalized.rjust(8, "0") + _BASE_UUID_SUFFIX
    if _FULL_UUID_RE.fullmatch(normalized):
        return normalized
    raise InvalidUUIDFormat(f"invalid UUID format: {raw!r}")
