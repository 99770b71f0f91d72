"""Print payload builders."""

from __future__ import annotations

import base64
import binascii

from blebridge.core.errors import PayloadError

ESC_INIT = b"\x1b\x40"
GS_PARTIAL_CUT = b"\x1d\x56\x00"


def text_receipt(text: str, *, encoding: str = "utf-8") -> bytes:
    """ESC/POS init, the text, a trailing newline, and a partial cut."""
    body = text.encode(encoding)
    if not body.endswith(b"\n"):
        body += b"\n"
    return ESC_INIT + body + GS_PARTIAL_CUT


def decode_base64_payload(value: str) -> bytes:
    if not value.strip():
        raise PayloadError("raw payload must not be empty")
    try:
        return base64.b64decode(value.strip(), validate=True)
    except binascii.Error as exc:
        raise PayloadError(f"invalid base64 payload: {exc}") from exc
