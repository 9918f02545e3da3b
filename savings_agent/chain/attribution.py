"""Attribution suffix helpers for engine-initiated calldata.

Every transaction the agent submits carries a trailer identifying the builder
that originated it::

    [code length: 1 byte][code: N ASCII bytes][schema id: 1 byte][marker: 16 bytes]

The fixed 16-byte marker (``0x8021`` repeated) lets indexers detect the trailer
from the end of the calldata; contracts ignore the extra bytes.
"""

from __future__ import annotations

from dataclasses import dataclass

from savings_agent.core.errors import AttributionError

MARKER = bytes.fromhex("8021" * 8)
SCHEMA_ID = 0
MAX_CODE_LENGTH = 255


@dataclass(frozen=True, slots=True)
class AttributionSuffix:
    code: str
    schema_id: int


def suffix_length(code: str) -> int:
    """Return the byte length of the suffix produced for ``code``."""

    return 1 + len(code.encode("ascii")) + 1 + len(MARKER)


def encode_suffix(code: str, schema_id: int = SCHEMA_ID) -> bytes:
    """Encode ``code`` into the attribution trailer."""

    try:
        raw = code.encode("ascii")
    except UnicodeEncodeError as exc:
        raise AttributionError(f"Attribution code must be ASCII: {code!r}") from exc
    if not raw:
        raise AttributionError("Attribution code must not be empty")
    if len(raw) > MAX_CODE_LENGTH:
        raise AttributionError(f"Attribution code longer than {MAX_CODE_LENGTH} bytes")
    if not 0 <= schema_id <= 0xFF:
        raise AttributionError(f"Schema id out of range: {schema_id}")
    return bytes([len(raw)]) + raw + bytes([schema_id]) + MARKER


def attribute(calldata: bytes, code: str) -> bytes:
    """Append the attribution trailer for ``code`` to ``calldata``."""

    return bytes(calldata) + encode_suffix(code)


def has_marker(data: bytes) -> bool:
    return len(data) >= len(MARKER) and data[-len(MARKER):] == MARKER


def decode_suffix(data: bytes, code_length: int) -> AttributionSuffix:
    """Decode the trailer of ``data`` whose code is ``code_length`` bytes long."""

    total = 1 + code_length + 1 + len(MARKER)
    if len(data) < total or not has_marker(data):
        raise AttributionError("Calldata does not carry an attribution suffix")
    suffix = data[-total:]
    if suffix[0] != code_length:
        raise AttributionError(f"Suffix declares {suffix[0]} code bytes, expected {code_length}")
    code = suffix[1 : 1 + code_length].decode("ascii")
    schema_id = suffix[1 + code_length]
    return AttributionSuffix(code=code, schema_id=schema_id)


def strip_attribution(data: bytes, code: str) -> bytes:
    """Return the original calldata after verifying the trailer matches ``code``."""

    decoded = decode_suffix(data, len(code.encode("ascii")))
    if decoded.code != code:
        raise AttributionError(f"Unexpected attribution code {decoded.code!r}")
    return data[: -suffix_length(code)]


__all__ = [
    "MARKER",
    "SCHEMA_ID",
    "AttributionSuffix",
    "attribute",
    "decode_suffix",
    "encode_suffix",
    "has_marker",
    "strip_attribution",
    "suffix_length",
]
