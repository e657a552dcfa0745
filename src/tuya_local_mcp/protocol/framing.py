"""Message frame builder and parser for the Tuya LAN protocol.

Frame layout (all header fields are big-endian 32-bit words)::

    +----------+---------+---------+---------+------------------+----------+----------+
    |  Prefix  |  Seqno  | Command | Length  |     Payload      | Checksum |  Suffix  |
    | 4 bytes  | 4 bytes | 4 bytes | 4 bytes |  variable length |  4 bytes |  4 bytes |
    +----------+---------+---------+---------+------------------+----------+----------+

- Prefix: 0x000055AA
- Length: number of bytes that follow the header (payload + checksum + suffix)
- Checksum: CRC-32 over everything from the prefix to the end of the payload
- Suffix: 0x0000AA55

Replies from a device usually start the payload with a 4-byte return code.
"""

from __future__ import annotations

import json
import struct
import zlib
from dataclasses import dataclass
from typing import Any

from ..errors import ProtocolDecodeError

PREFIX = 0x000055AA
SUFFIX = 0x0000AA55
HEADER_FMT = ">IIII"
HEADER_SIZE = struct.calcsize(HEADER_FMT)
TRAILER_SIZE = 8  # checksum + suffix
MIN_FRAME_SIZE = HEADER_SIZE + TRAILER_SIZE
MAX_LENGTH = 0x10000


@dataclass
class Frame:
    """A parsed protocol frame."""

    command: int
    payload: bytes
    seqno: int = 0
    return_code: int | None = None

    def __repr__(self) -> str:
        return (
            f"Frame(command=0x{self.command:02X}, seqno={self.seqno}, "
            f"return_code={self.return_code}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def crc32(data: bytes) -> int:
    """CRC-32 as used by the device firmware (IEEE polynomial)."""
    return zlib.crc32(data) & 0xFFFFFFFF


def encode_frame(command: int, payload: bytes | dict[str, Any] = b"", seqno: int = 0) -> bytes:
    """Build a complete frame ready to be written to the socket.

    Args:
        command: Command id (see :class:`~.commands.Command`).
        payload: Raw payload bytes, or a dict that is serialized as compact JSON.
        seqno: Sequence number. Each request uses a fresh connection, so a
            constant value is accepted by devices.
    """
    if isinstance(payload, dict):
        payload = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    header = struct.pack(HEADER_FMT, PREFIX, seqno, command, len(payload) + TRAILER_SIZE)
    checksum = crc32(header + payload)
    return header + payload + struct.pack(">II", checksum, SUFFIX)


def parse_header(data: bytes) -> tuple[int, int, int]:
    """Validate a frame header and return ``(seqno, command, length)``.

    ``length`` counts the bytes that follow the header.

    Raises:
        ProtocolDecodeError: If the prefix is wrong or the length field is
            out of range.
    """
    prefix, seqno, command, length = struct.unpack_from(HEADER_FMT, data)
    if prefix != PREFIX:
        raise ProtocolDecodeError(f"Prefix does not match: 0x{prefix:08X}")
    if not TRAILER_SIZE <= length <= MAX_LENGTH:
        raise ProtocolDecodeError(f"Invalid length field: {length}")
    return seqno, command, length


def decode_frame(data: bytes, expect_return_code: bool = False) -> Frame:
    """Parse the first frame contained in ``data``.

    Args:
        data: Received bytes; anything after the first frame is ignored.
        expect_return_code: The frame is a device reply. A leading payload
            word with the top 24 bits clear is split off as
            :attr:`Frame.return_code`. Leave unset for frames built by
            :func:`encode_frame` so the payload comes back unchanged.

    Raises:
        ProtocolDecodeError: If the data is truncated, the magic words are
            wrong, or the checksum does not match.
    """
    if len(data) < MIN_FRAME_SIZE:
        raise ProtocolDecodeError(f"Packet too short. Length: {len(data)}")

    seqno, command, length = parse_header(data)

    end = HEADER_SIZE + length
    if end > len(data):
        raise ProtocolDecodeError(
            f"Frame length {end} exceeds received data ({len(data)} bytes)"
        )

    body_end = end - TRAILER_SIZE
    expected_crc, suffix = struct.unpack_from(">II", data, body_end)
    if suffix != SUFFIX:
        raise ProtocolDecodeError(f"Suffix does not match: 0x{suffix:08X}")

    actual_crc = crc32(data[:body_end])
    if actual_crc != expected_crc:
        raise ProtocolDecodeError(
            f"CRC mismatch: expected 0x{expected_crc:08X}, got 0x{actual_crc:08X}"
        )

    payload = data[HEADER_SIZE:body_end]
    return_code = None
    # Replies put the return code first; JSON and base64 text never start
    # with three zero bytes.
    if expect_return_code and len(payload) >= 4:
        (word,) = struct.unpack_from(">I", payload)
        if not word & 0xFFFFFF00:
            return_code = word
            payload = payload[4:]

    return Frame(command=command, payload=payload, seqno=seqno, return_code=return_code)


def decode_payload(payload: bytes) -> dict[str, Any] | bytes | None:
    """Interpret a frame payload.

    Returns:
        ``None`` for an empty payload, a dict when the payload is a UTF-8
        JSON object, otherwise the raw bytes (ciphertext to be decrypted).
    """
    if not payload:
        return None
    try:
        decoded = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return payload
    if isinstance(decoded, dict):
        return decoded
    return payload
