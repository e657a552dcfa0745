"""Command constants and payload builders.

A query is sent as plaintext JSON. A control request is JSON that gets
encrypted and signed by :class:`~.cipher.TuyaCipher` before framing.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Mapping, Union

from .cipher import TuyaCipher
from .framing import encode_frame

DEFAULT_DP = "1"

DpsValue = Union[bool, int, float, str]


class Command(IntEnum):
    """Command ids carried in the frame header."""

    CONTROL = 0x07
    QUERY = 0x0A


@dataclass(frozen=True)
class SetByIndex:
    """Set a single data point by its index."""

    index: str | int
    value: DpsValue


@dataclass(frozen=True)
class SetDefault:
    """Set the conventional data point ``"1"`` (usually power)."""

    value: DpsValue


@dataclass(frozen=True)
class SetMap:
    """Set several data points at once."""

    dps: Mapping[str, DpsValue] = field(default_factory=dict)


UpdateRequest = Union[SetByIndex, SetDefault, SetMap]


def coerce_update(options: UpdateRequest | Mapping[str, Any]) -> UpdateRequest:
    """Turn a legacy option dict into an :data:`UpdateRequest`.

    Accepted shapes are ``{"dps": index, "set": value}``, ``{"set": value}``
    and a raw data point map such as ``{"1": True, "2": 50}``.
    """
    if isinstance(options, (SetByIndex, SetDefault, SetMap)):
        return options
    if "dps" in options or "set" in options:
        if "set" not in options:
            raise ValueError("An update with 'dps' also needs a 'set' value")
        if options.get("dps") is None:
            return SetDefault(options["set"])
        return SetByIndex(options["dps"], options["set"])
    return SetMap(dict(options))


def request_dps(request: UpdateRequest) -> dict[str, DpsValue]:
    """The data point map an update request writes."""
    if isinstance(request, SetByIndex):
        return {str(request.index): request.value}
    if isinstance(request, SetDefault):
        return {DEFAULT_DP: request.value}
    if isinstance(request, SetMap):
        return {str(k): v for k, v in request.dps.items()}
    raise TypeError(f"Unsupported update request: {request!r}")


def build_query_payload(device_id: str) -> dict[str, str]:
    return {"gwId": device_id, "devId": device_id}


def build_control_payload(
    device_id: str,
    dps: Mapping[str, DpsValue],
    timestamp: int | None = None,
) -> dict[str, Any]:
    """Build the control payload.

    Args:
        device_id: Device id.
        dps: Data points to write.
        timestamp: Unix time in seconds; defaults to now.
    """
    if timestamp is None:
        timestamp = int(time.time())
    return {"devId": device_id, "uid": "", "t": str(timestamp), "dps": dict(dps)}


def build_query(device_id: str) -> bytes:
    """Build a complete QUERY frame."""
    return encode_frame(Command.QUERY, build_query_payload(device_id))


def build_control(
    cipher: TuyaCipher,
    device_id: str,
    dps: Mapping[str, DpsValue],
    timestamp: int | None = None,
) -> bytes:
    """Build a complete CONTROL frame with an encrypted, signed payload."""
    payload = build_control_payload(device_id, dps, timestamp)
    plaintext = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return encode_frame(Command.CONTROL, cipher.envelope(plaintext))
