"""Response parsing for device replies."""

from __future__ import annotations

import json
import logging
from typing import Any

from ..errors import ProtocolDecodeError
from .cipher import TuyaCipher
from .commands import DEFAULT_DP
from .framing import Frame, decode_payload

logger = logging.getLogger(__name__)


def parse_response(frame: Frame, cipher: TuyaCipher) -> dict[str, Any] | None:
    """Decode a reply frame's payload into a dict.

    Plain JSON is returned as is. Anything else is treated as an encrypted
    payload and decrypted with ``cipher``.

    Returns:
        The decoded object, or ``None`` when the device sent no payload
        (control acknowledgements).

    Raises:
        CipherError: If decryption fails.
        ProtocolDecodeError: If the decrypted text is not a JSON object.
    """
    decoded = decode_payload(frame.payload)
    if decoded is None or isinstance(decoded, dict):
        return decoded

    logger.debug("Payload is encrypted, decrypting %d bytes", len(decoded))
    plaintext = cipher.decrypt(decoded)
    try:
        result = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolDecodeError(f"Decrypted payload is not JSON: {plaintext!r}") from e
    if not isinstance(result, dict):
        raise ProtocolDecodeError(f"Decrypted payload is not an object: {result!r}")
    return result


def shape_status(
    data: dict[str, Any] | None,
    schema: bool = False,
    dps: str | int | None = None,
) -> Any:
    """Reduce a status reply to what the caller asked for.

    - ``schema``: the whole decoded object.
    - ``dps``: the value of that data point.
    - a map holding only data point ``"1"``: that value.
    - otherwise the whole data point map.
    """
    if schema:
        return data
    if data is None:
        return None

    points = data.get("dps")
    if points is None:
        return None
    if dps is not None:
        return points.get(str(dps))
    if len(points) == 1 and DEFAULT_DP in points:
        return points[DEFAULT_DP]
    return points
