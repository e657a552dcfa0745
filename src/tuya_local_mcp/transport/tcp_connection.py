"""TCP transport to a Tuya device on port 6668.

Every request opens a fresh connection, writes one frame and waits for
one reply frame. Connect and response phases have separate timeouts.
Transient failures are retried with exponential backoff.

Usage::

    transport = RetryingTransport(TransportConfig(response_timeout=5))
    frame = await transport.send("192.168.1.40", build_query(device_id))
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..errors import (
    ConnectTimeoutError,
    DeviceCommunicationError,
    DeviceConnectionError,
    MissingAddressError,
    ResponseTimeoutError,
)
from ..protocol.framing import HEADER_SIZE, Frame, decode_frame, parse_header

logger = logging.getLogger(__name__)

DEFAULT_PORT = 6668
CONNECT_TIMEOUT = 1.0
RESPONSE_TIMEOUT = 10.0
MAX_RETRIES = 4
BACKOFF_FACTOR = 1.5
MIN_BACKOFF = 10.0

COMMUNICATION_ERROR = (
    "Error communicating with device. Make sure nothing else is trying "
    "to control it or connected to it."
)


@dataclass
class TransportConfig:
    """Timeouts and retry policy, all durations in seconds."""

    port: int = DEFAULT_PORT
    connect_timeout: float = CONNECT_TIMEOUT
    response_timeout: float = RESPONSE_TIMEOUT
    max_retries: int = MAX_RETRIES
    backoff_factor: float = BACKOFF_FACTOR
    min_backoff: float = MIN_BACKOFF
    max_backoff: float = math.inf

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.connect_timeout <= 0 or self.response_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor}")

    def backoff_delay(self, retry: int) -> float:
        """Wait before the given retry (0 for the first retry)."""
        return min(self.min_backoff * self.backoff_factor**retry, self.max_backoff)


class RetryingTransport:
    """Sends one frame per call and returns the decoded reply frame.

    The transport holds no connection state, so a single instance may
    serve concurrent calls.
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or TransportConfig()
        self._sleep = sleep

    async def send(
        self,
        ip: str | None,
        frame: bytes,
        response_timeout: float | None = None,
    ) -> Frame:
        """Deliver ``frame`` to the device at ``ip`` and return its reply.

        Args:
            ip: Device address.
            frame: Encoded request frame.
            response_timeout: Overrides the configured response timeout.

        Raises:
            MissingAddressError: If ``ip`` is empty. No connection is attempted.
            ValueError: If ``response_timeout`` is not positive.
            DeviceCommunicationError: The last network error once all
                attempts are exhausted.
            ProtocolDecodeError: If the reply frame is malformed. Not retried.
        """
        if not ip:
            raise MissingAddressError()

        if response_timeout is None:
            timeout = self.config.response_timeout
        elif response_timeout <= 0:
            raise ValueError(f"response_timeout must be positive, got {response_timeout}")
        else:
            timeout = response_timeout
        attempts = self.config.max_retries + 1

        for attempt in range(1, attempts + 1):
            logger.debug("Socket attempt %d/%d to %s", attempt, attempts, ip)
            try:
                return await self._send_once(ip, frame, timeout, attempt)
            except DeviceCommunicationError as e:
                if attempt == attempts:
                    logger.error("Giving up on %s after %d attempts: %s", ip, attempts, e)
                    raise
                delay = self.config.backoff_delay(attempt - 1)
                logger.warning(
                    "Attempt %d to %s failed: %s, retrying in %.1fs",
                    attempt,
                    ip,
                    e,
                    delay,
                )
                await self._sleep(delay)

        raise AssertionError("unreachable")

    async def _send_once(self, ip: str, frame: bytes, timeout: float, attempt: int) -> Frame:
        """One connect -> write -> await-reply cycle."""
        port = self.config.port
        logger.debug("Sending this data: %s", frame.hex())

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(ip, port),
                timeout=self.config.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConnectTimeoutError(
                f"{COMMUNICATION_ERROR} (connect to {ip}:{port} timed out)",
                ip=ip,
                attempt=attempt,
            ) from e
        except OSError as e:
            raise DeviceConnectionError(
                f"{COMMUNICATION_ERROR} ({e})", ip=ip, attempt=attempt
            ) from e

        logger.debug("Socket connected to %s:%d", ip, port)
        try:
            writer.write(frame)
            try:
                data = await asyncio.wait_for(self._read_frame(reader), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise ResponseTimeoutError(
                    f"Timeout waiting for response from {ip} after {timeout}s",
                    ip=ip,
                    attempt=attempt,
                ) from e
            except asyncio.IncompleteReadError as e:
                raise DeviceConnectionError(
                    f"{COMMUNICATION_ERROR} (connection closed by {ip} after "
                    f"{len(e.partial)} bytes of a response)",
                    ip=ip,
                    attempt=attempt,
                ) from e
            except OSError as e:
                raise DeviceConnectionError(
                    f"{COMMUNICATION_ERROR} ({e})", ip=ip, attempt=attempt
                ) from e
        finally:
            await self._close(writer)

        logger.debug("Received data back: %s", data.hex())
        return decode_frame(data, expect_return_code=True)

    @staticmethod
    async def _read_frame(reader: asyncio.StreamReader) -> bytes:
        """Read exactly one frame, however the device splits its writes."""
        header = await reader.readexactly(HEADER_SIZE)
        _, _, length = parse_header(header)
        return header + await reader.readexactly(length)

    @staticmethod
    async def _close(writer: asyncio.StreamWriter) -> None:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Error closing socket: %s", e)
        logger.debug("Connection closed")
