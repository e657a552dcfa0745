"""High-level device session.

:class:`TuyaDevice` composes a device identity, a payload cipher and a
retrying transport. ``query`` and ``update`` are the protocol operations;
the remaining verbs (``toggle``, ``turn_on``, ``set_color`` ...) combine
them and return the device's new status.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from .errors import DeviceCommandError, MissingDeviceIdError
from .protocol.cipher import DEFAULT_VERSION, TuyaCipher
from .protocol.commands import (
    DEFAULT_DP,
    Command,
    DpsValue,
    SetDefault,
    SetMap,
    UpdateRequest,
    build_control,
    build_query,
    coerce_update,
    request_dps,
)
from .protocol.parser import parse_response, shape_status
from .transport.tcp_connection import RetryingTransport, TransportConfig

logger = logging.getLogger(__name__)

ColorConverter = Callable[[str], Mapping[str, DpsValue]]
IdResolver = Callable[["DeviceIdentity"], Awaitable[str]]


@dataclass(frozen=True)
class DeviceIdentity:
    """Connection details for one device."""

    id: str
    key: str
    ip: str = ""
    version: str = DEFAULT_VERSION


class TuyaDevice:
    """A session with a single device.

    Usage::

        device = TuyaDevice(DeviceIdentity(id="bf...", key="0123456789abcdef", ip="10.0.0.7"))
        await device.turn_on()
        power = await device.query(dps=1)
    """

    def __init__(
        self,
        identity: DeviceIdentity,
        config: TransportConfig | None = None,
        transport: RetryingTransport | None = None,
        color_converter: ColorConverter | None = None,
        id_resolver: IdResolver | None = None,
    ) -> None:
        self._identity = identity
        self.cipher = TuyaCipher(identity.key, identity.version)
        self.transport = transport or RetryingTransport(config)
        self._color_converter = color_converter
        self._id_resolver = id_resolver

    @property
    def identity(self) -> DeviceIdentity:
        return self._identity

    def __repr__(self) -> str:
        return f"TuyaDevice(id={self._identity.id!r}, ip={self._identity.ip!r})"

    # ─── PROTOCOL OPERATIONS ──────────────────────────────────────────

    async def query(
        self,
        schema: bool = False,
        dps: str | int | None = None,
        response_timeout: float | None = None,
    ) -> Any:
        """Read the device status.

        Args:
            schema: Return the whole decoded reply instead of data points.
            dps: Return only this data point's value.
            response_timeout: Overrides the transport's response timeout.

        Returns:
            See :func:`~.protocol.parser.shape_status`.
        """
        device_id = self._identity.id
        logger.debug("Query payload for %s", device_id)
        frame = await self.transport.send(
            self._identity.ip, build_query(device_id), response_timeout
        )
        data = parse_response(frame, self.cipher)
        logger.debug("Status of %s: %s", device_id, data)
        return shape_status(data, schema=schema, dps=dps)

    async def update(
        self,
        request: UpdateRequest | Mapping[str, Any],
        response_timeout: float | None = None,
    ) -> bool:
        """Write data points to the device.

        Args:
            request: A :class:`SetByIndex`, :class:`SetDefault` or
                :class:`SetMap`, or the equivalent option dict.
            response_timeout: Overrides the transport's response timeout.

        Returns:
            ``True`` once the device acknowledged the command. The ack
            carries no state; call :meth:`query` to read it back.

        Raises:
            DeviceCommandError: If the device answered with a non-zero
                return code.
        """
        dps = request_dps(coerce_update(request))
        logger.debug("Control dps for %s: %s", self._identity.id, dps)
        frame = await self.transport.send(
            self._identity.ip,
            build_control(self.cipher, self._identity.id, dps),
            response_timeout,
        )
        if frame.return_code:
            raise DeviceCommandError(Command.CONTROL, frame.return_code)
        return True

    # ─── COMPOUND VERBS ───────────────────────────────────────────────

    async def resolve_id(self) -> str:
        """Return the device id, resolving it once if it is not known yet."""
        if self._identity.id:
            return self._identity.id
        if self._id_resolver is None:
            raise MissingDeviceIdError(
                f"Device at {self._identity.ip or '(no address)'} has no id "
                "and no resolver is configured"
            )
        device_id = await self._id_resolver(self._identity)
        if not device_id:
            raise MissingDeviceIdError(
                f"Could not resolve the id of device at {self._identity.ip}"
            )
        self._identity = dataclasses.replace(self._identity, id=device_id)
        logger.info("Resolved device id %s at %s", device_id, self._identity.ip)
        return device_id

    async def get_status(self) -> Any:
        status = await self.query()
        logger.debug("Current status: %s", status)
        return status

    async def set_status(self, request: UpdateRequest | Mapping[str, Any]) -> Any:
        """Apply ``request`` and return the status read back afterwards."""
        await self.update(request)
        status = await self.query()
        logger.debug("New status: %s", status)
        return status

    async def toggle(self) -> Any:
        """Invert data point "1" and return the new status."""
        await self.resolve_id()
        status = await self.query(dps=DEFAULT_DP)
        return await self.set_status(SetDefault(not status))

    async def turn_on(self) -> Any:
        await self.resolve_id()
        await self.query()
        return await self.set_status(SetDefault(True))

    async def turn_off(self) -> Any:
        await self.resolve_id()
        await self.query()
        return await self.set_status(SetDefault(False))

    async def onoff(self, state: str) -> Any:
        """Switch on or off from a string (``"on"``/``"off"``, any case)."""
        state = state.lower()
        logger.debug("onoff: %s", state)
        if state == "on":
            return await self.turn_on()
        if state == "off":
            return await self.turn_off()
        raise ValueError(f"State must be 'on' or 'off', got {state!r}")

    async def set_color(self, hex_color: str) -> Any:
        """Set a color given as hex (``"#ff8800"``).

        The data points are produced by the ``color_converter`` passed to
        the constructor.
        """
        if self._color_converter is None:
            raise RuntimeError("No color converter configured for this device")
        dps = self._color_converter(hex_color)
        await self.resolve_id()
        await self.query()
        return await self.set_status(SetMap(dict(dps)))
