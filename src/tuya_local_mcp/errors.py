"""Exception hierarchy for device communication.

Network-class failures derive from :class:`DeviceCommunicationError` and
are retried by the transport. Decode and cipher failures mean the device
replied with something unusable; retrying will not help, so they are
raised straight through.
"""

from __future__ import annotations


class TuyaError(Exception):
    """Base class for all errors raised by this package."""


class MissingAddressError(TuyaError, ValueError):
    """No IP address configured for the device."""

    def __init__(self, device_id: str = "") -> None:
        self.device_id = device_id
        suffix = f" {device_id}" if device_id else ""
        super().__init__(f"Device{suffix} is missing an IP address.")


class MissingDeviceIdError(TuyaError, ValueError):
    """The device id is unknown and cannot be resolved."""


class DeviceCommunicationError(TuyaError):
    """A transient failure talking to the device.

    Attributes:
        ip: Address of the device.
        attempt: 1-based attempt number the failure happened on.
    """

    def __init__(self, message: str, ip: str = "", attempt: int = 0) -> None:
        self.ip = ip
        self.attempt = attempt
        super().__init__(message)


class DeviceConnectionError(DeviceCommunicationError):
    """TCP connect or socket failure."""


class ConnectTimeoutError(DeviceConnectionError):
    """The connect phase exceeded its timeout."""


class ResponseTimeoutError(DeviceCommunicationError):
    """Connected, but no data arrived before the response timeout."""


class ProtocolDecodeError(TuyaError):
    """A reply frame is malformed (magic, length or checksum mismatch)."""


class CipherError(TuyaError):
    """Decryption of a device payload failed."""


class DeviceCommandError(TuyaError):
    """The device answered a command with a non-zero return code."""

    def __init__(self, command: int, return_code: int) -> None:
        self.command = command
        self.return_code = return_code
        super().__init__(
            f"Device rejected command 0x{command:02X} "
            f"(return code {return_code})"
        )
