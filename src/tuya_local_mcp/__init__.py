"""Local-network control of Tuya smart-home devices."""

from .device import DeviceIdentity, TuyaDevice
from .errors import (
    CipherError,
    ConnectTimeoutError,
    DeviceCommandError,
    DeviceCommunicationError,
    DeviceConnectionError,
    MissingAddressError,
    MissingDeviceIdError,
    ProtocolDecodeError,
    ResponseTimeoutError,
    TuyaError,
)
from .protocol.commands import SetByIndex, SetDefault, SetMap
from .transport.tcp_connection import RetryingTransport, TransportConfig
