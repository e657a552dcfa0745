"""MCP server entry point for local Tuya device control.

Exposes tools and a resource via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .device import DeviceIdentity, TuyaDevice
from .errors import TuyaError
from .protocol.cipher import DEFAULT_VERSION
from .protocol.commands import SetByIndex, SetDefault, SetMap
from .transport.tcp_connection import RESPONSE_TIMEOUT, TransportConfig

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "tuya-local",
    instructions="MCP server for controlling Tuya smart plugs and bulbs over the local network",
)

# Global device state
_device: TuyaDevice | None = None


def _get_device() -> TuyaDevice:
    """Get the configured device, raising if none is set."""
    if _device is None:
        raise RuntimeError(
            "No device configured. Use the 'connect' tool first."
        )
    return _device


def _error(e: Exception) -> dict[str, Any]:
    logger.warning("Device call failed: %s", e)
    return {"error": str(e), "type": type(e).__name__}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    device_id: str,
    local_key: str,
    ip: str,
    version: str = DEFAULT_VERSION,
    response_timeout: float = RESPONSE_TIMEOUT,
) -> dict[str, Any]:
    """Configure the device to control.

    No socket is kept open; every later call opens its own connection.

    Args:
        device_id: Tuya device id (gwId/devId).
        local_key: 16-character local encryption key.
        ip: Device IP address on the LAN.
        version: Protocol version (default "3.1").
        response_timeout: Seconds to wait for a reply per attempt.
    """
    global _device
    try:
        identity = DeviceIdentity(id=device_id, key=local_key, ip=ip, version=version)
        config = TransportConfig(response_timeout=response_timeout)
        _device = TuyaDevice(identity, config=config)
    except ValueError as e:
        return _error(e)

    logger.info("Configured device %s at %s", device_id, ip)
    return {"configured": True, "device_id": device_id, "ip": ip, "version": version}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Forget the configured device."""
    global _device
    _device = None
    return {"disconnected": True}


# ─── STATUS TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
async def get_status(dps: str | None = None, schema: bool = False) -> dict[str, Any]:
    """Read the device status.

    Args:
        dps: Optional data point index to read (e.g. "1").
        schema: Return the complete reply, including device id and timestamp.
    """
    device = _get_device()
    try:
        status = await device.query(schema=schema, dps=dps)
    except TuyaError as e:
        return _error(e)
    return {"status": status}


@mcp.tool()
async def set_status(value: bool | int | float | str, dps: str | None = None) -> dict[str, Any]:
    """Set one data point and return the new status.

    Args:
        value: New value.
        dps: Data point index; defaults to "1" (power on most devices).
    """
    device = _get_device()
    request = SetDefault(value) if dps is None else SetByIndex(dps, value)
    try:
        status = await device.set_status(request)
    except TuyaError as e:
        return _error(e)
    return {"status": status}


@mcp.tool()
async def set_dps(dps: dict[str, bool | int | float | str]) -> dict[str, Any]:
    """Set several data points at once and return the new status.

    Args:
        dps: Map of data point index to value, e.g. {"1": true, "2": 50}.
    """
    device = _get_device()
    try:
        status = await device.set_status(SetMap(dps))
    except TuyaError as e:
        return _error(e)
    return {"status": status}


# ─── POWER TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
async def turn_on() -> dict[str, Any]:
    """Switch the device on."""
    try:
        status = await _get_device().turn_on()
    except TuyaError as e:
        return _error(e)
    return {"status": status}


@mcp.tool()
async def turn_off() -> dict[str, Any]:
    """Switch the device off."""
    try:
        status = await _get_device().turn_off()
    except TuyaError as e:
        return _error(e)
    return {"status": status}


@mcp.tool()
async def toggle() -> dict[str, Any]:
    """Invert the device's power state."""
    try:
        status = await _get_device().toggle()
    except TuyaError as e:
        return _error(e)
    return {"status": status}


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("tuya://device")
def device_resource() -> dict[str, Any]:
    """The configured device (without its key)."""
    if _device is None:
        return {"configured": False}
    identity = _device.identity
    config = _device.transport.config
    return {
        "configured": True,
        "device_id": identity.id,
        "ip": identity.ip,
        "version": identity.version,
        "port": config.port,
        "response_timeout": config.response_timeout,
    }


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
