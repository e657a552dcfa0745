"""Tests for the MCP tool layer."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from tuya_local_mcp import server
from tuya_local_mcp.device import DeviceIdentity, TuyaDevice
from tuya_local_mcp.errors import DeviceConnectionError
from tuya_local_mcp.protocol.commands import SetByIndex, SetDefault, SetMap

KEY = "0123456789abcdef"


@pytest.fixture(autouse=True)
def reset_device(monkeypatch):
    monkeypatch.setattr(server, "_device", None)


@pytest.fixture
def mock_device(monkeypatch):
    device = MagicMock(spec=TuyaDevice)
    monkeypatch.setattr(server, "_device", device)
    return device


def test_connect_configures_device():
    result = server.connect("bf01", KEY, "10.0.0.7", response_timeout=3)
    assert result == {"configured": True, "device_id": "bf01", "ip": "10.0.0.7", "version": "3.1"}

    device = server._get_device()
    assert device.identity == DeviceIdentity(id="bf01", key=KEY, ip="10.0.0.7")
    assert device.transport.config.response_timeout == 3


def test_connect_rejects_bad_key():
    result = server.connect("bf01", "short", "10.0.0.7")
    assert "error" in result
    assert server._device is None


def test_disconnect():
    server.connect("bf01", KEY, "10.0.0.7")
    assert server.disconnect() == {"disconnected": True}
    assert server._device is None


def test_tools_require_device():
    with pytest.raises(RuntimeError, match="connect"):
        server._get_device()


@pytest.mark.asyncio
async def test_get_status(mock_device):
    mock_device.query = AsyncMock(return_value={"1": True, "2": 5})
    assert await server.get_status() == {"status": {"1": True, "2": 5}}
    mock_device.query.assert_awaited_once_with(schema=False, dps=None)


@pytest.mark.asyncio
async def test_get_status_reports_errors(mock_device):
    mock_device.query = AsyncMock(
        side_effect=DeviceConnectionError("Error communicating with device.", ip="10.0.0.7")
    )
    result = await server.get_status(dps="1")
    assert result["type"] == "DeviceConnectionError"
    assert "Error communicating" in result["error"]


@pytest.mark.asyncio
async def test_set_status_default_dp(mock_device):
    mock_device.set_status = AsyncMock(return_value=True)
    assert await server.set_status(True) == {"status": True}
    mock_device.set_status.assert_awaited_once_with(SetDefault(True))


@pytest.mark.asyncio
async def test_set_status_by_index(mock_device):
    mock_device.set_status = AsyncMock(return_value={"1": True, "2": 50})
    await server.set_status(50, dps="2")
    mock_device.set_status.assert_awaited_once_with(SetByIndex("2", 50))


@pytest.mark.asyncio
async def test_set_dps(mock_device):
    mock_device.set_status = AsyncMock(return_value={"1": False, "3": 10})
    await server.set_dps({"1": False, "3": 10})
    mock_device.set_status.assert_awaited_once_with(SetMap({"1": False, "3": 10}))


@pytest.mark.asyncio
@pytest.mark.parametrize("tool", ["turn_on", "turn_off", "toggle"])
async def test_power_tools(mock_device, tool):
    setattr(mock_device, tool, AsyncMock(return_value=True))
    assert await getattr(server, tool)() == {"status": True}
    getattr(mock_device, tool).assert_awaited_once_with()


def test_device_resource_unconfigured():
    assert server.device_resource() == {"configured": False}


def test_device_resource_hides_key():
    server.connect("bf01", KEY, "10.0.0.7")
    resource = server.device_resource()
    assert resource["device_id"] == "bf01"
    assert resource["port"] == 6668
    assert KEY not in resource.values()
