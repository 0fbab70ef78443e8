"""Device status and control endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tuya_proxy.client import TuyaClient


class DevicesMixin:
    """Methods for reading and switching Tuya devices.

    Each method returns the raw Tuya envelope (``success``, ``code``,
    ``msg``, ``result``).
    """

    def __init__(self, client: TuyaClient) -> None:
        self._client = client

    async def list(self) -> dict[str, Any]:
        """List the devices bound to the authorised user."""
        return await self._client.request("GET", "/v1.0/users/me/devices")

    async def get(self, device_id: str) -> dict[str, Any]:
        """Get full details for a single device."""
        return await self._client.request("GET", f"/v1.0/devices/{device_id}")

    async def get_status(self, device_id: str) -> dict[str, Any]:
        """Get the current data-point status of a device."""
        return await self._client.request(
            "GET", f"/v1.0/iot-03/devices/{device_id}/status"
        )

    async def send_commands(
        self,
        device_id: str,
        commands: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Send control commands to a device.

        ``commands`` is a list of dicts with ``code`` and ``value`` keys, e.g.::

            [{"code": "switch_1", "value": True}]
        """
        return await self._client.request(
            "POST",
            f"/v1.0/devices/{device_id}/commands",
            body={"commands": commands},
        )
