"""Named proxy actions mapped onto Tuya API calls.

:class:`ActionRouter` is the single entry point used by the HTTP layer and
the CLI. It never raises for configuration, authentication or network
failures; those come back as ``{"success": False, ...}`` payloads.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from tuya_proxy.auth import AuthFetchError, ConfigurationError
from tuya_proxy.client import TuyaClient, TuyaNetworkError

logger = logging.getLogger(__name__)

_COMMANDS = ("on", "off")
DEFAULT_SWITCH_CODE = "switch_1"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ActionRouter:
    """Dispatch ``action`` query parameters to :class:`TuyaClient` calls."""

    def __init__(self, client: TuyaClient) -> None:
        self.client = client

    async def dispatch(self, params: Mapping[str, Any]) -> Any:
        """Run the action named by ``params["action"]`` (default ``test``).

        Most actions return a dict with a ``success`` flag. ``status``
        returns the bare scaled reading on success.
        """
        if not self.client.config.has_credentials:
            logger.error("Missing Tuya credentials (TUYA_CLIENT_ID, TUYA_CLIENT_SECRET)")
            return {"success": False, "message": "Server error: Missing Tuya credentials."}

        action = params.get("action") or "test"
        try:
            if action == "test":
                return {
                    "success": True,
                    "message": "Tuya module working",
                    "timestamp": _now_iso(),
                }
            if action == "request" and params.get("path"):
                return await self._request(params)
            if action == "status" and params.get("id"):
                return await self._status(params["id"])
            if action == "devices":
                return await self._devices()
            if action == "state" and params.get("id"):
                return await self._state(params["id"])
            if action == "control" and params.get("id") and params.get("command"):
                return await self._control(
                    params["id"], params["command"], params.get("code")
                )
        except (ConfigurationError, AuthFetchError, TuyaNetworkError) as exc:
            logger.error("Error processing Tuya action %r: %s", action, exc)
            return {
                "success": False,
                "error": str(exc),
                "tuya_response": getattr(exc, "response", None),
                "message": "Internal error processing Tuya request.",
            }

        logger.warning("Unknown action or missing required parameters: %r", action)
        return {
            "success": False,
            "message": "Unknown action or missing required parameters.",
            "action": action,
        }

    # -- Actions -------------------------------------------------------------

    async def _request(self, params: Mapping[str, Any]) -> dict[str, Any]:
        method = (params.get("method") or "GET").upper()
        path = params["path"]
        if not path.startswith("/"):
            path = f"/{path}"

        data = None
        if params.get("data"):
            try:
                data = json.loads(params["data"])
            except ValueError as exc:
                logger.error("Invalid JSON in data parameter: %s", exc)
                return {
                    "success": False,
                    "message": "Invalid JSON format in data parameter",
                    "error": str(exc),
                }

        result = await self.client.request(method, path, body=data)
        return {
            "success": result.get("success"),
            "path": path,
            "method": method,
            "result": result,
            "message": f"Request {method} {path} processed.",
        }

    async def _status(self, device_id: str) -> float | dict[str, Any]:
        logger.info("Requesting status for device %s", device_id)
        result = await self.client.devices.get_status(device_id)

        value = _first_value(result)
        if value is not None:
            return value / 10

        logger.warning("Unexpected status data format from Tuya API: %s", result)
        return {
            "success": False,
            "message": "Failed to parse device status data",
            "tuya_response": result,
        }

    async def _devices(self) -> dict[str, Any]:
        logger.info("Requesting device list")
        result = await self.client.devices.list()
        ok = bool(result.get("success"))
        return {
            "success": ok,
            "devices": result.get("result") or [],
            "message": (
                "Tuya device list retrieved"
                if ok
                else f"Error getting device list: {result.get('msg') or 'Unknown error'}"
            ),
            "tuya_code": result.get("code"),
            "tuya_msg": result.get("msg"),
        }

    async def _state(self, device_id: str) -> dict[str, Any]:
        logger.info("Requesting state for device %s", device_id)
        result = await self.client.devices.get(device_id)
        ok = bool(result.get("success"))
        return {
            "success": ok,
            "state": result.get("result") or None,
            "message": (
                f"State for device {device_id}"
                if ok
                else f"Error getting state: {result.get('msg') or 'Unknown error'}"
            ),
            "tuya_code": result.get("code"),
            "tuya_msg": result.get("msg"),
        }

    async def _control(
        self, device_id: str, command: str, code: str | None
    ) -> dict[str, Any]:
        command = command.lower()
        if command not in _COMMANDS:
            return {
                "success": False,
                "message": 'Invalid command. Only "on" or "off" are supported.',
            }

        code = code or DEFAULT_SWITCH_CODE
        logger.info("Sending command %s (code: %s) to device %s", command, code, device_id)
        result = await self.client.devices.send_commands(
            device_id, [{"code": code, "value": command == "on"}]
        )
        ok = bool(result.get("success"))
        return {
            "success": ok,
            "result": result.get("result"),
            "message": (
                f"Command {command} (code: {code}) successfully sent to device {device_id}"
                if ok
                else f"Error sending command to device {device_id}: "
                f"{result.get('msg') or 'Unknown error'}"
            ),
            "tuya_code": result.get("code"),
            "tuya_msg": result.get("msg"),
        }


def _first_value(envelope: dict[str, Any]) -> float | None:
    """Numeric ``value`` of the first status entry, or ``None`` if absent."""
    if not envelope.get("success"):
        return None
    result = envelope.get("result")
    if not isinstance(result, list) or not result or not isinstance(result[0], dict):
        return None
    value = result[0].get("value")
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(parsed):
        return None
    return parsed
