"""
Vorio Cloud client - agent-side API of the control plane.

Every request carries the static agent token. The client never retries:
status classification is reported through VorioApiError and the sync
service decides what to do next.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import AGENT_VERSION, VorioSettings
from ..core.errors import ConnectionError, SyncError, VorioApiError, classify_network_error
from ..models import (
    AgentCapabilities,
    AvailableWLAN,
    Command,
    CommandsResponse,
    ConnectResponse,
    SyncResponse,
    Voucher,
)
from ..utils.logger import format_error_for_user, log_connectivity_result

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0
CONNECTIVITY_TIMEOUT = 10.0

_STATUS_MESSAGES = {
    401: "Authentication failed. Please check your VORIO_AGENT_TOKEN.",
    403: "Access denied. The agent token may not have the required permissions.",
    404: "API endpoint not found. Please check the VORIO_API_URL.",
    429: "Rate limit exceeded. Please reduce sync frequency.",
}


class VorioClient:
    """HTTP client for the Vorio Cloud agent API"""

    def __init__(self, settings: VorioSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.connection_id: Optional[str] = None
        self.project_id: Optional[str] = None
        self.client = httpx.AsyncClient(
            base_url=settings.api_url,
            timeout=REQUEST_TIMEOUT,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {settings.agent_token}",
                "X-Agent-Token": settings.agent_token,
                "User-Agent": f"Vorio-Agent/{AGENT_VERSION}",
            },
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        kwargs: Dict[str, Any] = {"json": json}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            code = classify_network_error(e)
            error = ConnectionError(
                "Could not connect to Vorio Cloud. Please check your network connection.",
                "vorio",
                host=self.settings.api_url,
                error_code=code.value,
            )
            formatted = format_error_for_user(error)
            logger.error(f"No response received from Vorio API: {formatted.message}")
            raise error from e

        if response.status_code >= 400:
            raise self._api_error(response, path)
        return response

    def _api_error(self, response: httpx.Response, path: str) -> VorioApiError:
        status = response.status_code
        request_id = response.headers.get("x-request-id")

        message = _STATUS_MESSAGES.get(status)
        if status == 401:
            logger.error("Authentication failed - check your agent token")
        elif status == 403:
            logger.error("Access denied - agent token may not have required permissions")
        elif status == 404:
            logger.error(f"Resource not found: {path}")
        elif status == 429:
            logger.error("Rate limit exceeded")
        else:
            message = self._body_message(response) or f"HTTP {status}"
            logger.error(f"API error ({status}): {message} [{path}]")

        return VorioApiError(message, status_code=status, endpoint=path, request_id=request_id)

    @staticmethod
    def _json(response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise VorioApiError("Invalid JSON in API response", status_code=response.status_code, endpoint=path) from e

    @staticmethod
    def _body_message(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return response.text or None
        if isinstance(body, dict):
            return body.get("error") or body.get("message")
        return None

    async def test_connectivity(self) -> bool:
        logger.info("Testing connectivity to Vorio Cloud...")
        try:
            await self._request("GET", "/health", timeout=CONNECTIVITY_TIMEOUT)
        except VorioApiError as e:
            # Reachable, just no health endpoint
            if e.status_code != 404:
                log_connectivity_result(False, "Vorio Cloud API", self.settings.api_url, e)
                raise
        except ConnectionError as e:
            log_connectivity_result(False, "Vorio Cloud API", self.settings.api_url, e)
            raise
        log_connectivity_result(True, "Vorio Cloud API", self.settings.api_url)
        return True

    async def connect(
        self,
        controller_url: str,
        site_name: str,
        controller_version: Optional[str] = None,
        capabilities: Optional[AgentCapabilities] = None,
        available_wlans: Optional[List[AvailableWLAN]] = None,
    ) -> ConnectResponse:
        """Register this agent; keeps the connection and project ids."""
        logger.info("Connecting to Vorio Cloud...")
        payload: Dict[str, Any] = {
            "controllerUrl": controller_url,
            "controllerVersion": controller_version,
            "siteName": site_name,
        }
        if capabilities is not None:
            payload["capabilities"] = capabilities.to_wire()
        if available_wlans is not None:
            payload["availableWLANs"] = [wlan.to_wire() for wlan in available_wlans]

        response = await self._request("POST", "/api/agent/connect", json=payload)
        result = ConnectResponse.model_validate(self._json(response, "/api/agent/connect"))
        self.connection_id = result.connection_id
        self.project_id = result.project_id
        logger.info(f"Connected to Vorio Cloud (connection: {self.connection_id}, project: {self.project_id})")
        return result

    async def disconnect(self):
        logger.info("Disconnecting from Vorio Cloud...")
        try:
            await self._request("POST", "/api/agent/disconnect")
            logger.info("Disconnected from Vorio Cloud")
        except Exception as e:
            logger.warning(f"Failed to disconnect gracefully: {e}")
        self.connection_id = None
        self.project_id = None

    async def heartbeat(self, voucher_count: Optional[int] = None, status: Optional[str] = None, error: Optional[str] = None):
        payload = {
            key: value
            for key, value in (("voucherCount", voucher_count), ("status", status), ("error", error))
            if value is not None
        }
        await self._request("POST", "/api/agent/heartbeat", json=payload)
        logger.debug(f"Heartbeat sent (status: {status})")

    async def update_wlan_list(self, wlans: List[AvailableWLAN]):
        logger.info(f"Updating WLAN list ({len(wlans)} WLANs)")
        await self._request("POST", "/api/agent/wlan-list", json={"wlans": [wlan.to_wire() for wlan in wlans]})

    async def update_capabilities(self, capabilities: AgentCapabilities):
        logger.info("Updating capabilities")
        await self._request("POST", "/api/agent/capabilities", json={"capabilities": capabilities.to_wire()})

    async def sync_vouchers(self, vouchers: List[Voucher]) -> SyncResponse:
        """Upload the full voucher snapshot; the cloud replaces its copy."""
        logger.info(f"Syncing {len(vouchers)} vouchers to Vorio Cloud")
        response = await self._request(
            "POST",
            "/api/agent/sync",
            json={"vouchers": [voucher.to_wire() for voucher in vouchers]},
        )
        result = SyncResponse.model_validate(self._json(response, "/api/agent/sync"))
        if not result.success:
            raise SyncError(
                f"Voucher sync incomplete: {result.synced_count} of {len(vouchers)} accepted",
                total_vouchers=len(vouchers),
                synced_vouchers=result.synced_count,
            )
        logger.info(f"Vouchers synced successfully: {result.synced_count}")
        return result

    async def get_commands(self) -> List[Command]:
        response = await self._request("GET", "/api/agent/commands")
        return CommandsResponse.model_validate(self._json(response, "/api/agent/commands")).commands

    async def acknowledge_command(self, command_id: str):
        logger.debug(f"Acknowledging command {command_id}")
        await self._request("POST", f"/api/agent/commands/{command_id}/ack")

    async def complete_command(self, command_id: str, success: bool, error: Optional[str] = None):
        logger.debug(f"Completing command {command_id} (success: {success})")
        payload: Dict[str, Any] = {"success": success}
        if error is not None:
            payload["error"] = error
        await self._request("POST", f"/api/agent/commands/{command_id}/complete", json=payload)

    def is_connected(self) -> bool:
        return self.connection_id is not None

    async def aclose(self):
        await self.client.aclose()
