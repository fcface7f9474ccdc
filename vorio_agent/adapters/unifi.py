"""
UniFi controller adapter.

Supports both UniFi API generations:
- Integration API (Network 8.0+): stateless, X-API-KEY header, paginated
- Legacy API: username/password session with cookies and a CSRF token

Raw vouchers from either generation go through map_voucher(), which
prefers the integration field name and falls back to the legacy one.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import httpx

from ..config import UniFiSettings
from ..core.errors import (
    AuthenticationError,
    ConnectionError,
    ControllerError,
    NetworkErrorCode,
    classify_network_error,
)
from ..models import AgentCapabilities, AvailableWLAN, ControllerInfo, SecurityMode, Voucher, VoucherStatus
from ..utils.logger import log_connectivity_result
from .base import ControllerAdapter, retry_on_session_expiry

logger = logging.getLogger(__name__)

CONTROLLER_TYPE = "unifi"
REQUEST_TIMEOUT = 30.0
CONNECTIVITY_TIMEOUT = 10.0
API_BASE_PATH = "/proxy/network/integration/v1"
VOUCHER_PAGE_SIZE = 1000

# Login statuses meaning "endpoint not present" rather than "bad credentials"
LOGIN_ENDPOINT_MISSING_STATUSES = (404, 405, 501)

# canonical field -> raw field names, integration API first
VOUCHER_FIELDS = {
    "id": ("id", "_id"),
    "create_time": ("createdAt", "create_time"),
    "start_time": ("activatedAt", "start_time"),
    "duration": ("timeLimitMinutes", "duration"),
    "quota": ("authorizedGuestLimit", "quota"),
    "used": ("authorizedGuestCount", "used"),
    "qos_rate_max_up": ("txRateLimitKbps", "qos_rate_max_up"),
    "qos_rate_max_down": ("rxRateLimitKbps", "qos_rate_max_down"),
    "note": ("name", "note"),
}

WLAN_FIELDS = {
    "ssid": ("ssid", "name"),
    "enabled": ("isEnabled", "enabled"),
    "is_guest": ("isGuest", "is_guest"),
    "security": ("securityMode", "security", "wlanType"),
}


def _pick(raw: Dict[str, Any], keys: Iterable[str]) -> Any:
    """First value present (not None, not empty string) among keys."""
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_unix_seconds(value: Any) -> Optional[int]:
    """Accept unix seconds or an ISO-8601 timestamp."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def derive_voucher_status(raw: Dict[str, Any], quota: int, used: int) -> str:
    if raw.get("expired") is True:
        return VoucherStatus.EXPIRED.value
    if raw.get("status"):
        return str(raw["status"])
    if quota == 1 and used >= 1:
        return VoucherStatus.USED.value
    if quota == 1:
        return VoucherStatus.VALID_ONE.value
    return VoucherStatus.VALID_MULTI.value


def map_voucher(raw: Dict[str, Any], now: Optional[int] = None) -> Voucher:
    """Map one raw UniFi voucher (either API generation) to a Voucher.

    Pure: the same input and `now` always give the same result. `now`
    only fills in a missing creation time.
    """
    code = str(raw.get("code") or "")

    create_time = _to_unix_seconds(_pick(raw, VOUCHER_FIELDS["create_time"]))
    if create_time is None:
        create_time = int(time.time()) if now is None else now

    quota = _to_int(_pick(raw, VOUCHER_FIELDS["quota"]))
    if quota is None:
        quota = 1
    used = _to_int(_pick(raw, VOUCHER_FIELDS["used"])) or 0

    note = _pick(raw, VOUCHER_FIELDS["note"])

    return Voucher(
        id=str(_pick(raw, VOUCHER_FIELDS["id"]) or code),
        code=code,
        duration=_to_int(_pick(raw, VOUCHER_FIELDS["duration"])),
        quota=quota,
        create_time=create_time,
        start_time=_to_unix_seconds(_pick(raw, VOUCHER_FIELDS["start_time"])),
        used=used,
        status=derive_voucher_status(raw, quota, used),
        qos_rate_max_up=_to_int(_pick(raw, VOUCHER_FIELDS["qos_rate_max_up"])),
        qos_rate_max_down=_to_int(_pick(raw, VOUCHER_FIELDS["qos_rate_max_down"])),
        note=str(note) if note is not None else None,
    )


def map_security_mode(raw: Dict[str, Any]) -> str:
    mode = _pick(raw, WLAN_FIELDS["security"])
    if not mode:
        return SecurityMode.OPEN.value
    normalized = str(mode).lower()
    if normalized == SecurityMode.OPEN.value:
        return SecurityMode.OPEN.value
    for candidate in (SecurityMode.WPA3, SecurityMode.WPA2, SecurityMode.WPA, SecurityMode.WEP):
        if candidate.value in normalized:
            return candidate.value
    return str(mode)


def map_wlan(raw: Dict[str, Any]) -> AvailableWLAN:
    enabled = _pick(raw, WLAN_FIELDS["enabled"])
    is_guest = _pick(raw, WLAN_FIELDS["is_guest"])
    return AvailableWLAN(
        ssid=str(_pick(raw, WLAN_FIELDS["ssid"]) or "Unknown"),
        name=raw.get("name"),
        enabled=True if enabled is None else bool(enabled),
        security=map_security_mode(raw),
        is_guest=bool(is_guest) if is_guest is not None else False,
    )


class UniFiAdapter(ControllerAdapter):
    """Adapter for the Ubiquiti UniFi Network application"""

    def __init__(self, settings: UniFiSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.base_url = f"https://{settings.host}:{settings.port}"
        self.use_api_key = settings.uses_api_key

        self._logged_in = False
        self._cookies: Dict[str, str] = {}
        self._csrf_token: Optional[str] = None
        self._site_id: Optional[str] = None
        self._controller_version: Optional[str] = None

        self.client = self._create_http_client(transport)

        auth_method = "api_key" if self.use_api_key else "credentials"
        logger.debug(f"UniFi adapter initialized (auth: {auth_method}, host: {settings.host}:{settings.port}, site: {settings.site})")

    def _create_http_client(self, transport: Optional[httpx.AsyncBaseTransport]) -> httpx.AsyncClient:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        event_hooks = {}
        if self.use_api_key:
            headers["X-API-KEY"] = self.settings.api_key
        else:
            event_hooks = {
                "request": [self._attach_session],
                "response": [self._capture_session],
            }

        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=REQUEST_TIMEOUT,
            verify=not self.settings.skip_ssl_verify,
            follow_redirects=False,
            event_hooks=event_hooks,
            transport=transport,
        )

    # ============ Session handling ============

    async def _attach_session(self, request: httpx.Request):
        if self._cookies:
            request.headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in self._cookies.items())
        if self._csrf_token:
            request.headers["X-Csrf-Token"] = self._csrf_token

    async def _capture_session(self, response: httpx.Response):
        for header in response.headers.get_list("set-cookie"):
            name, sep, value = header.split(";", 1)[0].partition("=")
            if sep and name.strip():
                self._cookies[name.strip()] = value.strip()
        csrf_token = response.headers.get("x-csrf-token")
        if csrf_token:
            self._csrf_token = csrf_token

    # ============ HTTP plumbing ============

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Send a request; network failures become ConnectionError, 4xx/5xx become ControllerError."""
        kwargs: Dict[str, Any] = {"params": params, "json": json}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise self._connection_error(e) from e

        if response.status_code >= 400:
            raise ControllerError(
                self._response_message(response),
                CONTROLLER_TYPE,
                status_code=response.status_code,
                context={"method": method, "path": path},
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {}

    def _response_message(self, response: httpx.Response) -> str:
        body = self._json(response)
        if isinstance(body, dict):
            meta = body.get("meta")
            if isinstance(meta, dict) and meta.get("msg"):
                return str(meta["msg"])
            for key in ("message", "error"):
                if body.get(key):
                    return str(body[key])
        return f"HTTP {response.status_code}"

    def _connection_error(self, error: httpx.RequestError) -> ConnectionError:
        code = classify_network_error(error)
        return ConnectionError(
            self._connection_error_message(code, error),
            CONTROLLER_TYPE,
            host=self.settings.host,
            port=self.settings.port,
            error_code=code.value,
        )

    def _connection_error_message(self, code: NetworkErrorCode, error: BaseException) -> str:
        host, port = self.settings.host, self.settings.port
        if code == NetworkErrorCode.REFUSED:
            return (f"Connection refused. The UniFi Controller at {host}:{port} is not accepting connections. "
                    "Please verify the controller is running and the host/port are correct.")
        if code == NetworkErrorCode.TIMEOUT:
            return (f"Connection timed out. The UniFi Controller at {host}:{port} did not respond. "
                    "Please check network connectivity and firewall settings.")
        if code == NetworkErrorCode.DNS_NOT_FOUND:
            return (f"Host not found. Could not resolve hostname '{host}'. "
                    "Please check the hostname is spelled correctly.")
        if code == NetworkErrorCode.TLS:
            return (f"SSL/TLS certificate error when connecting to {host}. "
                    "Set UNIFI_SKIP_SSL_VERIFY=true if using a self-signed certificate.")
        return f"Could not connect to UniFi Controller at {host}:{port}. Error: {error}"

    # ============ Authentication ============

    async def test_connectivity(self) -> bool:
        """Probe the controller; any HTTP answer counts as reachable."""
        logger.info(f"Testing connectivity to controller {self.settings.host}:{self.settings.port}...")
        try:
            await self.client.get("/", timeout=CONNECTIVITY_TIMEOUT)
        except httpx.RequestError as e:
            error = self._connection_error(e)
            log_connectivity_result(False, "UniFi Controller", self.settings.host, error)
            raise error from e
        log_connectivity_result(True, "UniFi Controller", self.settings.host)
        return True

    async def login(self) -> None:
        logger.info(f"Connecting to UniFi Controller at {self.settings.host}:{self.settings.port}...")
        await self.test_connectivity()

        if self.use_api_key:
            await self._login_with_api_key()
        else:
            await self._login_with_credentials()

    async def _login_with_api_key(self):
        """Validate the key by listing sites and resolve the site to operate on."""
        logger.info("Authenticating with API key...")
        try:
            response = await self._request("GET", f"{API_BASE_PATH}/sites")
        except ConnectionError:
            raise
        except ControllerError as e:
            raise self._auth_error(e, "api_key") from e

        body = self._json(response)
        sites = body.get("data", body) if isinstance(body, dict) else body
        if not isinstance(sites, list) or not sites:
            raise AuthenticationError(
                "No sites found. Please check API key permissions.",
                CONTROLLER_TYPE,
                "api_key",
            )

        target = self.settings.site or "default"
        site = next(
            (
                s for s in sites
                if isinstance(s, dict) and target in (s.get("name"), s.get("desc"), s.get("id"), s.get("internalReference"))
            ),
            sites[0],
        )
        self._site_id = site.get("id")
        self._logged_in = True
        logger.info(f"Authentication successful (site: {site.get('name') or site.get('desc')}, id: {self._site_id})")

    async def _login_with_credentials(self):
        """Session login: UniFi OS endpoint first, then the legacy endpoint.

        Anything but a 2xx from /api/auth/login (a redirect, a missing
        endpoint, or a classic controller's 401 LoginRequired) moves on to
        /api/login. If the legacy endpoint does not exist either, the
        UniFi OS rejection is the one reported.
        """
        logger.info("Authenticating with username/password...")
        credentials = {"username": self.settings.username, "password": self.settings.password}

        modern_error: Optional[ControllerError] = None
        try:
            response = await self._request("POST", "/api/auth/login", json={**credentials, "remember": True})
        except ConnectionError:
            raise
        except ControllerError as e:
            modern_error = e
        else:
            if response.is_success:
                self._logged_in = True
                logger.info("Authentication successful (UniFi OS)")
                return
            modern_error = ControllerError(
                f"Unexpected HTTP {response.status_code} from UniFi OS login",
                CONTROLLER_TYPE,
                status_code=response.status_code,
            )
        logger.debug(f"UniFi OS login failed (HTTP {modern_error.status_code}), trying legacy endpoint...")

        try:
            response = await self._request("POST", "/api/login", json=credentials)
        except ConnectionError:
            raise
        except ControllerError as e:
            legacy_missing = e.status_code in LOGIN_ENDPOINT_MISSING_STATUSES
            modern_missing = modern_error.status_code in LOGIN_ENDPOINT_MISSING_STATUSES
            if legacy_missing and not modern_missing:
                raise self._auth_error(modern_error, "credentials") from modern_error
            raise self._auth_error(e, "credentials") from e

        if not response.is_success:
            raise AuthenticationError(
                f"Authentication failed: unexpected HTTP {response.status_code} from legacy login",
                CONTROLLER_TYPE,
                "credentials",
                status_code=response.status_code,
            )

        body = self._json(response)
        meta = body.get("meta") if isinstance(body, dict) else None
        if isinstance(meta, dict) and meta.get("rc") not in (None, "ok"):
            raise AuthenticationError(
                f"Authentication failed: {meta.get('msg') or 'Login rejected'}",
                CONTROLLER_TYPE,
                "credentials",
            )
        self._logged_in = True
        logger.info("Authentication successful (Legacy)")

    @staticmethod
    def _auth_error(error: ControllerError, method: str) -> AuthenticationError:
        if error.status_code == 401:
            message = "API key is invalid or expired" if method == "api_key" else "Username or password is incorrect"
        elif error.status_code == 403:
            message = ("API key does not have required permissions" if method == "api_key"
                       else "Account does not have required permissions")
        else:
            message = f"Authentication failed: {error.message}"
        return AuthenticationError(message, CONTROLLER_TYPE, method, status_code=error.status_code)

    async def logout(self) -> None:
        if self._logged_in and not self.use_api_key:
            try:
                await self._request("POST", "/api/logout")
                logger.debug("Logged out from controller")
            except Exception as e:
                logger.debug(f"Logout request failed: {e}")

        was_logged_in = self._logged_in
        self._logged_in = False
        self._cookies.clear()
        self._csrf_token = None
        self.client.cookies.clear()
        if was_logged_in:
            logger.info("Disconnected from UniFi Controller")

    def is_authenticated(self) -> bool:
        return self._logged_in

    def invalidate_session(self) -> None:
        self._logged_in = False

    # ============ Metadata ============

    def get_type(self) -> str:
        return CONTROLLER_TYPE

    def get_capabilities(self) -> AgentCapabilities:
        return AgentCapabilities(
            can_list_wlans=True,
            can_create_vouchers=False,
            can_delete_vouchers=True,
        )

    def get_controller_version(self) -> Optional[str]:
        return self._controller_version

    @property
    def site_id(self) -> Optional[str]:
        return self._site_id

    async def get_controller_info(self) -> ControllerInfo:
        try:
            if self.use_api_key:
                return await self._get_integration_info()

            response = await self._request("GET", f"/api/s/{self.settings.site}/stat/sysinfo")
            body = self._json(response)
            entries = body.get("data") if isinstance(body, dict) else None
            if entries:
                info = entries[0]
                self._controller_version = info.get("version")
                return ControllerInfo(
                    version=self._controller_version or "unknown",
                    name=info.get("hostname") or info.get("name"),
                    type=CONTROLLER_TYPE,
                )
        except Exception as e:
            logger.warning(f"Failed to get controller info: {e}")

        return ControllerInfo(version="unknown", type=CONTROLLER_TYPE)

    async def _get_integration_info(self) -> ControllerInfo:
        try:
            response = await self._request("GET", f"{API_BASE_PATH}/info")
        except ControllerError as e:
            logger.debug(f"Integration info endpoint unavailable: {e}")
            return ControllerInfo(version="API Key Auth", type=CONTROLLER_TYPE)

        info = self._json(response)
        if not isinstance(info, dict) or not info:
            return ControllerInfo(version="API Key Auth", type=CONTROLLER_TYPE)

        self._controller_version = (
            info.get("applicationVersion") or info.get("version") or info.get("application_version")
        )
        return ControllerInfo(
            version=self._controller_version or "unknown",
            name=info.get("hostname") or info.get("name"),
            type=CONTROLLER_TYPE,
        )

    # ============ Vouchers ============

    async def get_vouchers(self) -> List[Voucher]:
        raw_vouchers = await self._fetch_raw_vouchers()
        now = int(time.time())
        return [map_voucher(raw, now=now) for raw in raw_vouchers]

    @retry_on_session_expiry
    async def _fetch_raw_vouchers(self) -> List[Dict[str, Any]]:
        logger.info("Fetching vouchers...")
        if self.use_api_key:
            vouchers = await self._fetch_vouchers_integration_api()
        else:
            vouchers = await self._fetch_vouchers_legacy_api()
        logger.info(f"Vouchers fetched: {len(vouchers)}")
        return vouchers

    async def _fetch_vouchers_integration_api(self) -> List[Dict[str, Any]]:
        """Page through the integration API until totalCount or an empty/short page."""
        vouchers: List[Dict[str, Any]] = []
        offset = 0

        while True:
            response = await self._request(
                "GET",
                f"{API_BASE_PATH}/sites/{self._site_id}/hotspot/vouchers",
                params={"offset": offset, "limit": VOUCHER_PAGE_SIZE},
            )
            body = self._json(response)
            if not isinstance(body, dict):
                break

            page = body.get("data") or []
            vouchers.extend(page)
            offset += len(page)

            total = _to_int(body.get("totalCount"))
            if not page:
                break
            if total is not None:
                if offset >= total:
                    break
            elif len(page) < VOUCHER_PAGE_SIZE:
                break

            logger.debug(f"Fetching more vouchers ({len(vouchers)} of {total if total is not None else '?'})")

        return vouchers

    async def _fetch_vouchers_legacy_api(self) -> List[Dict[str, Any]]:
        response = await self._request("GET", f"/api/s/{self.settings.site}/stat/voucher")
        body = self._json(response)
        meta = body.get("meta") if isinstance(body, dict) else None
        if not isinstance(meta, dict) or meta.get("rc") != "ok":
            message = meta.get("msg") if isinstance(meta, dict) else None
            raise ControllerError(message or "Failed to fetch vouchers", CONTROLLER_TYPE)
        return body.get("data") or []

    @retry_on_session_expiry
    async def delete_voucher(self, voucher_id: str) -> None:
        logger.info(f"Deleting voucher {voucher_id}...")
        if self.use_api_key:
            response = await self._request(
                "DELETE",
                f"{API_BASE_PATH}/sites/{self._site_id}/hotspot/vouchers/{voucher_id}",
            )
            if response.status_code not in (200, 204):
                raise ControllerError(
                    f"Failed to delete voucher: HTTP {response.status_code}",
                    CONTROLLER_TYPE,
                    status_code=response.status_code,
                )
        else:
            response = await self._request(
                "POST",
                f"/api/s/{self.settings.site}/cmd/hotspot",
                json={"cmd": "delete-voucher", "_id": voucher_id},
            )
            body = self._json(response)
            meta = body.get("meta") if isinstance(body, dict) else None
            if not isinstance(meta, dict) or meta.get("rc") != "ok":
                message = meta.get("msg") if isinstance(meta, dict) else None
                raise ControllerError(message or "Failed to delete voucher", CONTROLLER_TYPE)
        logger.info(f"Voucher {voucher_id} deleted")

    # ============ WLANs ============

    async def get_available_wlans(self) -> List[AvailableWLAN]:
        logger.info("Fetching available WLANs...")
        try:
            raw_wlans = await self._fetch_wlans()
            wlans = [map_wlan(raw) for raw in raw_wlans if isinstance(raw, dict)]
        except Exception as e:
            logger.warning(f"Failed to fetch WLANs: {e}")
            return []

        enabled = [wlan for wlan in wlans if wlan.enabled]
        guest = sum(1 for wlan in enabled if wlan.is_guest)
        logger.info(f"WLANs fetched (total: {len(wlans)}, enabled: {len(enabled)}, guest: {guest})")
        return enabled

    @retry_on_session_expiry
    async def _fetch_wlans(self) -> List[Dict[str, Any]]:
        site = self.settings.site
        try:
            response = await self._request("GET", f"/proxy/network/api/s/{site}/rest/wlanconf")
            body = self._json(response)
            if isinstance(body, dict) and body.get("data"):
                return body["data"]
        except ControllerError as e:
            if self.is_session_expired(e):
                raise
            logger.debug(f"Proxy WLAN endpoint failed, trying direct path: {e}")

        response = await self._request("GET", f"/api/s/{site}/rest/wlanconf")
        body = self._json(response)
        return (body.get("data") if isinstance(body, dict) else None) or []

    async def aclose(self) -> None:
        await self.client.aclose()
