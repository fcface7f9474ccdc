"""
Error taxonomy for the Vorio Agent.

Every failure the agent reports is a VorioAgentError subclass carrying a
machine-readable code and a context dict, so the sync loops can record it
in the agent status and the logger can print a useful hint.
"""

import ssl
import socket
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class NetworkErrorCode(str, Enum):
    """Classified reason for a request that never got a response"""
    REFUSED = "ECONNREFUSED"
    TIMEOUT = "ETIMEDOUT"
    DNS_NOT_FOUND = "ENOTFOUND"
    TLS = "TLS_ERROR"
    UNKNOWN = "UNKNOWN"


class VorioAgentError(Exception):
    """Base class for all agent errors"""

    def __init__(
        self,
        message: str,
        code: str = "AGENT_ERROR",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (for logging)"""
        return {
            "name": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return self.message


class ConfigurationError(VorioAgentError):
    """Invalid or missing configuration; fatal at startup"""

    def __init__(
        self,
        message: str,
        variable_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "CONFIG_ERROR", {**(context or {}), "variableName": variable_name})
        self.variable_name = variable_name


class ControllerError(VorioAgentError):
    """The controller answered but reported a failure"""

    def __init__(
        self,
        message: str,
        controller_type: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            "CONTROLLER_ERROR",
            {**(context or {}), "controllerType": controller_type, "statusCode": status_code},
        )
        self.controller_type = controller_type
        self.status_code = status_code


class AuthenticationError(ControllerError):
    """Credentials rejected (401) or insufficiently privileged (403)"""

    def __init__(
        self,
        message: str,
        controller_type: str,
        auth_method: str = "unknown",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, controller_type, status_code, {**(context or {}), "authMethod": auth_method})
        self.code = "AUTH_ERROR"
        self.auth_method = auth_method


class ConnectionError(ControllerError):
    """Controller or cloud unreachable, no response received"""

    def __init__(
        self,
        message: str,
        controller_type: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            controller_type,
            context={**(context or {}), "host": host, "port": port, "errorCode": error_code},
        )
        self.code = "CONNECTION_ERROR"
        self.host = host
        self.port = port
        self.error_code = error_code


class VorioApiError(VorioAgentError):
    """Cloud API answered with an error status"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            "VORIO_API_ERROR",
            {**(context or {}), "statusCode": status_code, "endpoint": endpoint, "requestId": request_id},
        )
        self.status_code = status_code
        self.endpoint = endpoint
        self.request_id = request_id

    @property
    def is_credential_invalid(self) -> bool:
        return self.status_code == 401

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class SyncError(VorioAgentError):
    """A voucher upload that only partially completed"""

    def __init__(
        self,
        message: str,
        total_vouchers: Optional[int] = None,
        synced_vouchers: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            "SYNC_ERROR",
            {**(context or {}), "totalVouchers": total_vouchers, "syncedVouchers": synced_vouchers},
        )
        self.total_vouchers = total_vouchers
        self.synced_vouchers = synced_vouchers


def classify_network_error(error: BaseException) -> NetworkErrorCode:
    """Map a transport exception (and its cause chain) to a NetworkErrorCode."""
    if isinstance(error, httpx.TimeoutException):
        return NetworkErrorCode.TIMEOUT

    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ssl.SSLError):
            return NetworkErrorCode.TLS
        if isinstance(current, socket.gaierror):
            return NetworkErrorCode.DNS_NOT_FOUND
        if isinstance(current, ConnectionRefusedError):
            return NetworkErrorCode.REFUSED
        if isinstance(current, (socket.timeout, TimeoutError)):
            return NetworkErrorCode.TIMEOUT
        current = current.__cause__ or current.__context__

    text = str(error).lower()
    if "refused" in text or "errno 111" in text or "errno 61" in text:
        return NetworkErrorCode.REFUSED
    if "timed out" in text or "timeout" in text:
        return NetworkErrorCode.TIMEOUT
    if (
        "name or service not known" in text
        or "nodename nor servname" in text
        or "getaddrinfo" in text
        or "name resolution" in text
    ):
        return NetworkErrorCode.DNS_NOT_FOUND
    if "certificate" in text or "ssl" in text or "tls" in text:
        return NetworkErrorCode.TLS
    return NetworkErrorCode.UNKNOWN


def is_connection_error(error: BaseException) -> bool:
    return isinstance(error, ConnectionError)


def is_authentication_error(error: BaseException) -> bool:
    return isinstance(error, AuthenticationError)


def wrap_error(error: object, default_message: str = "An unexpected error occurred") -> VorioAgentError:
    """Coerce anything raised into a VorioAgentError."""
    if isinstance(error, VorioAgentError):
        return error
    if isinstance(error, BaseException):
        return VorioAgentError(str(error) or default_message, "WRAPPED_ERROR", {
            "originalName": error.__class__.__name__,
        })
    if isinstance(error, str):
        return VorioAgentError(error, "WRAPPED_ERROR")
    return VorioAgentError(default_message, "UNKNOWN_ERROR", {"originalError": str(error)})


def get_error_message(error: object) -> str:
    if isinstance(error, BaseException):
        return str(error) or error.__class__.__name__
    if isinstance(error, str):
        return error
    return "An unexpected error occurred"
