"""Tests for the error taxonomy and network error classification"""

import socket
import ssl

import httpx

from vorio_agent.core.errors import (
    AuthenticationError,
    ConnectionError,
    ControllerError,
    NetworkErrorCode,
    VorioAgentError,
    classify_network_error,
    get_error_message,
    is_authentication_error,
    is_connection_error,
    wrap_error,
)


class TestHierarchy:
    def test_authentication_error_is_controller_error(self):
        error = AuthenticationError("bad key", "unifi", "api_key", status_code=401)
        assert isinstance(error, ControllerError)
        assert isinstance(error, VorioAgentError)
        assert error.code == "AUTH_ERROR"
        assert is_authentication_error(error)
        assert not is_connection_error(error)

    def test_connection_error_context(self):
        error = ConnectionError("refused", "unifi", host="10.0.0.1", port=443, error_code="ECONNREFUSED")
        data = error.to_dict()

        assert data["name"] == "ConnectionError"
        assert data["code"] == "CONNECTION_ERROR"
        assert data["context"]["host"] == "10.0.0.1"
        assert data["context"]["errorCode"] == "ECONNREFUSED"
        assert str(error) == "refused"


class TestClassification:
    def _request(self):
        return httpx.Request("GET", "https://10.0.0.1/")

    def test_timeout(self):
        assert classify_network_error(httpx.ReadTimeout("read", request=self._request())) == NetworkErrorCode.TIMEOUT

    def test_refused_from_cause(self):
        try:
            try:
                raise ConnectionRefusedError(111, "Connection refused")
            except ConnectionRefusedError as cause:
                raise httpx.ConnectError("connect failed") from cause
        except httpx.ConnectError as error:
            assert classify_network_error(error) == NetworkErrorCode.REFUSED

    def test_dns_from_cause(self):
        try:
            try:
                raise socket.gaierror(-2, "Name or service not known")
            except socket.gaierror as cause:
                raise httpx.ConnectError("connect failed") from cause
        except httpx.ConnectError as error:
            assert classify_network_error(error) == NetworkErrorCode.DNS_NOT_FOUND

    def test_tls_from_cause(self):
        try:
            try:
                raise ssl.SSLCertVerificationError("certificate verify failed")
            except ssl.SSLError as cause:
                raise httpx.ConnectError("connect failed") from cause
        except httpx.ConnectError as error:
            assert classify_network_error(error) == NetworkErrorCode.TLS

    def test_text_fallback(self):
        assert classify_network_error(httpx.ConnectError("[Errno 111] Connection refused")) == NetworkErrorCode.REFUSED
        assert classify_network_error(httpx.ConnectError("[Errno -2] Name or service not known")) == NetworkErrorCode.DNS_NOT_FOUND
        assert classify_network_error(httpx.ConnectError("boom")) == NetworkErrorCode.UNKNOWN


def test_wrap_error():
    original = AuthenticationError("bad key", "unifi")
    assert wrap_error(original) is original

    wrapped = wrap_error(ValueError("bad value"))
    assert wrapped.message == "bad value"
    assert wrapped.context["originalName"] == "ValueError"

    assert wrap_error("plain text").message == "plain text"
    assert wrap_error(42).code == "UNKNOWN_ERROR"


def test_get_error_message():
    assert get_error_message(ValueError("x")) == "x"
    assert get_error_message(RuntimeError()) == "RuntimeError"
    assert get_error_message("text") == "text"
    assert get_error_message(None) == "An unexpected error occurred"
