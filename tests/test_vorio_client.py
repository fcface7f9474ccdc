"""Tests for the Vorio Cloud client"""

import asyncio
import json

import httpx
import pytest

from vorio_agent.core.errors import ConnectionError, SyncError, VorioApiError
from vorio_agent.models import AgentCapabilities, AvailableWLAN, Voucher
from vorio_agent.services.vorio_client import VorioClient


def make_client(app_config, handler) -> VorioClient:
    return VorioClient(app_config.vorio, transport=httpx.MockTransport(handler))


def test_requests_carry_agent_token(app_config):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"commands": []})

    asyncio.run(make_client(app_config, handler).get_commands())

    request = seen[0]
    assert str(request.url) == "https://cloud.example.test/api/agent/commands"
    assert request.headers["authorization"] == "Bearer vat_test_token"
    assert request.headers["x-agent-token"] == "vat_test_token"
    assert request.headers["user-agent"].startswith("Vorio-Agent/")


def test_connect_keeps_ids(app_config):
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "connectionId": "c-1", "projectId": "p-1"})

    client = make_client(app_config, handler)
    assert not client.is_connected()

    asyncio.run(client.connect(
        controller_url="https://192.0.2.1:443",
        site_name="default",
        controller_version="8.1.0",
        capabilities=AgentCapabilities(can_list_wlans=True, can_delete_vouchers=True),
        available_wlans=[AvailableWLAN(ssid="Guest", is_guest=True)],
    ))

    assert client.is_connected()
    assert client.connection_id == "c-1"
    assert client.project_id == "p-1"
    assert bodies[0]["controllerUrl"] == "https://192.0.2.1:443"
    assert bodies[0]["capabilities"] == {"canListWLANs": True, "canCreateVouchers": False, "canDeleteVouchers": True}
    assert bodies[0]["availableWLANs"][0]["isGuest"] is True


def test_disconnect_swallows_errors(app_config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    client = make_client(app_config, handler)
    client.connection_id = "c-1"
    asyncio.run(client.disconnect())
    assert not client.is_connected()


@pytest.mark.parametrize("status, check", [
    (401, lambda e: e.is_credential_invalid),
    (429, lambda e: e.is_rate_limited),
    (403, lambda e: "Access denied" in e.message),
    (404, lambda e: e.endpoint == "/api/agent/commands"),
])
def test_error_statuses_are_classified(app_config, status, check):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status)

    with pytest.raises(VorioApiError) as exc_info:
        asyncio.run(make_client(app_config, handler).get_commands())
    assert exc_info.value.status_code == status
    assert check(exc_info.value)


def test_server_error_uses_body_message(app_config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "database unavailable"}, headers={"x-request-id": "req-7"})

    with pytest.raises(VorioApiError) as exc_info:
        asyncio.run(make_client(app_config, handler).heartbeat(status="ok"))
    assert exc_info.value.message == "database unavailable"
    assert exc_info.value.request_id == "req-7"


def test_network_failure_is_connection_error(app_config):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

    with pytest.raises(ConnectionError) as exc_info:
        asyncio.run(make_client(app_config, handler).get_commands())
    assert exc_info.value.error_code == "ECONNREFUSED"


def test_sync_uploads_snapshot(app_config):
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "syncedCount": 1, "projectId": "p-1"})

    voucher = Voucher(id="v1", code="12345", create_time=1700000000, status="VALID_ONE")
    result = asyncio.run(make_client(app_config, handler).sync_vouchers([voucher]))

    assert result.synced_count == 1
    assert bodies[0] == {"vouchers": [{"id": "v1", "code": "12345", "quota": 1, "createTime": 1700000000, "used": 0, "status": "VALID_ONE"}]}


def test_partial_sync_raises(app_config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "syncedCount": 1})

    vouchers = [
        Voucher(id="v1", code="1", create_time=1, status="USED"),
        Voucher(id="v2", code="2", create_time=1, status="VALID_ONE"),
    ]
    with pytest.raises(SyncError) as exc_info:
        asyncio.run(make_client(app_config, handler).sync_vouchers(vouchers))
    assert exc_info.value.total_vouchers == 2
    assert exc_info.value.synced_vouchers == 1


def test_command_lifecycle_requests(app_config):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.content))
        if request.url.path == "/api/agent/commands":
            return httpx.Response(200, json={"commands": [
                {"id": "cmd-1", "type": "delete_voucher", "payload": {"voucherId": "v1"}, "createdAt": "2024-01-01T00:00:00Z"},
                {"id": "cmd-2", "type": "reboot"},
            ]})
        return httpx.Response(200, json={"success": True})

    async def scenario():
        client = make_client(app_config, handler)
        commands = await client.get_commands()
        await client.acknowledge_command("cmd-1")
        await client.complete_command("cmd-1", False, "voucher missing")
        return commands

    commands = asyncio.run(scenario())

    assert [c.id for c in commands] == ["cmd-1", "cmd-2"]
    assert commands[0].payload == {"voucherId": "v1"}
    assert commands[1].command_type is None
    assert seen[1][:2] == ("POST", "/api/agent/commands/cmd-1/ack")
    assert seen[2][:2] == ("POST", "/api/agent/commands/cmd-1/complete")
    assert json.loads(seen[2][2]) == {"success": False, "error": "voucher missing"}


def test_connectivity_accepts_missing_health_endpoint(app_config):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/health"
        return httpx.Response(404)

    assert asyncio.run(make_client(app_config, handler).test_connectivity()) is True


def test_connectivity_rejected_token(app_config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401)

    with pytest.raises(VorioApiError):
        asyncio.run(make_client(app_config, handler).test_connectivity())
