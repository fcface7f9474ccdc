"""Tests for the service container"""

import asyncio

import httpx

from vorio_agent.adapters.unifi import UniFiAdapter
from vorio_agent.core.container import ServiceContainer
from vorio_agent.services import VorioClient


def test_components_are_built_once(app_config):
    container = ServiceContainer(app_config)
    assert not container.has_adapter()

    service = container.sync_service

    assert container.has_adapter()
    assert isinstance(container.adapter, UniFiAdapter)
    assert isinstance(container.vorio_client, VorioClient)
    assert container.sync_service is service
    assert service.adapter is container.adapter
    assert service.vorio_client is container.vorio_client

    asyncio.run(container.aclose())


def test_reset_drops_components(app_config):
    container = ServiceContainer(app_config)
    first = container.vorio_client

    container.reset()

    assert not container.has_adapter()
    assert container.vorio_client is not first


def test_transports_are_injected(app_config):
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(404)

    container = ServiceContainer(app_config, cloud_transport=httpx.MockTransport(handler))

    assert asyncio.run(container.vorio_client.test_connectivity()) is True
    assert paths == ["/health"]
