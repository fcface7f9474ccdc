"""Service container - builds and owns the agent's components"""

import logging
from typing import Optional

import httpx

from ..adapters import create_adapter
from ..adapters.base import ControllerAdapter
from ..config import AppConfig
from ..services.vorio_client import VorioClient
from ..sync.sync_service import SyncService

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    One adapter, one cloud client and one sync service per process.

    Components are built on first access and shared from then on.
    reset() drops them so a test can start from a clean slate.
    """

    def __init__(
        self,
        config: AppConfig,
        controller_transport: Optional[httpx.AsyncBaseTransport] = None,
        cloud_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._controller_transport = controller_transport
        self._cloud_transport = cloud_transport
        self._adapter: Optional[ControllerAdapter] = None
        self._vorio_client: Optional[VorioClient] = None
        self._sync_service: Optional[SyncService] = None

    @property
    def adapter(self) -> ControllerAdapter:
        if self._adapter is None:
            logger.info(f"Initializing controller adapter: {self.config.controller_type}")
            self._adapter = create_adapter(self.config, transport=self._controller_transport)
        return self._adapter

    @property
    def vorio_client(self) -> VorioClient:
        if self._vorio_client is None:
            self._vorio_client = VorioClient(self.config.vorio, transport=self._cloud_transport)
        return self._vorio_client

    @property
    def sync_service(self) -> SyncService:
        if self._sync_service is None:
            self._sync_service = SyncService(self.adapter, self.vorio_client, self.config)
        return self._sync_service

    def has_adapter(self) -> bool:
        return self._adapter is not None

    def reset(self):
        """Forget every component (test hook). Does not close them."""
        logger.debug("Resetting service container")
        self._adapter = None
        self._vorio_client = None
        self._sync_service = None

    async def aclose(self):
        """Close the HTTP clients of whatever was built."""
        if self._adapter is not None:
            await self._adapter.aclose()
        if self._vorio_client is not None:
            await self._vorio_client.aclose()
