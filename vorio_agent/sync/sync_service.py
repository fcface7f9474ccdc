"""
Sync Service - orchestrates the controller adapter and Vorio Cloud.

Startup:
- Login to the controller
- Fetch controller info, capabilities and WLANs
- Register with Vorio Cloud
- One full voucher sync (must succeed)
- Start the command poll loop and the sync loop

Running:
- Command loop (every 10s): fetch -> ack -> execute -> complete
- Sync loop (every 2min): fetch vouchers -> upload snapshot -> heartbeat
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from ..adapters.base import ControllerAdapter
from ..config import AppConfig
from ..core.errors import get_error_message
from ..models import AgentStatus, Command
from ..utils.logger import log_error
from .command_poller import CommandPoller, setup_command_handlers

if TYPE_CHECKING:
    from ..services.vorio_client import VorioClient

logger = logging.getLogger(__name__)


class ServiceState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class SyncService:
    """
    Keeps the cloud's voucher snapshot in step with the controller.

    Both loops tick on their own interval and never overlap with
    themselves. stop() only prevents new ticks: requests already in
    flight run to completion or time out.
    """

    def __init__(self, adapter: ControllerAdapter, vorio_client: "VorioClient", config: AppConfig):
        self.adapter = adapter
        self.vorio_client = vorio_client
        self.config = config

        self.state = ServiceState.STOPPED
        self.status = AgentStatus()

        self.command_poller = CommandPoller(vorio_client)
        setup_command_handlers(self.command_poller, self, adapter)

        self._command_task: Optional[asyncio.Task] = None
        self._sync_task: Optional[asyncio.Task] = None
        self._stop_requested = asyncio.Event()
        self._stopped = asyncio.Event()

    # ============ Lifecycle ============

    async def start(self):
        """Run the startup sequence and launch both loops.

        Any failure leaves the service stopped with the error recorded,
        and is re-raised.
        """
        if self.state != ServiceState.STOPPED:
            logger.warning(f"Service is already {self.state.value}")
            return

        logger.info("Starting sync service...")
        self.state = ServiceState.STARTING
        self._stop_requested = asyncio.Event()
        self._stopped = asyncio.Event()

        try:
            logger.info(f"Using {self.adapter.get_type()} adapter")
            await self.adapter.login()
            if self._startup_abandoned():
                await self.adapter.logout()
                return

            controller_info = await self.adapter.get_controller_info()
            logger.info(f"Controller info: type={controller_info.type}, version={controller_info.version}, name={controller_info.name}")

            capabilities = self.adapter.get_capabilities()
            available_wlans = None
            if capabilities.can_list_wlans:
                available_wlans = await self.adapter.get_available_wlans()

            if self._startup_abandoned():
                await self.adapter.logout()
                return

            await self.vorio_client.connect(
                controller_url=self.get_controller_url(),
                site_name=self.get_site_name(),
                controller_version=controller_info.version,
                capabilities=capabilities,
                available_wlans=available_wlans,
            )
            if self._startup_abandoned():
                # stop() may have disconnected before this registration landed
                await self.vorio_client.disconnect()
                await self.adapter.logout()
                return
            self.status.connected = True

            # Known-good baseline before the loops start
            await self.perform_sync()
        except Exception as e:
            logger.error("Failed to start sync service")
            log_error(logger, e)
            self.status.connected = False
            self.status.last_error = get_error_message(e)
            self.state = ServiceState.STOPPED
            self._stopped.set()
            raise

        if self._startup_abandoned():
            return

        self.state = ServiceState.RUNNING
        self._command_task = asyncio.create_task(self._command_poll_loop(), name="vorio-command-poll")
        self._sync_task = asyncio.create_task(self._sync_loop(), name="vorio-sync")
        logger.info("Sync service started successfully")

    def _startup_abandoned(self) -> bool:
        """True once stop() has run during start()."""
        if self.state == ServiceState.STARTING:
            return False
        logger.info("Startup abandoned, service was stopped")
        return True

    async def stop(self):
        """Stop both loops, disconnect from the cloud and log out of the controller.

        Idempotent, and safe to call from inside a command handler.
        """
        if self.state in (ServiceState.STOPPED, ServiceState.STOPPING):
            return

        logger.info("Stopping sync service...")
        self.state = ServiceState.STOPPING
        self._stop_requested.set()

        try:
            await self.vorio_client.disconnect()
        except Exception as e:
            logger.debug(f"Cloud disconnect failed: {e}")

        try:
            await self.adapter.logout()
        except Exception as e:
            logger.debug(f"Controller logout failed: {e}")

        self.status.connected = False
        self.state = ServiceState.STOPPED
        self._stopped.set()
        logger.info("Sync service stopped")

    async def wait_until_stopped(self):
        """Wait for stop(), then for any loop tick still in progress."""
        if self.state != ServiceState.STOPPED:
            await self._stopped.wait()

        current = asyncio.current_task()
        pending: List[asyncio.Task] = [
            task for task in (self._command_task, self._sync_task)
            if task is not None and task is not current and not task.done()
        ]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._command_task = None
        self._sync_task = None

    # ============ Loops ============

    async def _wait_for_next_tick(self, interval_s: float) -> bool:
        """Sleep one interval. False if the service stopped meanwhile."""
        try:
            await asyncio.wait_for(self._stop_requested.wait(), timeout=interval_s)
        except asyncio.TimeoutError:
            pass
        return self.state == ServiceState.RUNNING

    async def _command_poll_loop(self):
        interval_s = self.config.sync.command_poll_interval_s
        logger.info(f"Starting command poll loop (every {interval_s:g}s)")

        while await self._wait_for_next_tick(interval_s):
            try:
                await self.process_commands()
            except Exception as e:
                logger.error("Command poll error")
                log_error(logger, e)

    async def _sync_loop(self):
        interval_s = self.config.sync.interval_s
        logger.info(f"Starting sync loop (every {interval_s:g}s)")

        while await self._wait_for_next_tick(interval_s):
            try:
                await self.sync_cycle()
            except Exception as e:
                logger.error("Sync cycle error")
                log_error(logger, e)
                self.status.last_error = get_error_message(e)
                await self._report_error_heartbeat()

    async def _report_error_heartbeat(self):
        try:
            await self.vorio_client.heartbeat(
                voucher_count=self.status.voucher_count,
                status="error",
                error=self.status.last_error,
            )
        except Exception as e:
            logger.debug(f"Error heartbeat failed: {e}")

    # ============ Work ============

    async def sync_cycle(self):
        """One sync loop tick: full sync, then an ok heartbeat."""
        await self.perform_sync()
        await self.vorio_client.heartbeat(voucher_count=self.status.voucher_count, status="ok")

    async def perform_sync(self) -> int:
        """Fetch every voucher from the controller and upload the snapshot."""
        logger.info("Starting voucher sync...")
        vouchers = await self.adapter.get_vouchers()
        result = await self.vorio_client.sync_vouchers(vouchers)

        self.status.voucher_count = result.synced_count
        self.status.last_sync = datetime.now()
        self.status.last_error = None
        logger.info(f"Voucher sync completed: {result.synced_count} vouchers")
        return result.synced_count

    async def process_commands(self) -> int:
        return await self.command_poller.poll()

    async def process_command_batch(self, commands: List[Command]):
        await self.command_poller.process_batch(commands)

    # ============ Status ============

    def get_controller_url(self) -> str:
        if self.config.controller_type == "unifi":
            return self.config.unifi_base_url
        if self.config.controller_type == "mikrotik":
            return self.config.mikrotik_base_url
        return "unknown"

    def get_site_name(self) -> str:
        if self.config.controller_type == "unifi":
            return self.config.unifi.site
        return "default"

    def get_status(self) -> AgentStatus:
        return self.status.copy()

    def is_running(self) -> bool:
        return self.state == ServiceState.RUNNING
