"""
Command Poller - executes commands fetched from Vorio Cloud.

Command flow:
1. Cloud queues a command for this agent
2. Agent fetches pending commands every poll interval
3. Each command is acknowledged, executed, then completed (success or failure)

A failing command is reported and the batch continues. A terminal
command (disconnect) is acknowledged but never completed, and ends the batch.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from ..adapters.base import ControllerAdapter
from ..core.errors import get_error_message
from ..models import Command, CommandType

if TYPE_CHECKING:
    from ..services.vorio_client import VorioClient
    from .sync_service import SyncService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Registration:
    handler: Callable
    terminal: bool = False


class CommandPoller:
    """Dispatches cloud commands to registered handlers"""

    def __init__(self, vorio_client: "VorioClient"):
        self.vorio_client = vorio_client
        self._handlers: Dict[CommandType, _Registration] = {}

    def register_handler(self, command_type: CommandType, handler: Callable, terminal: bool = False):
        """Register a handler for a command type.

        Terminal handlers tear the agent down: their command is not
        completed and the rest of the batch is left for re-delivery.
        """
        self._handlers[command_type] = _Registration(handler, terminal)
        logger.debug(f"Registered handler for {command_type.value}")

    async def poll(self) -> int:
        """Fetch pending commands and process them in order. Returns how many were fetched."""
        logger.debug("Checking for pending commands...")
        commands = await self.vorio_client.get_commands()
        if not commands:
            return 0

        logger.info(f"Processing {len(commands)} command(s)")
        await self.process_batch(commands)
        return len(commands)

    async def process_batch(self, commands: List[Command]):
        for command in commands:
            if not await self._process_command(command):
                break

    async def _process_command(self, command: Command) -> bool:
        """Acknowledge, execute and complete one command. False ends the batch."""
        logger.info(f"Processing command {command.type} ({command.id})")

        try:
            await self.vorio_client.acknowledge_command(command.id)
        except Exception as e:
            # Not acknowledged, so the cloud will deliver it again
            logger.error(f"Failed to acknowledge command {command.id}: {e}")
            return True

        success = True
        error_message: Optional[str] = None
        try:
            command_type = command.command_type
            registration = self._handlers.get(command_type) if command_type is not None else None
            if registration is None:
                logger.warning(f"Unknown command type: {command.type}")
            else:
                result = registration.handler(command.payload or {})
                if asyncio.iscoroutine(result):
                    await result
                if registration.terminal:
                    logger.info(f"Command {command.id} ({command.type}) ended the session, not completing it")
                    return False
            logger.info(f"Command {command.id} executed successfully")
        except Exception as e:
            logger.error(f"Command {command.id} ({command.type}) failed: {e}")
            success = False
            error_message = get_error_message(e)

        try:
            await self.vorio_client.complete_command(command.id, success, error_message)
        except Exception as e:
            logger.error(f"Failed to complete command {command.id}: {e}")
        return True


class CommandHandlers:
    """Default command handlers, wired to the sync service and controller adapter"""

    def __init__(self, service: "SyncService", adapter: ControllerAdapter):
        self.service = service
        self.adapter = adapter

    async def handle_sync_now(self, payload: Dict[str, Any]):
        """Handle sync_now command"""
        logger.info("Executing sync_now command")
        await self.service.perform_sync()

    async def handle_delete_voucher(self, payload: Dict[str, Any]):
        """Handle delete_voucher command: by voucherId, else by voucherCode."""
        voucher_id = payload.get('voucherId')
        voucher_code = payload.get('voucherCode')
        logger.info(f"Executing delete_voucher command (id: {voucher_id}, code: {voucher_code})")

        if voucher_id:
            await self.adapter.delete_voucher(str(voucher_id))
            return

        if not voucher_code:
            logger.warning("Delete command missing voucherId and voucherCode")
            return

        vouchers = await self.adapter.get_vouchers()
        match = next((v for v in vouchers if v.code == voucher_code), None)
        if match is None:
            logger.warning(f"Voucher not found: {voucher_code}")
            return
        await self.adapter.delete_voucher(match.id)

    async def handle_disconnect(self, payload: Dict[str, Any]):
        """Handle disconnect command"""
        logger.info("Received disconnect command")
        await self.service.stop()


def setup_command_handlers(poller: CommandPoller, service: "SyncService", adapter: ControllerAdapter) -> CommandHandlers:
    """Register all command handlers with the poller."""
    handlers = CommandHandlers(service, adapter)

    poller.register_handler(CommandType.SYNC_NOW, handlers.handle_sync_now)
    poller.register_handler(CommandType.DELETE_VOUCHER, handlers.handle_delete_voucher)
    poller.register_handler(CommandType.DISCONNECT, handlers.handle_disconnect, terminal=True)

    return handlers
