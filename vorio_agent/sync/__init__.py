"""Sync package"""

from .sync_service import SyncService, ServiceState
from .command_poller import CommandPoller, CommandHandlers, setup_command_handlers

__all__ = ['SyncService', 'ServiceState', 'CommandPoller', 'CommandHandlers', 'setup_command_handlers']
