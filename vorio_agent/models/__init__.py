"""Models package"""

from .voucher import Voucher, VoucherStatus, AvailableWLAN, AgentCapabilities, ControllerInfo, SecurityMode
from .command import Command, CommandType, AgentStatus, ConnectResponse, SyncResponse, CommandsResponse

__all__ = [
    'Voucher', 'VoucherStatus', 'AvailableWLAN', 'AgentCapabilities', 'ControllerInfo', 'SecurityMode',
    'Command', 'CommandType', 'AgentStatus', 'ConnectResponse', 'SyncResponse', 'CommandsResponse',
]
