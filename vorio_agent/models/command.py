"""Command and agent status models"""

from dataclasses import dataclass, asdict, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CommandType(str, Enum):
    SYNC_NOW = "sync_now"
    DELETE_VOUCHER = "delete_voucher"
    DISCONNECT = "disconnect"


class Command(BaseModel):
    """Pending work item fetched from the cloud"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    # Kept as a plain string so unknown types still parse and get completed
    type: str
    payload: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    @property
    def command_type(self) -> Optional[CommandType]:
        try:
            return CommandType(self.type)
        except ValueError:
            return None


class ConnectResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool = True
    connection_id: str = Field(alias="connectionId")
    project_id: str = Field(alias="projectId")
    message: Optional[str] = None


class SyncResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool = True
    synced_count: int = Field(alias="syncedCount")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    synced_at: Optional[str] = Field(default=None, alias="syncedAt")


class CommandsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    commands: List[Command] = Field(default_factory=list)


@dataclass
class AgentStatus:
    """In-memory agent status, rebuilt on every restart"""
    connected: bool = False
    last_sync: Optional[datetime] = None
    last_error: Optional[str] = None
    voucher_count: int = 0

    def copy(self) -> "AgentStatus":
        return replace(self)

    def to_dict(self):
        """Convert to dictionary"""
        return asdict(self)
