"""
Canonical voucher and controller models.

Every controller adapter produces these shapes; the cloud client uploads
them as-is (camelCase on the wire).
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class VoucherStatus(str, Enum):
    VALID_ONE = "VALID_ONE"
    VALID_MULTI = "VALID_MULTI"
    USED = "USED"
    EXPIRED = "EXPIRED"


class SecurityMode(str, Enum):
    OPEN = "open"
    WEP = "wep"
    WPA = "wpa"
    WPA2 = "wpa2"
    WPA3 = "wpa3"


class Voucher(BaseModel):
    """One hotspot access code issued by the controller"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    code: str
    duration: Optional[int] = None  # minutes, None = unlimited
    quota: int = 1  # 0 = unlimited redemptions
    create_time: int = Field(alias="createTime")  # unix seconds
    start_time: Optional[int] = Field(default=None, alias="startTime")
    used: int = 0
    status: str
    qos_rate_max_up: Optional[int] = Field(default=None, alias="qosRateMaxUp")  # kbps
    qos_rate_max_down: Optional[int] = Field(default=None, alias="qosRateMaxDown")  # kbps
    note: Optional[str] = None

    @property
    def is_exhausted(self) -> bool:
        return self.quota > 0 and self.used >= self.quota

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class AvailableWLAN(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    ssid: str
    name: Optional[str] = None
    enabled: bool = True
    security: str = SecurityMode.OPEN.value
    is_guest: bool = Field(default=False, alias="isGuest")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class AgentCapabilities(BaseModel):
    """Optional operations a controller backend supports"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    can_list_wlans: bool = Field(default=False, alias="canListWLANs")
    can_create_vouchers: bool = Field(default=False, alias="canCreateVouchers")
    can_delete_vouchers: bool = Field(default=False, alias="canDeleteVouchers")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class ControllerInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: str = "unknown"
    name: Optional[str] = None
    type: str
