"""
Base controller adapter.

Each controller backend (UniFi, MikroTik, ...) subclasses ControllerAdapter
so the sync service can drive any of them through one interface.

Lifecycle:
1. login() - once at startup
2. get_controller_info() / get_capabilities() / get_available_wlans()
3. get_vouchers() / delete_voucher() - repeatedly while running
4. logout() - on shutdown
"""

import functools
import logging
from abc import ABC, abstractmethod
from typing import List

from ..core.errors import ControllerError
from ..models import AgentCapabilities, AvailableWLAN, ControllerInfo, Voucher

logger = logging.getLogger(__name__)


def retry_on_session_expiry(func):
    """Re-authenticate once and retry when the wrapped call hits an expired session.

    Logs in first if the adapter is not authenticated. A second expiry
    after re-authenticating propagates to the caller.
    """

    @functools.wraps(func)
    async def wrapper(self: "ControllerAdapter", *args, **kwargs):
        if not self.is_authenticated():
            await self.login()
        try:
            return await func(self, *args, **kwargs)
        except Exception as e:
            if not self.is_session_expired(e):
                raise
            logger.info(f"Session expired during {func.__name__}, re-authenticating...")
            self.invalidate_session()
            await self.login()
            return await func(self, *args, **kwargs)

    return wrapper


class ControllerAdapter(ABC):
    """Contract every controller backend implements"""

    @abstractmethod
    async def login(self) -> None:
        """Verify reachability, then authenticate.

        Raises:
            ConnectionError: the controller could not be reached
            AuthenticationError: the credentials were rejected
        """

    @abstractmethod
    async def logout(self) -> None:
        """Clear session state. Never raises."""

    @abstractmethod
    def is_authenticated(self) -> bool:
        ...

    @abstractmethod
    def invalidate_session(self) -> None:
        """Drop the authenticated flag so the next call logs in again."""

    @abstractmethod
    def get_type(self) -> str:
        ...

    @abstractmethod
    def get_capabilities(self) -> AgentCapabilities:
        ...

    @abstractmethod
    async def get_controller_info(self) -> ControllerInfo:
        """Best-effort metadata; returns an 'unknown' record on failure."""

    @abstractmethod
    async def get_available_wlans(self) -> List[AvailableWLAN]:
        """Advisory WLAN list; returns [] on failure."""

    @abstractmethod
    async def get_vouchers(self) -> List[Voucher]:
        ...

    @abstractmethod
    async def delete_voucher(self, voucher_id: str) -> None:
        """Raises ControllerError if the backend reports a failure."""

    def is_session_expired(self, error: BaseException) -> bool:
        """True for an authorization-expired signal (HTTP 401)."""
        return isinstance(error, ControllerError) and error.status_code == 401

    async def aclose(self) -> None:
        """Release network resources."""
