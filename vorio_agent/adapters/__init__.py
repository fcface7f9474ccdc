"""Controller adapters package"""

import logging
from typing import Dict, List, Optional

from ..config import AppConfig
from ..core.errors import ConfigurationError
from .base import ControllerAdapter, retry_on_session_expiry
from .unifi import UniFiAdapter, map_voucher, map_wlan

logger = logging.getLogger(__name__)

SUPPORTED_CONTROLLERS: List[Dict[str, object]] = [
    {
        'type': 'unifi',
        'name': 'UniFi Controller',
        'implemented': True,
        'description': 'Ubiquiti UniFi Network Application (8.0+ with API key, or legacy with username/password)',
    },
    {
        'type': 'mikrotik',
        'name': 'MikroTik RouterOS',
        'implemented': False,
        'description': 'MikroTik RouterOS with User Manager (planned)',
    },
    {
        'type': 'openwrt',
        'name': 'OpenWRT',
        'implemented': False,
        'description': 'OpenWRT with captive portal package (planned)',
    },
    {
        'type': 'custom',
        'name': 'Custom Integration',
        'implemented': False,
        'description': 'Custom adapter for other controller types (planned)',
    },
]


def create_adapter(config: AppConfig, controller_type: Optional[str] = None, **kwargs) -> ControllerAdapter:
    """Build the adapter for the configured controller type.

    Raises:
        ConfigurationError: the type is unknown or not implemented yet
    """
    adapter_type = controller_type or config.controller_type
    logger.debug(f"Creating adapter: {adapter_type}")

    if adapter_type == 'unifi':
        return UniFiAdapter(config.unifi, **kwargs)

    for entry in SUPPORTED_CONTROLLERS:
        if entry['type'] == adapter_type:
            raise ConfigurationError(
                f"{entry['name']} adapter is not yet implemented.",
                'CONTROLLER_TYPE',
            )

    supported = ', '.join(str(entry['type']) for entry in SUPPORTED_CONTROLLERS)
    raise ConfigurationError(
        f"Unknown controller type: '{adapter_type}'. Supported types: {supported}",
        'CONTROLLER_TYPE',
    )


def get_supported_controllers() -> List[Dict[str, object]]:
    return [dict(entry) for entry in SUPPORTED_CONTROLLERS]


__all__ = [
    'ControllerAdapter', 'retry_on_session_expiry', 'UniFiAdapter', 'map_voucher', 'map_wlan',
    'create_adapter', 'get_supported_controllers',
]
