"""
Vorio Agent - keeps a WiFi controller's vouchers in sync with Vorio Cloud.

Runs next to the controller, pulls vouchers over the controller's local
API and pushes snapshots to the cloud. Outbound HTTPS only.
"""

import asyncio
import logging
import signal
import sys

from . import config
from .config import get_redacted_config, load_config, validate_config
from .core.container import ServiceContainer
from .core.errors import ConfigurationError
from .utils.logger import format_error_for_user, setup_logging

logger = logging.getLogger(__name__)

BANNER = f"""
╔═══════════════════════════════════════╗
║          Vorio Agent v{config.AGENT_VERSION:<16}║
║   WiFi voucher sync for Vorio Cloud   ║
╚═══════════════════════════════════════╝
"""


def _install_signal_handlers(container: ServiceContainer):
    loop = asyncio.get_running_loop()

    def _shutdown(sig: signal.Signals):
        logger.info(f"Received {sig.name}, shutting down gracefully...")
        loop.create_task(container.sync_service.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _shutdown, sig)
        except NotImplementedError:
            # Windows event loops have no signal support
            logger.debug(f"Signal handler for {sig.name} not installed")


async def main() -> int:
    """Main entry point. Returns the process exit code."""
    print(BANNER)

    try:
        app_config = load_config()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    validation = validate_config(app_config)
    for warning in validation.warnings:
        logger.warning(f"Config warning: {warning}")
    if not validation.valid:
        for error in validation.errors:
            logger.error(f"Config error: {error}")
        return 1

    logger.info("Configuration loaded", extra={"context": get_redacted_config(app_config)})
    logger.info(f"Controller: {app_config.controller_type}, sync every {app_config.sync.interval_s:g}s")

    container = ServiceContainer(app_config)
    try:
        service = container.sync_service
        _install_signal_handlers(container)

        try:
            await service.start()
        except Exception as e:
            formatted = format_error_for_user(e)
            logger.error(f"Failed to start: {formatted.message}")
            if formatted.suggestion:
                logger.error(f"Suggestion: {formatted.suggestion}")
            return 1

        logger.info("Vorio Agent is running. Press Ctrl+C to stop.")
        await service.wait_until_stopped()
    finally:
        await container.aclose()

    logger.info("Vorio Agent stopped")
    return 0


def run():
    """Console script entry point"""
    setup_logging()
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Agent stopped by user")
        exit_code = 0
    except Exception as e:
        logger.error(f"Agent crashed: {e}", exc_info=True)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
