"""Logger setup for the Vorio Agent"""

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .. import config
from ..core.errors import ConnectionError, ControllerError, NetworkErrorCode, VorioApiError

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class JsonFormatter(logging.Formatter):
    """One JSON object per log record"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname.lower(),
            'module': record.name,
            'message': record.getMessage(),
        }
        context = getattr(record, 'context', None)
        if context:
            entry['context'] = context
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
):
    """Setup logging configuration"""
    level = level or config.LOG_LEVEL
    log_format = log_format or config.LOG_FORMAT
    log_file = config.LOG_FILE if log_file is None else log_file

    # Create logger
    logger = logging.getLogger()
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    # Format
    if log_format == 'json':
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler
    if log_file:
        try:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.INFO)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not create file handler: {e}")

    # httpx logs every request at INFO
    logging.getLogger('httpx').setLevel(logging.WARNING)

    logger.debug("Logging configured")


@dataclass
class FormattedError:
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    suggestion: Optional[str] = None


_NETWORK_HINTS = {
    NetworkErrorCode.REFUSED.value: (
        'Connection refused - Controller is not reachable',
        'Check if the controller is running and the host/port are correct.',
    ),
    NetworkErrorCode.TIMEOUT.value: (
        'Connection timed out',
        'Check network connectivity and firewall settings.',
    ),
    NetworkErrorCode.DNS_NOT_FOUND.value: (
        'Host not found - DNS resolution failed',
        'Check that the hostname is spelled correctly.',
    ),
    NetworkErrorCode.TLS.value: (
        'SSL certificate verification failed',
        'Set UNIFI_SKIP_SSL_VERIFY=true for self-signed certificates.',
    ),
}

_STATUS_HINTS = {
    401: ('Authentication failed', 'Check your API key or credentials.'),
    403: ('Access denied', 'Check permissions for your API key or user.'),
    404: ('Resource not found', 'Check controller version compatibility.'),
    429: ('Rate limit exceeded', 'Reduce sync frequency.'),
    500: ('Controller internal error', 'Check controller logs.'),
    503: ('Service unavailable', 'Controller may be restarting.'),
}


def format_error_for_user(error: object) -> FormattedError:
    """Turn any raised error into a short message plus an operator hint."""
    if isinstance(error, ConnectionError):
        hint = _NETWORK_HINTS.get(error.error_code or '')
        details = {'code': error.error_code, 'host': error.host, 'port': error.port}
        if hint:
            return FormattedError(hint[0], details, hint[1])
        return FormattedError(error.message, details)

    status = None
    if isinstance(error, (ControllerError, VorioApiError)):
        status = error.status_code
    if status:
        msg, hint = _STATUS_HINTS.get(status, (f'HTTP error {status}', 'Check controller logs.'))
        details: Dict[str, Any] = {'status': status}
        if isinstance(error, VorioApiError) and error.endpoint:
            details['endpoint'] = error.endpoint
        return FormattedError(f'{msg}: {error}', details, hint)

    if isinstance(error, BaseException):
        text = str(error)
        if 'certificate' in text.lower():
            return FormattedError(
                'SSL certificate verification failed',
                {'name': error.__class__.__name__},
                _NETWORK_HINTS[NetworkErrorCode.TLS.value][1],
            )
        return FormattedError(text or error.__class__.__name__, {'name': error.__class__.__name__})

    return FormattedError(str(error))


def log_error(logger: logging.Logger, error: object):
    """Log an error with its hint, if it has one."""
    formatted = format_error_for_user(error)
    logger.error(formatted.message, extra={'context': formatted.details})
    if formatted.suggestion:
        logger.info(f"Suggestion: {formatted.suggestion}")


def log_connectivity_result(success: bool, target: str, host: str, error: object = None):
    logger = logging.getLogger('vorio_agent.network')
    if success:
        logger.info(f"{target} is reachable ({host})")
        return
    formatted = format_error_for_user(error)
    logger.error(f"Cannot reach {target}: {formatted.message} ({host})")
    if formatted.suggestion:
        logger.info(f"Hint: {formatted.suggestion}")
