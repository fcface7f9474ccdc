"""Configuration for the Vorio Agent"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from .core.errors import ConfigurationError

# Load environment variables from .env file
_repo_root = Path(__file__).parent.parent.resolve()
_env_file = _repo_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

AGENT_VERSION = "1.0.0"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "text").lower()
LOG_FILE = os.getenv("LOG_FILE", "logs/vorio-agent.log")

DEFAULT_VORIO_API_URL = "https://api.vorio.app"
DEFAULT_SYNC_INTERVAL_MS = 120_000  # 2 minutes
DEFAULT_COMMAND_POLL_INTERVAL_MS = 10_000  # 10 seconds

VALID_CONTROLLER_TYPES = ("unifi", "mikrotik", "openwrt", "custom")


@dataclass(frozen=True)
class VorioSettings:
    api_url: str
    agent_token: str


@dataclass(frozen=True)
class UniFiSettings:
    host: str
    port: int = 443
    api_key: str = ""
    username: str = ""
    password: str = ""
    site: str = "default"
    skip_ssl_verify: bool = False

    @property
    def uses_api_key(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class MikroTikSettings:
    host: str = ""
    port: int = 8728
    username: str = ""
    password: str = ""
    use_ssl: bool = False


@dataclass(frozen=True)
class SyncSettings:
    interval_ms: int = DEFAULT_SYNC_INTERVAL_MS
    command_poll_interval_ms: int = DEFAULT_COMMAND_POLL_INTERVAL_MS

    @property
    def interval_s(self) -> float:
        return self.interval_ms / 1000

    @property
    def command_poll_interval_s(self) -> float:
        return self.command_poll_interval_ms / 1000


@dataclass(frozen=True)
class AppConfig:
    controller_type: str
    vorio: VorioSettings
    unifi: UniFiSettings
    mikrotik: MikroTikSettings = field(default_factory=MikroTikSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)

    @property
    def unifi_base_url(self) -> str:
        return f"https://{self.unifi.host}:{self.unifi.port}"

    @property
    def mikrotik_base_url(self) -> str:
        protocol = "https" if self.mikrotik.use_ssl else "http"
        return f"{protocol}://{self.mikrotik.host}:{self.mikrotik.port}"


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str]
    warnings: List[str]


class _Env:
    """Typed access to an environment mapping"""

    def __init__(self, environ: Mapping[str, str]):
        self.environ = environ

    def required(self, name: str) -> str:
        value = self.environ.get(name)
        if not value or not value.strip():
            raise ConfigurationError(f"Missing required environment variable: {name}", name)
        return value.strip()

    def optional(self, name: str, default: str) -> str:
        value = self.environ.get(name)
        if not value or not value.strip():
            return default
        return value.strip()

    def integer(self, name: str, default: int) -> int:
        value = self.environ.get(name)
        if not value:
            return default
        try:
            return int(value.strip())
        except ValueError:
            return default

    def boolean(self, name: str, default: bool) -> bool:
        value = self.environ.get(name)
        if not value:
            return default
        return value.strip().lower() in ("true", "1")


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Build the agent configuration from the environment.

    Raises:
        ConfigurationError: a required variable is missing or the
            controller type is not recognised
    """
    env = _Env(os.environ if environ is None else environ)

    controller_type = env.optional("CONTROLLER_TYPE", "unifi").lower()
    if controller_type not in VALID_CONTROLLER_TYPES:
        raise ConfigurationError(
            f"Invalid CONTROLLER_TYPE: '{controller_type}'. "
            f"Must be one of: {', '.join(VALID_CONTROLLER_TYPES)}",
            "CONTROLLER_TYPE",
        )

    is_unifi = controller_type == "unifi"
    is_mikrotik = controller_type == "mikrotik"

    vorio = VorioSettings(
        api_url=env.optional("VORIO_API_URL", DEFAULT_VORIO_API_URL).rstrip("/"),
        agent_token=env.required("VORIO_AGENT_TOKEN"),
    )
    unifi = UniFiSettings(
        host=env.required("UNIFI_HOST") if is_unifi else env.optional("UNIFI_HOST", ""),
        port=env.integer("UNIFI_PORT", 443),
        api_key=env.optional("UNIFI_API_KEY", ""),
        username=env.optional("UNIFI_USERNAME", ""),
        password=env.optional("UNIFI_PASSWORD", ""),
        site=env.optional("UNIFI_SITE", "default"),
        skip_ssl_verify=env.boolean("UNIFI_SKIP_SSL_VERIFY", False),
    )
    mikrotik = MikroTikSettings(
        host=env.required("MIKROTIK_HOST") if is_mikrotik else env.optional("MIKROTIK_HOST", ""),
        port=env.integer("MIKROTIK_PORT", 8728),
        username=env.required("MIKROTIK_USERNAME") if is_mikrotik else env.optional("MIKROTIK_USERNAME", ""),
        password=env.required("MIKROTIK_PASSWORD") if is_mikrotik else env.optional("MIKROTIK_PASSWORD", ""),
        use_ssl=env.boolean("MIKROTIK_USE_SSL", False),
    )
    sync = SyncSettings(
        interval_ms=env.integer("SYNC_INTERVAL_MS", DEFAULT_SYNC_INTERVAL_MS),
        command_poll_interval_ms=env.integer("COMMAND_POLL_INTERVAL_MS", DEFAULT_COMMAND_POLL_INTERVAL_MS),
    )

    return AppConfig(
        controller_type=controller_type,
        vorio=vorio,
        unifi=unifi,
        mikrotik=mikrotik,
        sync=sync,
    )


def validate_config(config: AppConfig) -> ValidationResult:
    """Check a loaded configuration for errors and risky settings."""
    errors: List[str] = []
    warnings: List[str] = []

    parsed = urlparse(config.vorio.api_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append(f"VORIO_API_URL is not a valid URL: {config.vorio.api_url}")

    if not config.vorio.agent_token.startswith("vat_"):
        warnings.append('VORIO_AGENT_TOKEN does not start with "vat_" - this might be an invalid token')

    if config.controller_type == "unifi":
        has_api_key = bool(config.unifi.api_key)
        has_credentials = bool(config.unifi.username) and bool(config.unifi.password)

        if not has_api_key and not has_credentials:
            errors.append(
                "UniFi authentication not configured. "
                "Set either UNIFI_API_KEY (recommended) or both UNIFI_USERNAME and UNIFI_PASSWORD"
            )
        if has_api_key and has_credentials:
            warnings.append(
                "Both API key and username/password are configured. API key will be used (recommended)."
            )
        if not 1 <= config.unifi.port <= 65535:
            errors.append(f"UNIFI_PORT must be between 1 and 65535, got: {config.unifi.port}")
        if config.unifi.skip_ssl_verify:
            warnings.append(
                "SSL verification is disabled (UNIFI_SKIP_SSL_VERIFY=true). "
                "This is insecure and should only be used for development."
            )
    elif config.controller_type == "mikrotik":
        warnings.append("MikroTik support is not yet implemented.")
    elif config.controller_type == "openwrt":
        warnings.append("OpenWRT support is not yet implemented.")
    elif config.controller_type == "custom":
        warnings.append("Custom integration support is not yet implemented.")

    if config.sync.interval_ms < 10_000:
        warnings.append(
            f"SYNC_INTERVAL_MS is very low ({config.sync.interval_ms}ms). "
            "This might cause high load on the controller."
        )
    if config.sync.command_poll_interval_ms < 1_000:
        warnings.append(
            f"COMMAND_POLL_INTERVAL_MS is very low ({config.sync.command_poll_interval_ms}ms). "
            "This might cause high API usage."
        )

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validate_config_or_raise(config: AppConfig) -> ValidationResult:
    result = validate_config(config)
    if not result.valid:
        details = "\n".join(f"  - {error}" for error in result.errors)
        raise ConfigurationError(f"Configuration validation failed:\n{details}")
    return result


def get_redacted_config(config: AppConfig) -> dict:
    """Configuration summary that is safe to log"""

    def _secret(value: str) -> str:
        return "[REDACTED]" if value else "(not set)"

    return {
        "controllerType": config.controller_type,
        "vorio": {
            "apiUrl": config.vorio.api_url,
            "agentToken": _secret(config.vorio.agent_token),
        },
        "unifi": {
            "host": config.unifi.host or "(not set)",
            "port": config.unifi.port,
            "site": config.unifi.site,
            "apiKey": _secret(config.unifi.api_key),
            "username": config.unifi.username or "(not set)",
            "password": _secret(config.unifi.password),
            "skipSslVerify": config.unifi.skip_ssl_verify,
        },
        "sync": {
            "intervalMs": config.sync.interval_ms,
            "commandPollIntervalMs": config.sync.command_poll_interval_ms,
        },
    }
