"""
Configuration dataclasses for the DNS reconciler.

This module defines all configuration structures used throughout the system,
including the resolver endpoint, batch pacing, notification presentation,
persistence, and logging configuration, plus loading them from a JSON file
with environment overrides.
"""

import json
import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .enums import LogLevel, NotificationStyle


DEFAULT_DOH_ENDPOINT = "https://cloudflare-dns.com/dns-query"
DEFAULT_HMAC_SECRET = "default-secret-change-me"
DEFAULT_CONFIG_DIR = Path.home() / ".dns_reconciler"
ENV_PREFIX = "DNS_RECONCILER_"
LOG_OUTPUT_FORMATS = ("json", "text", "both")


@dataclass
class ResolverConfig:
    """DNS-over-HTTPS resolver configuration."""

    endpoint: str = DEFAULT_DOH_ENDPOINT
    timeout_seconds: float = 10.0


@dataclass
class BatchConfig:
    """Pacing of batch operations and retry highlighting."""

    retry_pause_seconds: float = 0.1  # Between consecutive retry-all items
    highlight_seconds: float = 3.0  # How long a re-resolved domain stays marked


@dataclass
class NotificationConfig:
    """Notification presentation configuration."""

    style: NotificationStyle = NotificationStyle.LOG
    toast_seconds: float = 5.0
    max_toasts: int = 5


@dataclass
class PersistenceConfig:
    """Persistence and state storage configuration."""

    state_file_path: Path
    hmac_secret: str


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'
    enabled: bool = False


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    persistence: PersistenceConfig
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    language: str = "en"  # 'de' or 'en'
    simulation_mode: bool = False
    probe_domain: Optional[str] = "example.com"  # Used by the self-test


def create_default_config(
    simulation_mode: bool = False,
    language: str = "en",
    state_file: Optional[Path] = None,
    hmac_secret: str = DEFAULT_HMAC_SECRET,
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        simulation_mode: Enable simulation mode (no real network requests)
        language: Output language ('de' or 'en')
        state_file: Path to state file for persistence
        hmac_secret: Secret for HMAC protection

    Returns:
        SystemConfig with default settings
    """
    if state_file is None:
        state_file = DEFAULT_CONFIG_DIR / "state.json"

    return SystemConfig(
        persistence=PersistenceConfig(
            state_file_path=state_file,
            hmac_secret=hmac_secret,
        ),
        language=language,
        simulation_mode=simulation_mode,
    )


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        resolver_data = data.get("resolver", {})
        resolver = ResolverConfig(
            endpoint=resolver_data.get("endpoint", DEFAULT_DOH_ENDPOINT),
            timeout_seconds=float(resolver_data.get("timeout_seconds", 10.0)),
        )

        batch_data = data.get("batch", {})
        batch = BatchConfig(
            retry_pause_seconds=float(batch_data.get("retry_pause_seconds", 0.1)),
            highlight_seconds=float(batch_data.get("highlight_seconds", 3.0)),
        )

        notifications_data = data.get("notifications", {})
        notifications = NotificationConfig(
            style=NotificationStyle(notifications_data.get("style", NotificationStyle.LOG.value)),
            toast_seconds=float(notifications_data.get("toast_seconds", 5.0)),
            max_toasts=int(notifications_data.get("max_toasts", 5)),
        )

        persistence_data = data.get("persistence", {})
        state_file_path = persistence_data.get("state_file_path")
        if state_file_path:
            state_file_path = Path(state_file_path)
        else:
            state_file_path = DEFAULT_CONFIG_DIR / "state.json"

        persistence = PersistenceConfig(
            state_file_path=state_file_path,
            hmac_secret=persistence_data.get("hmac_secret", DEFAULT_HMAC_SECRET),
        )

        logging_data = data.get("logging", {})
        output_format = logging_data.get("output_format", "text")
        if output_format not in LOG_OUTPUT_FORMATS:
            raise ValueError(f"Invalid log output format: {output_format}")
        logging_config = LoggingConfig(
            level=LogLevel(str(logging_data.get("level", "info")).lower()).value,
            output_format=output_format,
            enabled=logging_data.get("enabled", False),
        )

        return SystemConfig(
            persistence=persistence,
            resolver=resolver,
            batch=batch,
            notifications=notifications,
            logging=logging_config,
            language=data.get("language", "en"),
            simulation_mode=data.get("simulation_mode", False),
            probe_domain=data.get("probe_domain", "example.com"),
        )

    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "resolver": {
                "endpoint": config.resolver.endpoint,
                "timeout_seconds": config.resolver.timeout_seconds,
            },
            "batch": {
                "retry_pause_seconds": config.batch.retry_pause_seconds,
                "highlight_seconds": config.batch.highlight_seconds,
            },
            "notifications": {
                "style": config.notifications.style.value,
                "toast_seconds": config.notifications.toast_seconds,
                "max_toasts": config.notifications.max_toasts,
            },
            "persistence": {
                "state_file_path": str(config.persistence.state_file_path),
                "hmac_secret": config.persistence.hmac_secret,
            },
            "logging": {
                "level": config.logging.level,
                "output_format": config.logging.output_format,
                "enabled": config.logging.enabled,
            },
            "language": config.language,
            "simulation_mode": config.simulation_mode,
            "probe_domain": config.probe_domain,
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def _env(name: str) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name, "").strip()
    return value or None


def apply_env_overrides(config: SystemConfig, dotenv_path: Optional[Path] = None) -> SystemConfig:
    """
    Override configuration values from the environment.

    A ``.env`` file is read first (existing environment variables win).
    Recognised variables: ``DNS_RECONCILER_ENDPOINT``, ``_TIMEOUT``,
    ``_STATE_FILE``, ``_HMAC_SECRET``, ``_LANGUAGE``, ``_NOTIFICATION_STYLE``,
    ``_LOG_LEVEL`` and ``_DRY_RUN`` (``1`` enables simulation mode).

    Args:
        config: Base configuration
        dotenv_path: Explicit .env file (searched from the working directory if None)

    Returns:
        New SystemConfig with overrides applied
    """
    load_dotenv(dotenv_path=dotenv_path)

    resolver = config.resolver
    if _env("ENDPOINT"):
        resolver = replace(resolver, endpoint=_env("ENDPOINT"))
    if _env("TIMEOUT"):
        try:
            resolver = replace(resolver, timeout_seconds=float(_env("TIMEOUT")))
        except ValueError:
            pass

    persistence = config.persistence
    if _env("STATE_FILE"):
        persistence = replace(persistence, state_file_path=Path(_env("STATE_FILE")))
    if _env("HMAC_SECRET"):
        persistence = replace(persistence, hmac_secret=_env("HMAC_SECRET"))

    notifications = config.notifications
    if _env("NOTIFICATION_STYLE"):
        try:
            notifications = replace(
                notifications, style=NotificationStyle(_env("NOTIFICATION_STYLE").lower())
            )
        except ValueError:
            pass

    logging_config = config.logging
    if _env("LOG_LEVEL"):
        try:
            level = LogLevel(_env("LOG_LEVEL").lower())
        except ValueError:
            pass
        else:
            logging_config = replace(logging_config, level=level.value, enabled=True)

    language = config.language
    if _env("LANGUAGE") and _env("LANGUAGE").lower() in ("de", "en"):
        language = _env("LANGUAGE").lower()

    simulation_mode = config.simulation_mode or _env("DRY_RUN") == "1"

    return replace(
        config,
        resolver=resolver,
        persistence=persistence,
        notifications=notifications,
        logging=logging_config,
        language=language,
        simulation_mode=simulation_mode,
    )
