"""
Enumeration types for the DNS reconciler.

These enums provide type-safe constants for status codes, error codes,
and notification tags throughout the system.
"""

from enum import Enum


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class Severity(Enum):
    """Severity tag of a user-facing notification."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class NotificationKind(Enum):
    """What a notification is about."""

    RESOLVED = "resolved"
    IP_CHANGED = "ip_changed"
    DUPLICATE_INPUT = "duplicate_input"
    DUPLICATE_SERVER = "duplicate_server"


class DuplicateKind(Enum):
    """Why a domain from user input was skipped."""

    UNRESOLVED = "duplicate_unresolved"
    RESOLVED = "duplicate_resolved"


class DoHStatus(Enum):
    """DNS-over-HTTPS query result status."""

    RESOLVED = "resolved"
    NO_RECORDS = "no_records"
    ERROR = "error"


class DoHErrorCode(Enum):
    """Error codes for DoH client operations."""

    NETWORK_ERROR = "network_error"
    TLS_ERROR = "tls_error"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    HTTP_ERROR = "http_error"
    INVALID_NAME = "invalid_name"


class NotificationStyle(Enum):
    """How notifications are presented to the user."""

    LOG = "log"
    TOAST = "toast"
    BANNER = "banner"
