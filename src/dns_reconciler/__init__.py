"""
DNS Reconciler - track domains, resolve them over DNS-over-HTTPS and label the
addresses with user-declared known servers.

This package keeps an unresolved list and a resolved collection in sync,
detects address drift on re-resolution and persists its working set in a
key-value store.
"""

__version__ = "0.1.0"
__author__ = "DNS Reconciler Team"

from dns_reconciler.exceptions import (
    ReconcilerError,
    ValidationError,
    NetworkError,
    PersistenceError,
    TamperingError,
)
from dns_reconciler.enums import (
    LogLevel,
    Severity,
    NotificationKind,
    NotificationStyle,
    DuplicateKind,
    DoHStatus,
    DoHErrorCode,
)
from dns_reconciler.config import (
    ResolverConfig,
    BatchConfig,
    NotificationConfig,
    PersistenceConfig,
    LoggingConfig,
    SystemConfig,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
    apply_env_overrides,
)
from dns_reconciler.models import (
    KnownServer,
    ResolvedRecord,
    DomainWarning,
    IpChange,
    StoreSnapshot,
    ServerGroup,
)
from dns_reconciler.domain_input import (
    parse_domain_input,
    to_query_name,
)
from dns_reconciler.matcher import (
    match_server,
    group_by_server,
)
from dns_reconciler.doh_client import (
    Resolver,
    DoHClient,
    DoHResponse,
    DoHError,
)
from dns_reconciler.kv_store import (
    KeyValueStore,
    MemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from dns_reconciler.persistence import (
    PersistenceAdapter,
)
from dns_reconciler.audit_logger import (
    AuditLogger,
    LogEntry,
)
from dns_reconciler.notifications import (
    Notification,
    NotificationChannel,
    LogChannel,
    ToastChannel,
    BannerChannel,
    NotificationRouter,
    create_notification_router,
)
from dns_reconciler.i18n import (
    get_message,
    format_timestamp,
    get_all_message_keys,
    has_translation,
    get_missing_translations,
    validate_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from dns_reconciler.reconciler import (
    Reconciler,
    AddDomainsResult,
    BatchResult,
)
from dns_reconciler.cli import (
    main as cli_main,
    create_parser,
)
from dns_reconciler.self_test import (
    SelfTest,
    SelfTestResult,
    ProbeResult,
    ConfigValidationResult,
    run_self_test,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Exceptions
    "ReconcilerError",
    "ValidationError",
    "NetworkError",
    "PersistenceError",
    "TamperingError",
    # Enums
    "LogLevel",
    "Severity",
    "NotificationKind",
    "NotificationStyle",
    "DuplicateKind",
    "DoHStatus",
    "DoHErrorCode",
    # Config
    "ResolverConfig",
    "BatchConfig",
    "NotificationConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "SystemConfig",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
    "apply_env_overrides",
    # Models
    "KnownServer",
    "ResolvedRecord",
    "DomainWarning",
    "IpChange",
    "StoreSnapshot",
    "ServerGroup",
    # Domain input
    "parse_domain_input",
    "to_query_name",
    # Matcher
    "match_server",
    "group_by_server",
    # Resolver
    "Resolver",
    "DoHClient",
    "DoHResponse",
    "DoHError",
    # Persistence
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "PersistenceAdapter",
    # Logging
    "AuditLogger",
    "LogEntry",
    # Notifications
    "Notification",
    "NotificationChannel",
    "LogChannel",
    "ToastChannel",
    "BannerChannel",
    "NotificationRouter",
    "create_notification_router",
    # i18n
    "get_message",
    "format_timestamp",
    "get_all_message_keys",
    "has_translation",
    "get_missing_translations",
    "validate_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # Reconciler
    "Reconciler",
    "AddDomainsResult",
    "BatchResult",
    # CLI
    "cli_main",
    "create_parser",
    # Self-test
    "SelfTest",
    "SelfTestResult",
    "ProbeResult",
    "ConfigValidationResult",
    "run_self_test",
]
