"""
Command-line interface for the DNS reconciler.

Every command loads the persisted state, runs one operation, prints the
resulting notifications and exits:
- add / remove: Manage the unresolved domain list
- server: Manage the known-server table
- resolve / resolve-all / retry-all: Look up addresses
- record / remove-unmatched: Prune resolved records
- list: Show the working set
- config: Configuration management
- self-test: Verify configuration and resolver connectivity
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional

from . import __version__
from .audit_logger import AuditLogger
from .config import (
    DEFAULT_CONFIG_DIR,
    SystemConfig,
    apply_env_overrides,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)
from .doh_client import DoHClient
from .enums import NotificationStyle
from .exceptions import PersistenceError
from .i18n import get_message
from .kv_store import JsonFileKeyValueStore
from .models import ResolvedRecord
from .notifications import NotificationRouter, create_notification_router, format_notification
from .persistence import PersistenceAdapter
from .reconciler import Reconciler
from .self_test import SelfTest, run_self_test


DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.json"

CommandHandler = Callable[[Reconciler, argparse.Namespace, str], Awaitable[int]]


def resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """
    Build the effective configuration for a command.

    The config file (if given) is loaded, environment overrides are applied,
    then command-line flags win.

    Returns:
        SystemConfig, or None if an explicit config file could not be loaded
    """
    config = None
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
            return None

    if config is None:
        config = create_default_config()

    config = apply_env_overrides(config)

    if getattr(args, "dry_run", False):
        config.simulation_mode = True
    if getattr(args, "language", None):
        config.language = args.language
    if getattr(args, "state_file", None):
        config.persistence.state_file_path = Path(args.state_file)
    if getattr(args, "verbose", False):
        config.logging.enabled = True
        config.logging.level = "debug"

    return config


def create_logger(config: SystemConfig) -> Optional[AuditLogger]:
    """Create the audit logger if logging is enabled."""
    if not config.logging.enabled:
        return None
    return AuditLogger.from_level_name(
        config.logging.level,
        output_format=config.logging.output_format,
    )


async def run_with_reconciler(
    args: argparse.Namespace,
    handler: CommandHandler,
) -> int:
    """
    Load the state, run ``handler`` and print the notifications it produced.

    Args:
        args: Parsed command-line arguments
        handler: Coroutine function performing the command

    Returns:
        Exit code
    """
    config = resolve_config(args)
    if config is None:
        return 1

    logger = create_logger(config)
    language = config.language
    router = create_notification_router(config.notifications, logger=logger)

    store = JsonFileKeyValueStore(
        file_path=config.persistence.state_file_path,
        hmac_secret=config.persistence.hmac_secret,
    )

    if config.simulation_mode:
        print(get_message("cli.simulation", language))

    async with DoHClient(
        endpoint=config.resolver.endpoint,
        timeout=config.resolver.timeout_seconds,
        simulation_mode=config.simulation_mode,
        logger=logger,
    ) as client:
        reconciler = Reconciler(
            resolver=client,
            persistence=PersistenceAdapter(store, logger=logger),
            notifier=router,
            batch_config=config.batch,
            logger=logger,
            language=language,
        )
        try:
            reconciler.load()
            exit_code = await handler(reconciler, args, language)
        except PersistenceError as e:
            if logger:
                logger.log_error("CLI", "Persistence failure", error=e, additional_data=e.to_dict())
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

    print_notifications(router, config)
    return exit_code


def print_notifications(router: NotificationRouter, config: SystemConfig) -> None:
    """
    Print every notification of this run for toast and banner styles.

    The log channel echoes as it goes. Toasts and banners expire or get
    replaced, so a one-shot command prints the router history instead.
    """
    if config.notifications.style == NotificationStyle.LOG:
        return
    for notification in router.history:
        print(format_notification(notification))


def format_record(
    index: int,
    record: ResolvedRecord,
    language: str,
    highlighted: bool = False,
) -> str:
    server = record.server_name or get_message("notification.unmatched", language)
    marker = "*" if highlighted else " "
    return f" {marker}[{index}] {record.domain}  {record.ip}  {server}  ({record.resolved_at})"


def print_state(reconciler: Reconciler, language: str, grouped: bool = False) -> None:
    """Print the unresolved list and resolved records."""
    empty = get_message("cli.empty", language)
    highlighted = reconciler.recently_retried()

    print(get_message("cli.unresolved_header", language))
    if not reconciler.unresolved:
        print(f"  {empty}")
    for domain in reconciler.unresolved:
        print(f"  - {domain}")

    print(get_message("cli.resolved_header", language))
    records = reconciler.resolved
    if not records:
        print(f"  {empty}")
    elif grouped:
        index_of = {id(record): i for i, record in enumerate(records)}
        for group in reconciler.grouped_by_server():
            print(f"  {group.server_name or get_message('notification.unmatched', language)}:")
            for record in group.records:
                print("  " + format_record(
                    index_of[id(record)], record, language, record.domain in highlighted
                ))
    else:
        for i, record in enumerate(records):
            print(format_record(i, record, language, record.domain in highlighted))


# Command handlers


async def handle_add(reconciler: Reconciler, args: argparse.Namespace, language: str) -> int:
    result = reconciler.add_domains(args.domains)
    print(get_message("cli.added", language, count=len(result.added)))
    return 0


async def handle_remove(reconciler: Reconciler, args: argparse.Namespace, language: str) -> int:
    if reconciler.remove_domain(args.domain):
        print(get_message("cli.removed", language, item=args.domain))
        return 0
    print(get_message("cli.not_found", language, item=args.domain))
    return 1


async def handle_server(reconciler: Reconciler, args: argparse.Namespace, language: str) -> int:
    if args.server_action == "add":
        server = reconciler.add_known_server(args.name, args.ip)
        if server is None:
            return 1
        print(f"{server.name}: {server.ip}")
        return 0

    if args.server_action == "remove":
        server = reconciler.remove_known_server(args.index)
        if server is None:
            print(get_message("cli.not_found", language, item=args.index))
            return 1
        print(get_message("cli.removed", language, item=f"{server.name} ({server.ip})"))
        return 0

    print(get_message("cli.servers_header", language))
    if not reconciler.known_servers:
        print(f"  {get_message('cli.empty', language)}")
    for i, server in enumerate(reconciler.known_servers):
        print(f"  [{i}] {server.name}  {server.ip}")
    return 0


async def handle_resolve(reconciler: Reconciler, args: argparse.Namespace, language: str) -> int:
    print(get_message("cli.resolving", language, domain=args.domain))
    if await reconciler.resolve_one(args.domain) is None:
        print(get_message("cli.resolve_failed", language, domain=args.domain))
        return 1
    return 0


async def handle_resolve_all(reconciler: Reconciler, args: argparse.Namespace, language: str) -> int:
    result = await reconciler.resolve_all_unresolved()
    if result.skipped:
        print(get_message("cli.batch_busy", language))
        return 1
    for domain in result.failed:
        print(get_message("cli.resolve_failed", language, domain=domain))
    return 1 if result.failed else 0


async def handle_retry_all(reconciler: Reconciler, args: argparse.Namespace, language: str) -> int:
    result = await reconciler.retry_all_resolved()
    if result.skipped:
        print(get_message("cli.batch_busy", language))
        return 1
    for domain in result.failed:
        print(get_message("cli.resolve_failed", language, domain=domain))
    print_state(reconciler, language)
    return 1 if result.failed else 0


async def handle_record(reconciler: Reconciler, args: argparse.Namespace, language: str) -> int:
    record = reconciler.remove_resolved_record(args.index)
    if record is None:
        print(get_message("cli.not_found", language, item=args.index))
        return 1
    print(get_message("cli.removed", language, item=f"{record.domain} ({record.ip})"))
    return 0


async def handle_remove_unmatched(
    reconciler: Reconciler, args: argparse.Namespace, language: str
) -> int:
    removed = reconciler.remove_all_unmatched()
    print(get_message("cli.removed_unmatched", language, count=removed))
    return 0


async def handle_list(reconciler: Reconciler, args: argparse.Namespace, language: str) -> int:
    print_state(reconciler, language, grouped=args.grouped)
    return 0


_HANDLERS: dict[str, CommandHandler] = {
    "add": handle_add,
    "remove": handle_remove,
    "server": handle_server,
    "resolve": handle_resolve,
    "resolve-all": handle_resolve_all,
    "retry-all": handle_retry_all,
    "record": handle_record,
    "remove-unmatched": handle_remove_unmatched,
    "list": handle_list,
}


def cmd_state(args: argparse.Namespace) -> int:
    """Handle every command that works on the persisted state."""
    return asyncio.run(run_with_reconciler(args, _HANDLERS[args.command]))


def cmd_self_test(args: argparse.Namespace) -> int:
    """Handle the 'self-test' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    result = asyncio.run(run_self_test(
        config=config,
        print_output=True,
        language=config.language,
        logger=create_logger(config),
    ))

    return 0 if result.success else 1


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Language: {config.language}")
        print(f"  Simulation mode: {config.simulation_mode}")
        print(f"  Resolver: {config.resolver.endpoint}")
        print(f"  Timeout: {config.resolver.timeout_seconds}s")
        print(f"  Notifications: {config.notifications.style.value}")
        print(f"  State file: {config.persistence.state_file_path}")
        print(f"  Log level: {config.logging.level}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        config = create_default_config(language=args.language or "en")
        if save_config_to_file(config, config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1

        validation = SelfTest(config).validate_config()
        for error in validation.errors:
            print(f"  - {error}", file=sys.stderr)
        for warning in validation.warnings:
            print(f"  ! {warning}")
        if not validation.valid:
            print(f"Configuration at {config_path} is invalid.", file=sys.stderr)
            return 1

        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="dns-reconciler",
        description="Resolve domains over DNS-over-HTTPS and match them to known servers",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    common.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        help="Output language (default: from config)",
    )
    common.add_argument(
        "--state-file",
        help="Path to the state file (overrides config)",
    )
    common.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode - no real DNS queries",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    add_parser = subparsers.add_parser(
        "add", parents=[common], help="Add comma-separated domains to the unresolved list"
    )
    add_parser.add_argument("domains", help="Domains, e.g. 'a.com, b.com'")
    add_parser.set_defaults(func=cmd_state)

    remove_parser = subparsers.add_parser(
        "remove", parents=[common], help="Remove a domain from the unresolved list"
    )
    remove_parser.add_argument("domain", help="Domain to remove")
    remove_parser.set_defaults(func=cmd_state)

    server_parser = subparsers.add_parser(
        "server", help="Manage known servers"
    )
    server_actions = server_parser.add_subparsers(dest="server_action", required=True)
    server_add = server_actions.add_parser("add", parents=[common], help="Add a known server")
    server_add.add_argument("name", help="Server name")
    server_add.add_argument("ip", help="Server IP address")
    server_remove = server_actions.add_parser("remove", parents=[common], help="Remove a known server")
    server_remove.add_argument("index", type=int, help="Position in 'server list'")
    server_actions.add_parser("list", parents=[common], help="List known servers")
    server_parser.set_defaults(func=cmd_state)

    resolve_parser = subparsers.add_parser(
        "resolve", parents=[common], help="Resolve or re-resolve a single domain"
    )
    resolve_parser.add_argument("domain", help="Domain to resolve")
    resolve_parser.set_defaults(func=cmd_state)

    subparsers.add_parser(
        "resolve-all", parents=[common], help="Resolve all unresolved domains"
    ).set_defaults(func=cmd_state)

    subparsers.add_parser(
        "retry-all", parents=[common], help="Re-resolve all resolved domains"
    ).set_defaults(func=cmd_state)

    record_parser = subparsers.add_parser(
        "record", help="Manage resolved records"
    )
    record_actions = record_parser.add_subparsers(dest="record_action", required=True)
    record_remove = record_actions.add_parser("remove", parents=[common], help="Remove a resolved record")
    record_remove.add_argument("index", type=int, help="Position in 'list'")
    record_parser.set_defaults(func=cmd_state)

    subparsers.add_parser(
        "remove-unmatched", parents=[common], help="Remove all records without a known server"
    ).set_defaults(func=cmd_state)

    list_parser = subparsers.add_parser(
        "list", parents=[common], help="Show unresolved domains and resolved records"
    )
    list_parser.add_argument(
        "--grouped", "-g",
        action="store_true",
        help="Group resolved records by known server",
    )
    list_parser.set_defaults(func=cmd_state)

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        help="Default language for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    self_test_parser = subparsers.add_parser(
        "self-test",
        parents=[common],
        help="Validate configuration and probe the resolver",
    )
    self_test_parser.set_defaults(func=cmd_self_test)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
