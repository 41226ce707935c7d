"""
Reconciliation store for the DNS reconciler.

This module owns the in-memory working set (unresolved domains, resolved
records, known servers) and every operation that mutates it. It coordinates:
- Parsing and de-duplicating domain input
- Resolution through the resolver adapter
- Matching resolved addresses against known servers
- Detection of address drift on re-resolution
- Persistence after every mutation
- Notification of duplicates, new resolutions and drift

A domain is never in the unresolved set and the resolved collection at the
same time. All records of one domain come from one resolution.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from .audit_logger import AuditLogger
from .config import BatchConfig
from .doh_client import Resolver
from .domain_input import parse_domain_input
from .enums import DuplicateKind, LogLevel, NotificationKind, Severity
from .i18n import format_timestamp, get_message
from .matcher import group_by_server, match_server
from .models import (
    DomainWarning,
    IpChange,
    KnownServer,
    ResolvedRecord,
    ServerGroup,
    StoreSnapshot,
    domain_sort_key,
    sort_records,
)
from .notifications import NotificationRouter
from .persistence import PersistenceAdapter


WARNING_SEPARATOR = "; "
PAIR_SEPARATOR = ", "


@dataclass
class AddDomainsResult:
    """Outcome of an add_domains call."""

    added: list[str] = field(default_factory=list)
    warnings: list[DomainWarning] = field(default_factory=list)


@dataclass
class BatchResult:
    """Outcome of a batch resolution."""

    skipped: bool = False  # Another run of the same batch was in flight
    resolved: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class Reconciler:
    """
    Domain reconciliation engine.

    Holds the authoritative state and keeps the persisted mirror in sync.
    Batch operations are single-flight: a second call while one is running
    returns immediately with ``skipped=True``.
    """

    def __init__(
        self,
        resolver: Resolver,
        persistence: Optional[PersistenceAdapter] = None,
        notifier: Optional[NotificationRouter] = None,
        batch_config: Optional[BatchConfig] = None,
        logger: Optional[AuditLogger] = None,
        language: str = "en",
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the reconciler with an empty state.

        Args:
            resolver: Resolver adapter (anything with ``async resolve(domain)``)
            persistence: Optional persistence adapter flushed after mutations
            notifier: Optional router receiving notification events
            batch_config: Pacing of batch operations
            logger: Optional audit logger
            language: Language of notification messages and timestamps
            clock: Source of the current epoch time
            sleep: Coroutine used for the pause between retry-all items
        """
        self._resolver = resolver
        self._persistence = persistence
        self._notifier = notifier or NotificationRouter(logger=logger, clock=clock)
        self._batch_config = batch_config or BatchConfig()
        self._logger = logger
        self._language = language
        self._clock = clock
        self._sleep = sleep

        self._unresolved: list[str] = []
        self._resolved: list[ResolvedRecord] = []
        self._known_servers: list[KnownServer] = []

        self._recently_retried: dict[str, float] = {}  # domain -> expiry
        self._resolving_all = False
        self._retrying_all = False

    # State access

    @property
    def unresolved(self) -> list[str]:
        return self._unresolved.copy()

    @property
    def resolved(self) -> list[ResolvedRecord]:
        return self._resolved.copy()

    @property
    def known_servers(self) -> list[KnownServer]:
        return self._known_servers.copy()

    @property
    def notifier(self) -> NotificationRouter:
        return self._notifier

    @property
    def resolving_all(self) -> bool:
        return self._resolving_all

    @property
    def retrying_all(self) -> bool:
        return self._retrying_all

    @property
    def busy(self) -> bool:
        """True while either batch operation runs."""
        return self._resolving_all or self._retrying_all

    def resolved_domains(self) -> list[str]:
        """Distinct resolved domains in collection order."""
        return list(dict.fromkeys(record.domain for record in self._resolved))

    def records_for(self, domain: str) -> list[ResolvedRecord]:
        return [record for record in self._resolved if record.domain == domain]

    def grouped_by_server(self) -> list[ServerGroup]:
        """Resolved records grouped by matched server, computed on read."""
        return group_by_server(self._resolved, self._known_servers)

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            unresolved=self._unresolved.copy(),
            known_servers=[KnownServer(s.name, s.ip) for s in self._known_servers],
            resolved=self._resolved.copy(),
        )

    def recently_retried(self, now: Optional[float] = None) -> set[str]:
        """
        Domains re-resolved within the highlight window.

        Expired marks are swept on every call.
        """
        if now is None:
            now = self._clock()
        self._recently_retried = {
            domain: expires_at
            for domain, expires_at in self._recently_retried.items()
            if expires_at > now
        }
        return set(self._recently_retried)

    # Persistence

    def load(self) -> None:
        """
        Replace the in-memory state with the persisted one.

        Raises:
            PersistenceError: If the stored state cannot be decoded
        """
        if self._persistence is None:
            return
        snapshot = self._persistence.load()
        self._unresolved = snapshot.unresolved
        self._known_servers = snapshot.known_servers
        self._resolved = snapshot.resolved
        self._log_info(
            "State rehydrated",
            {
                "unresolved": len(self._unresolved),
                "records": len(self._resolved),
                "known_servers": len(self._known_servers),
            },
        )

    def _persist(self) -> None:
        if self._persistence is not None:
            self._persistence.save(self.snapshot())

    # Domain input

    def add_domains(self, raw_input: str) -> AddDomainsResult:
        """
        Add a comma-separated batch of domains to the unresolved set.

        Domains already unresolved or already resolved are skipped with a
        warning. The set is re-sorted and persisted once if anything was
        added; all warnings go out as one aggregated notification.

        Args:
            raw_input: User input such as "a.com, b.com"

        Returns:
            AddDomainsResult listing added domains and warnings
        """
        result = AddDomainsResult()
        unresolved = set(self._unresolved)
        resolved = set(self.resolved_domains())

        for domain in parse_domain_input(raw_input):
            if domain in unresolved:
                result.warnings.append(DomainWarning(domain, DuplicateKind.UNRESOLVED))
            elif domain in resolved:
                result.warnings.append(DomainWarning(domain, DuplicateKind.RESOLVED))
            else:
                unresolved.add(domain)
                self._unresolved.append(domain)
                result.added.append(domain)

        if result.added:
            self._unresolved.sort(key=domain_sort_key)
            self._persist()
            self._log_info("Domains added", {"domains": result.added})

        if result.warnings:
            message = WARNING_SEPARATOR.join(
                get_message(f"warning.{w.kind.value}", self._language, domain=w.domain)
                for w in result.warnings
            )
            self._notifier.notify(message, Severity.WARNING, NotificationKind.DUPLICATE_INPUT)

        return result

    def remove_domain(self, domain: str) -> bool:
        """
        Remove a domain from the unresolved set.

        Returns:
            True if the domain was unresolved and has been removed
        """
        if domain not in self._unresolved:
            return False
        self._unresolved.remove(domain)
        self._persist()
        return True

    # Known servers

    def add_known_server(self, name: str, ip: str) -> Optional[KnownServer]:
        """
        Append a known server.

        Empty (after trimming) names or addresses are ignored. A name that
        is already known is rejected with a warning notification. Existing
        records are not re-matched.

        Returns:
            The added server, or None if nothing was added
        """
        name = name.strip()
        ip = ip.strip()
        if not name or not ip:
            return None

        if any(server.name == name for server in self._known_servers):
            self._notifier.notify(
                get_message("warning.duplicate_server", self._language, name=name),
                Severity.WARNING,
                NotificationKind.DUPLICATE_SERVER,
            )
            return None

        server = KnownServer(name=name, ip=ip)
        self._known_servers.append(server)
        self._persist()
        return server

    def remove_known_server(self, index: int) -> Optional[KnownServer]:
        """Remove a known server by position. Existing records keep their match."""
        if not 0 <= index < len(self._known_servers):
            return None
        server = self._known_servers.pop(index)
        self._persist()
        return server

    # Resolved records

    def remove_resolved_record(self, index: int) -> Optional[ResolvedRecord]:
        """Remove one record by position in the resolved collection."""
        if not 0 <= index < len(self._resolved):
            return None
        record = self._resolved.pop(index)
        self._persist()
        return record

    def remove_all_unmatched(self) -> int:
        """
        Remove every record without a matched server.

        Returns:
            Number of records removed
        """
        kept = [record for record in self._resolved if record.server_name is not None]
        removed = len(self._resolved) - len(kept)
        self._resolved = kept
        self._persist()
        return removed

    # Resolution

    async def resolve_one(self, domain: str) -> Optional[IpChange]:
        """
        Resolve a domain and replace its records.

        On success the domain leaves the unresolved set and all its previous
        records are replaced by freshly matched ones. A first resolution
        emits a "resolved" notification; a re-resolution whose address set
        changed emits an "IP changed" notification. On failure nothing
        changes.

        Args:
            domain: Domain to resolve (unresolved or already resolved)

        Returns:
            IpChange describing the difference to the previous resolution,
            or None if the lookup failed
        """
        addresses = await self._resolver.resolve(domain)
        if not addresses:
            self._log_warn("Resolution failed, state unchanged", {"domain": domain})
            return None

        # No suspension point from here on: the replacement is atomic
        old_records = self.records_for(domain)
        old_ips = [record.ip for record in old_records]

        timestamp = self._clock()
        resolved_at = format_timestamp(timestamp, self._language)
        new_records = [
            ResolvedRecord(
                domain=domain,
                ip=ip,
                server_name=match_server(ip, self._known_servers),
                resolved_at=resolved_at,
                timestamp=timestamp,
            )
            for ip in dict.fromkeys(addresses)
        ]

        change = IpChange(
            domain=domain,
            added=[r.ip for r in new_records if r.ip not in old_ips],
            removed=[ip for ip in old_ips if ip not in {r.ip for r in new_records}],
            old_records=old_records,
            new_records=new_records,
        )

        if domain in self._unresolved:
            self._unresolved.remove(domain)
        self._resolved = sort_records(
            [record for record in self._resolved if record.domain != domain] + new_records
        )

        self._recently_retried[domain] = timestamp + self._batch_config.highlight_seconds

        if not old_records:
            self._notifier.notify(
                get_message(
                    "notification.resolved",
                    self._language,
                    domain=domain,
                    pairs=self._format_pairs(new_records),
                ),
                Severity.INFO,
                NotificationKind.RESOLVED,
                domain=domain,
            )
        elif change.changed:
            self._notifier.notify(
                get_message(
                    "notification.ip_changed",
                    self._language,
                    domain=domain,
                    old=self._format_pairs(old_records),
                    new=self._format_pairs(new_records),
                ),
                Severity.WARNING,
                NotificationKind.IP_CHANGED,
                domain=domain,
            )

        self._persist()
        self._log_info(
            "Domain resolved",
            {"domain": domain, "addresses": [r.ip for r in new_records],
             "added": change.added, "removed": change.removed},
        )
        return change

    async def resolve_all_unresolved(self) -> BatchResult:
        """
        Resolve every unresolved domain, one after another.

        Works on a snapshot of the unresolved set taken at the start.
        Failed domains stay unresolved.
        """
        if self._resolving_all:
            return BatchResult(skipped=True)

        self._resolving_all = True
        result = BatchResult()
        pending = self._unresolved.copy()
        self._log_info("Resolve-all started", {"domains": len(pending)})
        try:
            for domain in pending:
                if await self.resolve_one(domain) is None:
                    result.failed.append(domain)
                else:
                    result.resolved.append(domain)
        finally:
            self._resolving_all = False

        self._log_info(
            "Resolve-all finished",
            {"resolved": len(result.resolved), "failed": len(result.failed)},
        )
        return result

    async def retry_all_resolved(self) -> BatchResult:
        """
        Re-resolve every resolved domain, one after another.

        Consecutive lookups are separated by the configured pause.
        """
        if self._retrying_all:
            return BatchResult(skipped=True)

        self._retrying_all = True
        result = BatchResult()
        domains = self.resolved_domains()
        self._log_info("Retry-all started", {"domains": len(domains)})
        try:
            for position, domain in enumerate(domains):
                if position > 0:
                    await self._sleep(self._batch_config.retry_pause_seconds)
                if await self.resolve_one(domain) is None:
                    result.failed.append(domain)
                else:
                    result.resolved.append(domain)
        finally:
            self._retrying_all = False

        self._log_info(
            "Retry-all finished",
            {"resolved": len(result.resolved), "failed": len(result.failed)},
        )
        return result

    def _format_pairs(self, records: list[ResolvedRecord]) -> str:
        if not records:
            return get_message("notification.none", self._language)
        unmatched = get_message("notification.unmatched", self._language)
        return PAIR_SEPARATOR.join(
            f"{record.server_name or unmatched} ({record.ip})" for record in records
        )

    def _log_info(self, message: str, data: dict) -> None:
        """Log info message if logger is available."""
        if self._logger:
            self._logger.log(LogLevel.INFO, "Reconciler", message, data)

    def _log_warn(self, message: str, data: dict) -> None:
        """Log warning message if logger is available."""
        if self._logger:
            self._logger.log(LogLevel.WARN, "Reconciler", message, data)
