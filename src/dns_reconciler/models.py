"""
Data models for the DNS reconciler.

This module defines the data structures shared by the reconciler, the
persistence adapter and the command-line front end.
"""

from dataclasses import dataclass, field
from typing import Optional

from .enums import DuplicateKind


@dataclass
class KnownServer:
    """A user-declared server name and the IP it answers on."""

    name: str
    ip: str  # Not validated


@dataclass
class ResolvedRecord:
    """One (domain, ip) pairing produced by a successful lookup."""

    domain: str
    ip: str
    server_name: Optional[str]  # None means unmatched
    resolved_at: str  # Display timestamp
    timestamp: float  # Epoch seconds

    @property
    def matched(self) -> bool:
        return self.server_name is not None


@dataclass
class DomainWarning:
    """A domain skipped by add_domains and the reason."""

    domain: str
    kind: DuplicateKind


@dataclass
class IpChange:
    """Difference between two successive resolutions of one domain."""

    domain: str
    added: list[str]
    removed: list[str]
    old_records: list[ResolvedRecord] = field(default_factory=list)
    new_records: list[ResolvedRecord] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


@dataclass
class StoreSnapshot:
    """
    The three persisted collections.

    The unresolved list and the record list are kept in canonical
    (sorted) order; known servers keep insertion order.
    """

    unresolved: list[str] = field(default_factory=list)
    known_servers: list[KnownServer] = field(default_factory=list)
    resolved: list[ResolvedRecord] = field(default_factory=list)


@dataclass
class ServerGroup:
    """Resolved records sharing one known server (or none)."""

    server_name: Optional[str]
    records: list[ResolvedRecord] = field(default_factory=list)


def domain_sort_key(domain: str) -> tuple[str, str]:
    """Canonical ordering for domains: case-folded first, raw string breaks ties."""
    return (domain.casefold(), domain)


def sort_records(records: list[ResolvedRecord]) -> list[ResolvedRecord]:
    """
    Sort records by domain.

    The sort is stable, so the address order of one resolution is kept.
    """
    return sorted(records, key=lambda record: domain_sort_key(record.domain))
