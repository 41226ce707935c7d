"""
Persistence adapter mirroring the reconciler state into a key-value store.

Layout (one key per entity):

- ``domain:unresolved:<name>`` -> ``"1"``
- ``domain:resolved:<name>``   -> JSON array of
  ``{ip, serverName, resolvedAt, timestamp}``
- ``server:<name>``            -> JSON ``{"ip": ...}``

An older layout stored three whole collections under ``unresolvedDomains``,
``knownServers`` and ``resolvedDomains``. Those keys are still read on load
and are deleted on every save.
"""

import json
from typing import Any, Optional

from .audit_logger import AuditLogger
from .enums import LogLevel
from .exceptions import PersistenceError
from .kv_store import KeyValueStore
from .models import KnownServer, ResolvedRecord, StoreSnapshot, domain_sort_key, sort_records


UNRESOLVED_PREFIX = "domain:unresolved:"
RESOLVED_PREFIX = "domain:resolved:"
SERVER_PREFIX = "server:"
UNRESOLVED_SENTINEL = "1"

LEGACY_UNRESOLVED_KEY = "unresolvedDomains"
LEGACY_SERVERS_KEY = "knownServers"
LEGACY_RESOLVED_KEY = "resolvedDomains"
LEGACY_KEYS = (LEGACY_UNRESOLVED_KEY, LEGACY_SERVERS_KEY, LEGACY_RESOLVED_KEY)

_PREFIXES = (UNRESOLVED_PREFIX, RESOLVED_PREFIX, SERVER_PREFIX)


def _is_managed_key(key: str) -> bool:
    return key.startswith(_PREFIXES) or key in LEGACY_KEYS


class PersistenceAdapter:
    """
    Saves and rehydrates a StoreSnapshot.

    ``save`` rewrites every managed key inside one store transaction;
    ``load`` rebuilds the collections in canonical order.
    """

    def __init__(self, store: KeyValueStore, logger: Optional[AuditLogger] = None) -> None:
        self._store = store
        self._logger = logger

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def save(self, snapshot: StoreSnapshot) -> None:
        """
        Replace the persisted state with ``snapshot``.

        All per-entity keys are cleared before rewriting and the legacy
        whole-collection keys are removed.
        """
        grouped: dict[str, list[dict]] = {}
        for record in snapshot.resolved:
            grouped.setdefault(record.domain, []).append(_record_to_dict(record))

        with self._store.transaction():
            for key in self._store.keys():
                if _is_managed_key(key):
                    self._store.delete(key)

            for domain in snapshot.unresolved:
                self._store.set(UNRESOLVED_PREFIX + domain, UNRESOLVED_SENTINEL)

            for domain, records in grouped.items():
                self._store.set(RESOLVED_PREFIX + domain, json.dumps(records, ensure_ascii=False))

            for server in snapshot.known_servers:
                self._store.set(
                    SERVER_PREFIX + server.name,
                    json.dumps({"ip": server.ip}, ensure_ascii=False),
                )

        self._log(
            LogLevel.DEBUG,
            "State saved",
            {
                "unresolved": len(snapshot.unresolved),
                "resolved_domains": len(grouped),
                "records": len(snapshot.resolved),
                "known_servers": len(snapshot.known_servers),
            },
        )

    def load(self) -> StoreSnapshot:
        """
        Rebuild the state from all stored keys.

        Returns:
            Snapshot with the unresolved list and records sorted by domain

        Raises:
            PersistenceError: If a stored value cannot be decoded
        """
        unresolved: list[str] = []
        servers: list[KnownServer] = []
        records_by_domain: dict[str, list[ResolvedRecord]] = {}
        legacy_found = False

        for key in self._store.keys():
            if key.startswith(UNRESOLVED_PREFIX):
                domain = key[len(UNRESOLVED_PREFIX):]
                if domain:
                    unresolved.append(domain)
            elif key.startswith(RESOLVED_PREFIX):
                domain = key[len(RESOLVED_PREFIX):]
                value = self._decode(key, list)
                if not value:
                    raise PersistenceError(
                        code="parse_error",
                        message=f"Stored value for '{key}' holds no records",
                        details={"key": key},
                    )
                records_by_domain[domain] = [
                    _record_from_dict(domain, item, key) for item in value
                ]
            elif key.startswith(SERVER_PREFIX):
                name = key[len(SERVER_PREFIX):]
                value = self._decode(key, dict)
                servers.append(KnownServer(name=name, ip=str(value.get("ip", ""))))
            elif key in LEGACY_KEYS:
                legacy_found = True

        if legacy_found:
            self._merge_legacy(unresolved, servers, records_by_domain)

        # A domain can only live in one collection; resolved wins
        unresolved = [d for d in dict.fromkeys(unresolved) if d not in records_by_domain]

        records = [r for rs in records_by_domain.values() for r in rs]

        snapshot = StoreSnapshot(
            unresolved=sorted(unresolved, key=domain_sort_key),
            known_servers=servers,
            resolved=sort_records(records),
        )

        self._log(
            LogLevel.DEBUG,
            "State loaded",
            {
                "unresolved": len(snapshot.unresolved),
                "records": len(snapshot.resolved),
                "known_servers": len(snapshot.known_servers),
                "legacy_keys": legacy_found,
            },
        )
        return snapshot

    def _merge_legacy(
        self,
        unresolved: list[str],
        servers: list[KnownServer],
        records_by_domain: dict[str, list[ResolvedRecord]],
    ) -> None:
        """Fold whole-collection keys into the per-entity results (per-entity wins)."""
        if self._store.get(LEGACY_UNRESOLVED_KEY) is not None:
            for domain in self._decode(LEGACY_UNRESOLVED_KEY, list):
                if isinstance(domain, str) and domain and domain not in unresolved:
                    unresolved.append(domain)

        if self._store.get(LEGACY_SERVERS_KEY) is not None:
            known_names = {s.name for s in servers}
            for item in self._decode(LEGACY_SERVERS_KEY, list):
                if not isinstance(item, dict) or not item.get("name"):
                    continue
                name = str(item["name"])
                if name not in known_names:
                    servers.append(KnownServer(name=name, ip=str(item.get("ip", ""))))
                    known_names.add(name)

        if self._store.get(LEGACY_RESOLVED_KEY) is not None:
            legacy_records: dict[str, list[ResolvedRecord]] = {}
            for item in self._decode(LEGACY_RESOLVED_KEY, list):
                if not isinstance(item, dict) or not item.get("domain"):
                    continue
                domain = str(item["domain"])
                legacy_records.setdefault(domain, []).append(
                    _record_from_dict(domain, item, LEGACY_RESOLVED_KEY)
                )
            for domain, records in legacy_records.items():
                records_by_domain.setdefault(domain, records)

        self._log(LogLevel.INFO, "Legacy whole-collection keys found; they will be migrated on next save", {})

    def _decode(self, key: str, expected_type: type) -> Any:
        raw = self._store.get(key)
        try:
            value = json.loads(raw) if raw is not None else None
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Stored value for '{key}' is not valid JSON: {e}",
                details={"key": key},
            )
        if not isinstance(value, expected_type):
            raise PersistenceError(
                code="parse_error",
                message=f"Stored value for '{key}' is not a JSON {expected_type.__name__}",
                details={"key": key},
            )
        return value

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "PersistenceAdapter", message, data)


def _record_to_dict(record: ResolvedRecord) -> dict:
    return {
        "ip": record.ip,
        "serverName": record.server_name,
        "resolvedAt": record.resolved_at,
        "timestamp": record.timestamp,
    }


def _record_from_dict(domain: str, item: Any, key: str) -> ResolvedRecord:
    if not isinstance(item, dict) or "ip" not in item:
        raise PersistenceError(
            code="parse_error",
            message=f"Malformed resolved record under '{key}'",
            details={"key": key},
        )
    server_name = item.get("serverName")
    timestamp = item.get("timestamp", 0)
    return ResolvedRecord(
        domain=domain,
        ip=str(item["ip"]),
        server_name=str(server_name) if server_name is not None else None,
        resolved_at=str(item.get("resolvedAt", "")),
        timestamp=float(timestamp) if isinstance(timestamp, (int, float)) else 0.0,
    )
