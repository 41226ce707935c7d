"""
Property-based tests for the persistence adapter and key-value stores.

Uses Hypothesis for property-based testing of the load-after-save round
trip, the per-entity key layout, migration of the whole-collection layout
and HMAC protection of the state file.
"""

import json
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dns_reconciler.exceptions import PersistenceError, TamperingError
from dns_reconciler.kv_store import JsonFileKeyValueStore, MemoryKeyValueStore
from dns_reconciler.models import (
    KnownServer,
    ResolvedRecord,
    StoreSnapshot,
    domain_sort_key,
    sort_records,
)
from dns_reconciler.persistence import (
    LEGACY_KEYS,
    PersistenceAdapter,
    RESOLVED_PREFIX,
    SERVER_PREFIX,
    UNRESOLVED_PREFIX,
)


# Strategies for generating valid test data

domain_strategy = st.builds(
    lambda sld, tld: f"{sld}.{tld}",
    st.text(alphabet=st.sampled_from("abcdefgXYZ019-"), min_size=1, max_size=10),
    st.sampled_from(["com", "de", "net"]),
)

ip_strategy = st.builds(
    lambda a, b: f"203.0.{a}.{b}",
    st.integers(min_value=0, max_value=255),
    st.integers(min_value=1, max_value=254),
)


@st.composite
def snapshot_strategy(draw) -> StoreSnapshot:
    """Generate canonical snapshots that satisfy the store invariants."""
    domains = draw(st.lists(domain_strategy, unique=True, max_size=12))
    split = draw(st.integers(min_value=0, max_value=len(domains)))
    unresolved, resolved_domains = domains[:split], domains[split:]

    names = draw(st.lists(
        st.text(alphabet="abcdefghij0123456789", min_size=1, max_size=6),
        unique=True,
        max_size=5,
    ))
    servers = [KnownServer(name=name, ip=draw(ip_strategy)) for name in names]

    records = []
    for domain in resolved_domains:
        timestamp = float(draw(st.integers(min_value=1_600_000_000, max_value=1_900_000_000)))
        for ip in draw(st.lists(ip_strategy, unique=True, min_size=1, max_size=3)):
            records.append(ResolvedRecord(
                domain=domain,
                ip=ip,
                server_name=draw(st.one_of(st.none(), st.sampled_from(names or ["web1"]))),
                resolved_at=f"ts-{int(timestamp)}",
                timestamp=timestamp,
            ))

    return StoreSnapshot(
        unresolved=sorted(unresolved, key=domain_sort_key),
        known_servers=servers,
        resolved=sort_records(records),
    )


class TestRoundTripProperty:
    """load() right after save() reproduces the snapshot."""

    @given(snapshot=snapshot_strategy())
    @settings(max_examples=100)
    def test_load_after_save_is_identical(self, snapshot: StoreSnapshot) -> None:
        adapter = PersistenceAdapter(MemoryKeyValueStore())

        adapter.save(snapshot)

        assert adapter.load() == snapshot

    @given(snapshot=snapshot_strategy())
    @settings(max_examples=30)
    def test_round_trip_through_state_file(self, snapshot: StoreSnapshot) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state.json"
            PersistenceAdapter(JsonFileKeyValueStore(path, "secret")).save(snapshot)

            reopened = PersistenceAdapter(JsonFileKeyValueStore(path, "secret"))

            assert reopened.load() == snapshot

    @given(first=snapshot_strategy(), second=snapshot_strategy())
    @settings(max_examples=50)
    def test_save_replaces_previous_state(self, first: StoreSnapshot, second: StoreSnapshot) -> None:
        adapter = PersistenceAdapter(MemoryKeyValueStore())

        adapter.save(first)
        adapter.save(second)

        assert adapter.load() == second


class TestKeyLayout:
    """One key per unresolved domain, resolved domain and known server."""

    def test_per_entity_keys(self) -> None:
        store = MemoryKeyValueStore()
        snapshot = StoreSnapshot(
            unresolved=["b.com"],
            known_servers=[KnownServer(name="web1", ip="1.2.3.4")],
            resolved=[
                ResolvedRecord("a.com", "1.2.3.4", "web1", "then", 1700000000.0),
                ResolvedRecord("a.com", "5.6.7.8", None, "then", 1700000000.0),
            ],
        )

        PersistenceAdapter(store).save(snapshot)

        data = store.as_dict()
        assert data[UNRESOLVED_PREFIX + "b.com"] == "1"
        assert json.loads(data[SERVER_PREFIX + "web1"]) == {"ip": "1.2.3.4"}
        assert json.loads(data[RESOLVED_PREFIX + "a.com"]) == [
            {"ip": "1.2.3.4", "serverName": "web1", "resolvedAt": "then", "timestamp": 1700000000.0},
            {"ip": "5.6.7.8", "serverName": None, "resolvedAt": "then", "timestamp": 1700000000.0},
        ]

    def test_unrelated_keys_untouched(self) -> None:
        store = MemoryKeyValueStore({"theme": "dark", UNRESOLVED_PREFIX + "old.com": "1"})

        PersistenceAdapter(store).save(StoreSnapshot())

        assert store.as_dict() == {"theme": "dark"}

    def test_load_sorts_into_canonical_order(self) -> None:
        store = MemoryKeyValueStore({
            UNRESOLVED_PREFIX + "zeta.com": "1",
            UNRESOLVED_PREFIX + "Alpha.com": "1",
            UNRESOLVED_PREFIX + "beta.com": "1",
            RESOLVED_PREFIX + "y.com": json.dumps([{"ip": "1.1.1.1", "serverName": None}]),
            RESOLVED_PREFIX + "X.com": json.dumps([{"ip": "2.2.2.2", "serverName": None}]),
        })

        snapshot = PersistenceAdapter(store).load()

        assert snapshot.unresolved == ["Alpha.com", "beta.com", "zeta.com"]
        assert [r.domain for r in snapshot.resolved] == ["X.com", "y.com"]

    def test_domain_in_both_partitions_kept_as_resolved(self) -> None:
        store = MemoryKeyValueStore({
            UNRESOLVED_PREFIX + "a.com": "1",
            RESOLVED_PREFIX + "a.com": json.dumps([{"ip": "1.1.1.1", "serverName": None}]),
        })

        snapshot = PersistenceAdapter(store).load()

        assert snapshot.unresolved == []
        assert [r.domain for r in snapshot.resolved] == ["a.com"]

    @pytest.mark.parametrize("value", ["not json", "{\"ip\": 1}", "[{\"no_ip\": true}]", "[]"])
    def test_malformed_resolved_value_raises(self, value: str) -> None:
        store = MemoryKeyValueStore({RESOLVED_PREFIX + "a.com": value})

        with pytest.raises(PersistenceError):
            PersistenceAdapter(store).load()


class TestLegacyMigration:
    """Whole-collection keys are read once and removed on the next save."""

    def _legacy_store(self) -> MemoryKeyValueStore:
        return MemoryKeyValueStore({
            "unresolvedDomains": json.dumps(["c.com", "a.com"]),
            "knownServers": json.dumps([{"name": "web1", "ip": "1.2.3.4"}]),
            "resolvedDomains": json.dumps([
                {"domain": "b.com", "ip": "1.2.3.4", "serverName": "web1",
                 "resolvedAt": "then", "timestamp": 1700000000},
            ]),
        })

    def test_legacy_collections_loaded(self) -> None:
        snapshot = PersistenceAdapter(self._legacy_store()).load()

        assert snapshot.unresolved == ["a.com", "c.com"]
        assert snapshot.known_servers == [KnownServer(name="web1", ip="1.2.3.4")]
        assert snapshot.resolved == [
            ResolvedRecord("b.com", "1.2.3.4", "web1", "then", 1700000000.0)
        ]

    def test_save_deletes_legacy_keys(self) -> None:
        store = self._legacy_store()
        adapter = PersistenceAdapter(store)

        snapshot = adapter.load()
        adapter.save(snapshot)

        assert not any(key in store.as_dict() for key in LEGACY_KEYS)
        assert adapter.load() == snapshot

    def test_per_entity_data_wins_over_legacy(self) -> None:
        store = self._legacy_store()
        store.set(SERVER_PREFIX + "web1", json.dumps({"ip": "9.9.9.9"}))
        store.set(RESOLVED_PREFIX + "b.com", json.dumps([{"ip": "8.8.8.8", "serverName": None}]))

        snapshot = PersistenceAdapter(store).load()

        assert snapshot.known_servers == [KnownServer(name="web1", ip="9.9.9.9")]
        assert [r.ip for r in snapshot.resolved] == ["8.8.8.8"]


class TestStateFileProtection:
    """The state file is HMAC-protected and written atomically."""

    def test_tampered_file_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state.json"
            store = JsonFileKeyValueStore(path, "secret")
            store.set(UNRESOLVED_PREFIX + "a.com", "1")

            raw = json.loads(path.read_text(encoding="utf-8"))
            raw["entries"][UNRESOLVED_PREFIX + "evil.com"] = "1"
            path.write_text(json.dumps(raw), encoding="utf-8")

            with pytest.raises(TamperingError):
                JsonFileKeyValueStore(path, "secret").load()

    def test_wrong_secret_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state.json"
            JsonFileKeyValueStore(path, "secret").set("k", "v")

            with pytest.raises(TamperingError):
                JsonFileKeyValueStore(path, "other").get("k")

    def test_corrupt_file_raises_persistence_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state.json"
            path.write_text("{broken", encoding="utf-8")

            with pytest.raises(PersistenceError):
                JsonFileKeyValueStore(path, "secret").keys()

    def test_missing_file_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = JsonFileKeyValueStore(Path(tmpdir) / "none.json", "secret")
            assert store.keys() == []
            assert not store.file_path.exists()

    def test_transaction_flushes_once_and_rolls_back(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state.json"
            store = JsonFileKeyValueStore(path, "secret")

            with store.transaction():
                store.set("a", "1")
                store.set("b", "2")
                assert not path.exists()
            assert JsonFileKeyValueStore(path, "secret").keys() == ["a", "b"]

            with pytest.raises(RuntimeError):
                with store.transaction():
                    store.delete("a")
                    raise RuntimeError("boom")
            assert store.keys() == ["a", "b"]
            assert JsonFileKeyValueStore(path, "secret").keys() == ["a", "b"]

    def test_memory_transaction_rolls_back(self) -> None:
        store = MemoryKeyValueStore({"a": "1"})

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.set("b", "2")
                raise RuntimeError("boom")

        assert store.as_dict() == {"a": "1"}
