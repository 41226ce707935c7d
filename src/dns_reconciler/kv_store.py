"""
Key-value stores backing the persistence adapter.

This module provides the synchronous key-value interface the reconciler
persists into, an in-memory implementation, and an HMAC-protected JSON
file implementation that detects tampering.
"""

import hashlib
import hmac
import json
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Protocol

from .exceptions import PersistenceError, TamperingError


class KeyValueStore(Protocol):
    """Synchronous string key-value store with enumeration."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> list[str]:
        """All keys in insertion order."""
        ...

    def transaction(self):
        """Context manager grouping writes into one flush."""
        ...


class MemoryKeyValueStore:
    """Dictionary-backed store, used for tests and simulation runs."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)

    @contextmanager
    def transaction(self) -> Iterator["MemoryKeyValueStore"]:
        backup = dict(self._data)
        try:
            yield self
        except BaseException:
            self._data = backup
            raise

    def as_dict(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileKeyValueStore:
    """
    Key-value store persisted to a JSON file with HMAC protection.

    Every write is flushed to disk immediately unless it happens inside
    ``transaction()``, in which case one flush happens when the outermost
    transaction exits. The file is replaced atomically.
    """

    VERSION = 1

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        """
        Initialize the file store.

        Args:
            file_path: Path to the state file (JSON format)
            hmac_secret: Secret key for HMAC computation
        """
        self._file_path = file_path
        self._hmac_secret = hmac_secret.encode("utf-8")
        self._data: Optional[dict[str, str]] = None
        self._depth = 0
        self._dirty = False

    @property
    def file_path(self) -> Path:
        """Get the state file path."""
        return self._file_path

    def load(self) -> dict[str, str]:
        """
        Load entries from file and validate HMAC.

        Returns:
            The stored entries (empty if the file does not exist)

        Raises:
            TamperingError: If HMAC validation fails
            PersistenceError: If file cannot be read or parsed
        """
        if not self._file_path.exists():
            self._data = {}
            return dict(self._data)

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse state file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read state file: {e}",
                details={"file_path": str(self._file_path)},
            )

        if not isinstance(raw_data, dict) or not isinstance(raw_data.get("entries", {}), dict):
            raise PersistenceError(
                code="parse_error",
                message="State file does not contain an entries object",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = raw_data.get("hmac", "")
        computed_hmac = self.compute_hmac({
            "version": raw_data.get("version"),
            "entries": raw_data.get("entries", {}),
            "last_updated": raw_data.get("last_updated"),
        })

        if not self.validate_hmac(stored_hmac, computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - data may have been tampered with",
                details={"file_path": str(self._file_path)},
            )

        self._data = {str(k): str(v) for k, v in raw_data.get("entries", {}).items()}
        return dict(self._data)

    def _entries(self) -> dict[str, str]:
        if self._data is None:
            self.load()
        return self._data

    def get(self, key: str) -> Optional[str]:
        return self._entries().get(key)

    def set(self, key: str, value: str) -> None:
        self._entries()[key] = value
        self._mark_dirty()

    def delete(self, key: str) -> None:
        entries = self._entries()
        if key in entries:
            del entries[key]
            self._mark_dirty()

    def keys(self) -> list[str]:
        return list(self._entries())

    @contextmanager
    def transaction(self) -> Iterator["JsonFileKeyValueStore"]:
        backup = dict(self._entries())
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            self._data = backup
            if self._depth == 0:
                self._dirty = False
            raise
        self._depth -= 1
        if self._depth == 0 and self._dirty:
            self.flush()

    def _mark_dirty(self) -> None:
        self._dirty = True
        if self._depth == 0:
            self.flush()

    def flush(self) -> None:
        """
        Write all entries to file with HMAC protection.

        Raises:
            PersistenceError: If file cannot be written
        """
        now = datetime.now(timezone.utc).isoformat()
        entries = self._entries()

        output_data = {
            "version": self.VERSION,
            "entries": entries,
            "last_updated": now,
            "hmac": self.compute_hmac({
                "version": self.VERSION,
                "entries": entries,
                "last_updated": now,
            }),
        }

        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._file_path.with_name(self._file_path.name + ".tmp")

        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                # Entry order is meaningful (known-server order), so no sort_keys
                json.dump(output_data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self._file_path)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write state file: {e}",
                details={"file_path": str(self._file_path)},
            )

        self._dirty = False

    def compute_hmac(self, data: dict) -> str:
        """
        Compute HMAC-SHA256 over serialized data.

        Args:
            data: Dictionary to compute HMAC over

        Returns:
            Hexadecimal HMAC string
        """
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def validate_hmac(self, stored_hmac: str, computed_hmac: str) -> bool:
        """Validate HMAC using constant-time comparison."""
        if not isinstance(stored_hmac, str) or not stored_hmac.isascii():
            return False
        return hmac.compare_digest(stored_hmac, computed_hmac)
