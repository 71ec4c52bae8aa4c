# src/minirt/storage/byte_store.py
from __future__ import annotations

import os
import random
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional, Protocol

Key = bytes
Value = bytes
Changes = Mapping[Key, Optional[Value]]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


def _check_key(key: bytes) -> bytes:
    if not isinstance(key, (bytes, bytearray)):
        raise TypeError(f"storage key must be bytes, got {type(key).__name__}")
    return bytes(key)


class ByteStore(Protocol):
    """Raw key -> value map over opaque byte strings."""

    def get(self, key: Key) -> Optional[Value]: ...

    def set(self, key: Key, value: Value) -> None: ...

    def clear(self, key: Key) -> None: ...

    def apply_batch(self, changes: Changes) -> None:
        """Write every change at once. A None value clears the key."""
        ...


class MemoryByteStore:
    """Process-lifetime byte store backed by a dict."""

    def __init__(self) -> None:
        self._data: Dict[Key, Value] = {}
        self._lock = threading.Lock()

    def get(self, key: Key) -> Optional[Value]:
        with self._lock:
            return self._data.get(_check_key(key))

    def set(self, key: Key, value: Value) -> None:
        with self._lock:
            self._data[_check_key(key)] = bytes(value)

    def clear(self, key: Key) -> None:
        with self._lock:
            self._data.pop(_check_key(key), None)

    def apply_batch(self, changes: Changes) -> None:
        with self._lock:
            for k, v in changes.items():
                if v is None:
                    self._data.pop(_check_key(k), None)
                else:
                    self._data[_check_key(k)] = bytes(v)

    def keys(self) -> list[Key]:
        with self._lock:
            return sorted(self._data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class SqliteByteStore:
    """Durable byte store in a single SQLite file.

    One connection per operation; batches are written inside a single
    BEGIN IMMEDIATE transaction so a batch is either fully applied or not at all.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)
        self.init_schema()

    def _connect(self) -> sqlite3.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        timeout_s = float(_env_int("MINIRT_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0
        con = sqlite3.connect(
            self.path,
            timeout=timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.execute("PRAGMA journal_mode=WAL;")
        con.execute("PRAGMA synchronous=FULL;")
        con.execute(f"PRAGMA busy_timeout={int(timeout_s * 1000)};")
        return con

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return "database is locked" in msg or "database is busy" in msg

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Write transaction with bounded retry on writer-lock contention."""
        deadline_ts = _now_ms() + max(250, _env_int("MINIRT_SQLITE_WRITE_DEADLINE_MS", 10_000))
        base_sleep = 0.005
        max_sleep = 0.25

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
                    time.sleep(sleep_s * (0.5 + random.random()))
                    attempt += 1

            try:
                yield con
                con.execute("COMMIT;")
            except Exception:
                con.execute("ROLLBACK;")
                raise

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute("CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL);")
            con.execute("CREATE TABLE IF NOT EXISTS kv (k BLOB PRIMARY KEY, v BLOB NOT NULL);")
            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            elif int(row[0]) != self.SCHEMA_VERSION:
                raise RuntimeError(
                    f"sqlite schema_version mismatch: have={row[0]} want={self.SCHEMA_VERSION}. "
                    "Refuse to start to avoid corrupting data."
                )

    def get(self, key: Key) -> Optional[Value]:
        with self.connection() as con:
            row = con.execute("SELECT v FROM kv WHERE k=?;", (_check_key(key),)).fetchone()
            return None if row is None else bytes(row[0])

    def set(self, key: Key, value: Value) -> None:
        self.apply_batch({key: value})

    def clear(self, key: Key) -> None:
        self.apply_batch({key: None})

    def apply_batch(self, changes: Changes) -> None:
        if not changes:
            return
        with self.write_tx() as con:
            for k, v in changes.items():
                if v is None:
                    con.execute("DELETE FROM kv WHERE k=?;", (_check_key(k),))
                else:
                    con.execute(
                        "INSERT INTO kv(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v;",
                        (_check_key(k), bytes(v)),
                    )


class StorageOverlay:
    """Write buffer over a ByteStore.

    Reads see buffered writes first. Nothing reaches the backing store until
    commit(), which hands every buffered change to apply_batch() in one go.
    """

    def __init__(self, backend: ByteStore) -> None:
        self._backend = backend
        self._pending: Dict[Key, Optional[Value]] = {}

    @property
    def pending(self) -> Dict[Key, Optional[Value]]:
        return dict(self._pending)

    def get(self, key: Key) -> Optional[Value]:
        k = _check_key(key)
        if k in self._pending:
            return self._pending[k]
        return self._backend.get(k)

    def set(self, key: Key, value: Value) -> None:
        self._pending[_check_key(key)] = bytes(value)

    def clear(self, key: Key) -> None:
        self._pending[_check_key(key)] = None

    def apply_batch(self, changes: Changes) -> None:
        for k, v in changes.items():
            self._pending[_check_key(k)] = None if v is None else bytes(v)

    def commit(self) -> int:
        n = len(self._pending)
        if n:
            self._backend.apply_batch(self._pending)
        self._pending = {}
        return n

    def discard(self) -> None:
        self._pending = {}


class TransactionalStore:
    """ByteStore front that routes through a StorageOverlay while a transaction is open.

    Outside a transaction, reads and writes go straight to the backend.
    Nested transaction() calls join the outermost one. The open overlay belongs
    to the thread that opened it; other threads only see committed state.
    """

    def __init__(self, backend: ByteStore) -> None:
        self.backend = backend
        self._local = threading.local()

    @property
    def _overlay(self) -> Optional[StorageOverlay]:
        return getattr(self._local, "overlay", None)

    @property
    def in_transaction(self) -> bool:
        return self._overlay is not None

    def _target(self) -> ByteStore:
        overlay = self._overlay
        return overlay if overlay is not None else self.backend

    def get(self, key: Key) -> Optional[Value]:
        return self._target().get(key)

    def set(self, key: Key, value: Value) -> None:
        self._target().set(key, value)

    def clear(self, key: Key) -> None:
        self._target().clear(key)

    def apply_batch(self, changes: Changes) -> None:
        self._target().apply_batch(changes)

    @contextmanager
    def transaction(self) -> Iterator[StorageOverlay]:
        current = self._overlay
        if current is not None:
            yield current
            return

        overlay = StorageOverlay(self.backend)
        self._local.overlay = overlay
        try:
            yield overlay
        except BaseException:
            overlay.discard()
            raise
        finally:
            self._local.overlay = None
        overlay.commit()


__all__ = [
    "ByteStore",
    "Changes",
    "Key",
    "MemoryByteStore",
    "SqliteByteStore",
    "StorageOverlay",
    "TransactionalStore",
    "Value",
]
