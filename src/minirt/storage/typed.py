# src/minirt/storage/typed.py
from __future__ import annotations

"""Typed storage items layered over a ByteStore and a Codec.

Key derivation:
  - StorageCell:  name bytes, exactly (b"TotalIssuance")
  - StorageTable: name bytes ++ b"_" ++ encode(key) (b"BalancesMap_" + u32 LE)

There is no cache. Every get() decodes and every set() encodes. A stored value
that fails to decode reads as None.
"""

import logging
from typing import Callable, Generic, Optional, TypeVar

from minirt.runtime.structured_logging import log_event
from minirt.storage.byte_store import ByteStore
from minirt.storage.codec import Codec, CodecError

K = TypeVar("K")
V = TypeVar("V")

TABLE_KEY_SEPARATOR = b"_"

_log = logging.getLogger("minirt.storage")


def _name_bytes(name: str) -> bytes:
    s = str(name or "")
    if not s:
        raise ValueError("storage item name must be non-empty")
    return s.encode("ascii")


def _decode_or_none(codec: Codec[V], raw: Optional[bytes], key: bytes) -> Optional[V]:
    if raw is None:
        return None
    try:
        return codec.decode(raw)
    except CodecError as e:
        # Unreadable bytes are indistinguishable from "never written" for callers.
        log_event(_log, "storage_decode_failed", level=logging.DEBUG, key=key.hex(), code=e.code, error=str(e))
        return None


class StorageCell(Generic[V]):
    """A single typed value stored under a fixed key."""

    def __init__(self, store: ByteStore, name: str, codec: Codec[V]) -> None:
        self._store = store
        self.name = str(name)
        self._key = _name_bytes(name)
        self.codec = codec

    def raw_key(self) -> bytes:
        return self._key

    def get(self) -> Optional[V]:
        return _decode_or_none(self.codec, self._store.get(self._key), self._key)

    def exists(self) -> bool:
        return self.get() is not None

    def set(self, value: V) -> None:
        self._store.set(self._key, self.codec.encode(value))

    def clear(self) -> None:
        self._store.clear(self._key)

    def mutate(self, f: Callable[[Optional[V]], Optional[V]]) -> None:
        """Read, transform, write back. A None result clears the cell."""
        new_value = f(self.get())
        if new_value is None:
            self.clear()
        else:
            self.set(new_value)


class StorageTable(Generic[K, V]):
    """A typed key -> value map sharing one name prefix."""

    def __init__(self, store: ByteStore, name: str, key_codec: Codec[K], value_codec: Codec[V]) -> None:
        self._store = store
        self.name = str(name)
        self._prefix = _name_bytes(name) + TABLE_KEY_SEPARATOR
        self.key_codec = key_codec
        self.value_codec = value_codec

    def raw_key(self, key: K) -> bytes:
        return self._prefix + self.key_codec.encode(key)

    def get(self, key: K) -> Optional[V]:
        raw_key = self.raw_key(key)
        return _decode_or_none(self.value_codec, self._store.get(raw_key), raw_key)

    def exists(self, key: K) -> bool:
        return self.get(key) is not None

    def set(self, key: K, value: V) -> None:
        self._store.set(self.raw_key(key), self.value_codec.encode(value))

    def clear(self, key: K) -> None:
        self._store.clear(self.raw_key(key))

    def mutate(self, key: K, f: Callable[[Optional[V]], Optional[V]]) -> None:
        new_value = f(self.get(key))
        if new_value is None:
            self.clear(key)
        else:
            self.set(key, new_value)


__all__ = ["StorageCell", "StorageTable", "TABLE_KEY_SEPARATOR"]
