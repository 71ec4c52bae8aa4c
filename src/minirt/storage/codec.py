# src/minirt/storage/codec.py
from __future__ import annotations

"""Deterministic binary codec for values persisted in the byte store.

Encoding rules:
  - unsigned integers: fixed-width little-endian (u32 = 4 bytes, u64 = 8, u128 = 16)
  - records: concatenation of their field encodings, in declaration order

Decoding is strict: the input must be exactly the expected width. Trailing or
missing bytes raise CodecError.
"""

import struct
from dataclasses import fields, is_dataclass
from typing import Any, Generic, Sequence, Tuple, Type, TypeVar

T = TypeVar("T")


class CodecError(ValueError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


class Codec(Generic[T]):
    """Encode/decode pair for one value type."""

    width: int = 0

    def encode(self, value: T) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def decode_prefix(self, data: bytes) -> Tuple[T, bytes]:  # pragma: no cover
        """Decode one value from the front of `data`, returning (value, rest)."""
        raise NotImplementedError

    def decode(self, data: bytes) -> T:
        value, rest = self.decode_prefix(bytes(data))
        if rest:
            raise CodecError("trailing_bytes", f"{len(rest)} trailing byte(s) after value")
        return value


_STRUCT_FMT = {32: "<I", 64: "<Q"}


class UIntCodec(Codec[int]):
    """Fixed-width little-endian unsigned integer."""

    def __init__(self, bits: int) -> None:
        if bits not in (32, 64, 128):
            raise ValueError(f"unsupported integer width: {bits}")
        self.bits = int(bits)
        self.width = self.bits // 8
        self.max_value = (1 << self.bits) - 1

    def __repr__(self) -> str:
        return f"UIntCodec(u{self.bits})"

    def encode(self, value: int) -> bytes:
        if isinstance(value, bool) or not isinstance(value, int):
            raise CodecError("invalid_int", f"u{self.bits} expects int, got {type(value).__name__}")
        if value < 0 or value > self.max_value:
            raise CodecError("int_out_of_range", f"{value} does not fit in u{self.bits}")
        fmt = _STRUCT_FMT.get(self.bits)
        if fmt is not None:
            return struct.pack(fmt, value)
        return value.to_bytes(self.width, "little")

    def decode_prefix(self, data: bytes) -> Tuple[int, bytes]:
        if len(data) < self.width:
            raise CodecError("short_input", f"u{self.bits} needs {self.width} bytes, got {len(data)}")
        head, rest = data[: self.width], data[self.width :]
        fmt = _STRUCT_FMT.get(self.bits)
        if fmt is not None:
            (value,) = struct.unpack(fmt, head)
        else:
            value = int.from_bytes(head, "little")
        return int(value), rest


U32 = UIntCodec(32)
U64 = UIntCodec(64)
U128 = UIntCodec(128)


class RecordCodec(Codec[T]):
    """Codec for a dataclass whose fields are encoded back to back."""

    def __init__(self, cls: Type[T], field_codecs: Sequence[Codec[Any]]) -> None:
        if not is_dataclass(cls):
            raise TypeError(f"RecordCodec expects a dataclass, got {cls!r}")
        names = [f.name for f in fields(cls)]
        if len(names) != len(field_codecs):
            raise ValueError(f"{cls.__name__} has {len(names)} fields but {len(field_codecs)} codecs were given")
        self.cls = cls
        self._names = names
        self._codecs = list(field_codecs)
        self.width = sum(c.width for c in self._codecs)

    def encode(self, value: T) -> bytes:
        if not isinstance(value, self.cls):
            raise CodecError("invalid_record", f"expected {self.cls.__name__}, got {type(value).__name__}")
        return b"".join(c.encode(getattr(value, n)) for n, c in zip(self._names, self._codecs))

    def decode_prefix(self, data: bytes) -> Tuple[T, bytes]:
        values = {}
        rest = data
        for name, codec in zip(self._names, self._codecs):
            values[name], rest = codec.decode_prefix(rest)
        return self.cls(**values), rest


__all__ = ["Codec", "CodecError", "RecordCodec", "U128", "U32", "U64", "UIntCodec"]
