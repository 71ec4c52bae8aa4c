# src/minirt/modules/shared.py
from __future__ import annotations

"""Types shared by every runtime module.

Modules depend on each other only through the protocols in this file, never by
importing one another.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Protocol, runtime_checkable

from minirt.storage.codec import U32, U64, U128, RecordCodec, UIntCodec


@dataclass(frozen=True, order=True)
class AccountId:
    """Opaque u32 account identifier."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"AccountId expects int, got {type(self.value).__name__}")
        if self.value < 0 or self.value > U32.max_value:
            raise ValueError(f"AccountId out of u32 range: {self.value}")

    def __repr__(self) -> str:
        return f"AccountId({self.value})"


ACCOUNT_ID_CODEC: RecordCodec[AccountId] = RecordCodec(AccountId, [U32])


@dataclass(frozen=True)
class BalanceType:
    """Concrete unsigned balance width with checked arithmetic.

    Balances are plain ints; checked_add/checked_sub return None instead of
    leaving the [0, max_value] range.
    """

    name: str
    codec: UIntCodec

    @property
    def zero(self) -> int:
        return 0

    @property
    def max_value(self) -> int:
        return self.codec.max_value

    def contains(self, value: int) -> bool:
        return not isinstance(value, bool) and isinstance(value, int) and 0 <= value <= self.max_value

    def checked_add(self, a: int, b: int) -> Optional[int]:
        out = int(a) + int(b)
        return out if out <= self.max_value else None

    def checked_sub(self, a: int, b: int) -> Optional[int]:
        out = int(a) - int(b)
        return out if out >= 0 else None


BALANCE_U32 = BalanceType("u32", U32)
BALANCE_U64 = BalanceType("u64", U64)
BALANCE_U128 = BalanceType("u128", U128)

BALANCE_TYPES: Dict[str, BalanceType] = {bt.name: bt for bt in (BALANCE_U32, BALANCE_U64, BALANCE_U128)}


def balance_type_by_name(name: str) -> BalanceType:
    key = str(name or "").strip().lower()
    bt = BALANCE_TYPES.get(key)
    if bt is None:
        raise ValueError(f"unknown balance type {name!r}; expected one of {sorted(BALANCE_TYPES)}")
    return bt


class CurrencyError(str, Enum):
    """Reasons a Currency implementation fails with, tagged with its module id."""

    DOES_NOT_EXIST = "DoesNotExist"
    NOT_ALLOWED = "NotAllowed"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    OVERFLOW = "Overflow"


@runtime_checkable
class Currency(Protocol):
    """What a module may do with another module's funds.

    Deliberately excludes mint, unreserve and direct storage access.
    """

    def transfer(self, sender: AccountId, dest: AccountId, amount: int) -> None: ...

    def reserve(self, who: AccountId, amount: int) -> None: ...

    def free_balance(self, who: AccountId) -> Optional[int]: ...

    def reserved_balance(self, who: AccountId) -> Optional[int]: ...


__all__ = [
    "ACCOUNT_ID_CODEC",
    "AccountId",
    "BALANCE_TYPES",
    "BALANCE_U128",
    "BALANCE_U32",
    "BALANCE_U64",
    "BalanceType",
    "Currency",
    "CurrencyError",
    "balance_type_by_name",
]
