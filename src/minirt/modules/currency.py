# src/minirt/modules/currency.py
from __future__ import annotations

"""Currency ledger module.

Storage:
  - TotalIssuance: StorageCell[int]
  - BalancesMap:   StorageTable[AccountId, AccountBalance]

Invariants (checked before anything is written):
  - every stored record has free == 0 or free >= minimum_balance
  - TotalIssuance == sum(free + reserved) over every stored record
  - balances never leave [0, balance_type.max_value]

Mint adds to both the destination and TotalIssuance. Records are never
deleted, even when free and reserved both reach zero.
"""

from dataclasses import dataclass, replace
from typing import Any, Optional, Union

from minirt.modules.shared import ACCOUNT_ID_CODEC, AccountId, BalanceType, CurrencyError
from minirt.runtime.dispatch import unknown_call
from minirt.runtime.errors import ModuleError, OtherError
from minirt.storage.byte_store import ByteStore
from minirt.storage.codec import RecordCodec
from minirt.storage.typed import StorageCell, StorageTable

TOTAL_ISSUANCE_NAME = "TotalIssuance"
BALANCES_NAME = "BalancesMap"


@dataclass(frozen=True)
class CurrencyConfig:
    module_id: str
    minter: AccountId
    minimum_balance: int
    balance_type: BalanceType


@dataclass(frozen=True)
class AccountBalance:
    free: int = 0
    reserved: int = 0

    @property
    def total(self) -> int:
        return self.free + self.reserved


# ---------------------------------------------------------------------------
# Calls
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Mint:
    dest: AccountId
    amount: int


@dataclass(frozen=True)
class Transfer:
    dest: AccountId
    amount: int


@dataclass(frozen=True)
class TransferAll:
    dest: AccountId


CurrencyCall = Union[Mint, Transfer, TransferAll]


class CurrencyModule:
    def __init__(self, store: ByteStore, config: CurrencyConfig) -> None:
        self.config = config
        bt = config.balance_type
        self.total_issuance_cell: StorageCell[int] = StorageCell(store, TOTAL_ISSUANCE_NAME, bt.codec)
        self.balances: StorageTable[AccountId, AccountBalance] = StorageTable(
            store,
            BALANCES_NAME,
            ACCOUNT_ID_CODEC,
            RecordCodec(AccountBalance, [bt.codec, bt.codec]),
        )

    @property
    def module_id(self) -> str:
        return self.config.module_id

    def error(self, kind: CurrencyError) -> ModuleError:
        return ModuleError(self.config.module_id, kind.value)

    def _amount(self, amount: Any) -> int:
        if not self.config.balance_type.contains(amount):
            raise OtherError(f"{self.module_id}:amount_out_of_range:{amount!r}")
        return int(amount)

    def _meets_floor(self, free: int) -> bool:
        return free == 0 or free >= self.config.minimum_balance

    # ---- balance arithmetic (pure; returns the updated record or raises) ----

    def _after_send(self, acct: AccountBalance, amount: int) -> AccountBalance:
        free = self.config.balance_type.checked_sub(acct.free, amount)
        if free is None or not self._meets_floor(free):
            raise self.error(CurrencyError.INSUFFICIENT_FUNDS)
        return replace(acct, free=free)

    def _after_receive(self, acct: AccountBalance, amount: int) -> AccountBalance:
        free = self.config.balance_type.checked_add(acct.free, amount)
        if free is None:
            raise self.error(CurrencyError.OVERFLOW)
        if free < self.config.minimum_balance:
            raise self.error(CurrencyError.INSUFFICIENT_FUNDS)
        return replace(acct, free=free)

    def _new_account(self, amount: int) -> AccountBalance:
        if amount < self.config.minimum_balance:
            raise self.error(CurrencyError.INSUFFICIENT_FUNDS)
        return AccountBalance(free=amount, reserved=0)

    def _existing(self, who: AccountId) -> AccountBalance:
        acct = self.balances.get(who)
        if acct is None:
            raise self.error(CurrencyError.DOES_NOT_EXIST)
        return acct

    # ---- reads ----

    def account(self, who: AccountId) -> Optional[AccountBalance]:
        return self.balances.get(who)

    def free_balance(self, who: AccountId) -> Optional[int]:
        acct = self.balances.get(who)
        return None if acct is None else acct.free

    def reserved_balance(self, who: AccountId) -> Optional[int]:
        acct = self.balances.get(who)
        return None if acct is None else acct.reserved

    def total_issuance(self) -> int:
        v = self.total_issuance_cell.get()
        return 0 if v is None else v

    # ---- state transitions ----

    def reserve(self, who: AccountId, amount: int) -> None:
        amount = self._amount(amount)
        acct = self._existing(who)

        free = self.config.balance_type.checked_sub(acct.free, amount)
        if free is None or not self._meets_floor(free):
            raise self.error(CurrencyError.INSUFFICIENT_FUNDS)
        reserved = self.config.balance_type.checked_add(acct.reserved, amount)
        if reserved is None:
            raise self.error(CurrencyError.OVERFLOW)

        self.balances.mutate(who, lambda _: AccountBalance(free=free, reserved=reserved))

    def unreserve(self, who: AccountId, amount: int) -> None:
        amount = self._amount(amount)
        acct = self._existing(who)

        reserved = self.config.balance_type.checked_sub(acct.reserved, amount)
        if reserved is None:
            raise self.error(CurrencyError.INSUFFICIENT_FUNDS)
        free = self.config.balance_type.checked_add(acct.free, amount)
        if free is None:
            raise self.error(CurrencyError.OVERFLOW)
        if not self._meets_floor(free):
            raise self.error(CurrencyError.INSUFFICIENT_FUNDS)

        self.balances.mutate(who, lambda _: AccountBalance(free=free, reserved=reserved))

    def transfer(self, sender: AccountId, dest: AccountId, amount: int) -> None:
        amount = self._amount(amount)
        src_after = self._after_send(self._existing(sender), amount)
        if dest == sender:
            return

        dst = self.balances.get(dest)
        dst_after = self._new_account(amount) if dst is None else self._after_receive(dst, amount)

        self.balances.set(sender, src_after)
        self.balances.set(dest, dst_after)

    def transfer_all(self, sender: AccountId, dest: AccountId) -> None:
        src = self._existing(sender)
        dst = self._existing(dest)
        if dest == sender:
            return

        amount = src.free
        src_after = replace(src, free=0)
        dst_after = self._after_receive(dst, amount)

        self.balances.set(sender, src_after)
        self.balances.set(dest, dst_after)

    def mint(self, sender: AccountId, dest: AccountId, amount: int) -> None:
        if sender != self.config.minter:
            raise self.error(CurrencyError.NOT_ALLOWED)
        amount = self._amount(amount)

        issuance = self.config.balance_type.checked_add(self.total_issuance(), amount)
        if issuance is None:
            raise self.error(CurrencyError.OVERFLOW)

        dst = self.balances.get(dest)
        dst_after = self._new_account(amount) if dst is None else self._after_receive(dst, amount)

        self.balances.set(dest, dst_after)
        self.total_issuance_cell.set(issuance)

    # ---- dispatch ----

    def dispatch(self, call: CurrencyCall, sender: AccountId) -> None:
        if isinstance(call, Mint):
            return self.mint(sender, call.dest, call.amount)
        if isinstance(call, Transfer):
            return self.transfer(sender, call.dest, call.amount)
        if isinstance(call, TransferAll):
            return self.transfer_all(sender, call.dest)
        raise unknown_call(self.module_id, call)

    def currency(self) -> "CurrencyAdapter":
        return CurrencyAdapter(self)


class CurrencyAdapter:
    """The four operations other modules may use. See shared.Currency."""

    def __init__(self, module: CurrencyModule) -> None:
        self._module = module

    def transfer(self, sender: AccountId, dest: AccountId, amount: int) -> None:
        self._module.transfer(sender, dest, amount)

    def reserve(self, who: AccountId, amount: int) -> None:
        self._module.reserve(who, amount)

    def free_balance(self, who: AccountId) -> Optional[int]:
        return self._module.free_balance(who)

    def reserved_balance(self, who: AccountId) -> Optional[int]:
        return self._module.reserved_balance(who)


__all__ = [
    "AccountBalance",
    "BALANCES_NAME",
    "CurrencyAdapter",
    "CurrencyCall",
    "CurrencyConfig",
    "CurrencyError",
    "CurrencyModule",
    "Mint",
    "TOTAL_ISSUANCE_NAME",
    "Transfer",
    "TransferAll",
]
