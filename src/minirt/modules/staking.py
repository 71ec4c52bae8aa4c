# src/minirt/modules/staking.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from minirt.modules.shared import AccountId, Currency, CurrencyError
from minirt.runtime.dispatch import unknown_call
from minirt.runtime.errors import ModuleError


@dataclass(frozen=True)
class StakingConfig:
    module_id: str
    currency: Currency
    currency_module_id: str


@dataclass(frozen=True)
class Bond:
    amount: int


StakingCall = Union[Bond]


class StakingModule:
    """Bonds funds by reserving them through the Currency capability.

    Holds no storage and has no errors of its own: every failure carries the
    currency's module id. There is no unbond.
    """

    def __init__(self, config: StakingConfig) -> None:
        if not isinstance(config.currency, Currency):
            raise TypeError(f"staking currency must implement Currency, got {type(config.currency).__name__}")
        self.config = config

    @property
    def module_id(self) -> str:
        return self.config.module_id

    def bond(self, sender: AccountId, amount: int) -> None:
        if self.config.currency.free_balance(sender) is None:
            raise ModuleError(self.config.currency_module_id, CurrencyError.DOES_NOT_EXIST.value)
        self.config.currency.reserve(sender, amount)

    def dispatch(self, call: StakingCall, sender: AccountId) -> None:
        if isinstance(call, Bond):
            return self.bond(sender, call.amount)
        raise unknown_call(self.module_id, call)


__all__ = ["Bond", "StakingCall", "StakingConfig", "StakingModule"]
