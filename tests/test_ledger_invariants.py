from __future__ import annotations

import random

import pytest

from conftest import MINTER
from minirt.modules.currency import Mint, Transfer, TransferAll
from minirt.modules.shared import AccountId
from minirt.modules.staking import Bond
from minirt.runtime.composition import Runtime, RuntimeCall
from minirt.runtime.errors import ModuleError

ACCOUNTS = [AccountId(i) for i in range(1, 7)]


def _check_invariants(rt: Runtime) -> None:
    m = rt.config.minimum_balance
    total = 0
    for who in ACCOUNTS + [MINTER]:
        acct = rt.currency.account(who)
        if acct is None:
            continue
        assert acct.free == 0 or acct.free >= m, (who, acct)
        total += acct.total
    assert rt.currency.total_issuance() == total


def _random_call(rng: random.Random):
    kind = rng.choice(["mint", "transfer", "transfer_all", "bond", "reserve", "unreserve"])
    dest = rng.choice(ACCOUNTS)
    amount = rng.choice([0, 1, 3, 5, 7, 20, 50, 100, 250])
    sender = MINTER if kind == "mint" and rng.random() < 0.9 else rng.choice(ACCOUNTS)
    return kind, sender, dest, amount


@pytest.mark.parametrize("seed", [1, 7, 42, 1337])
def test_random_call_sequences_preserve_floor_and_issuance(make_runtime, seed: int) -> None:
    rng = random.Random(seed)
    rt = make_runtime(balance_type="u32")
    for _ in range(400):
        kind, sender, dest, amount = _random_call(rng)
        if kind == "mint":
            rt.try_dispatch(RuntimeCall.currency(Mint(dest=dest, amount=amount)), sender)
        elif kind == "transfer":
            rt.try_dispatch(RuntimeCall.currency(Transfer(dest=dest, amount=amount)), sender)
        elif kind == "transfer_all":
            rt.try_dispatch(RuntimeCall.currency(TransferAll(dest=dest)), sender)
        elif kind == "bond":
            rt.try_dispatch(RuntimeCall.staking(Bond(amount=amount)), sender)
        else:
            op = rt.currency.reserve if kind == "reserve" else rt.currency.unreserve
            try:
                with rt.store.transaction():
                    op(sender, amount)
            except ModuleError:
                pass
        _check_invariants(rt)

    assert rt.counters.get("dispatch_ok") > 0
    assert rt.counters.get("dispatch_err") > 0
