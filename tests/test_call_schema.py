from __future__ import annotations

import pytest

from conftest import ALICE, BOB, MINTER
from minirt.modules.currency import Mint, Transfer, TransferAll
from minirt.modules.shared import AccountId
from minirt.modules.staking import Bond
from minirt.runtime.call_schema import parse_call
from minirt.runtime.composition import CallTag, Runtime, RuntimeCall
from minirt.runtime.errors import OtherError


def test_parse_each_call() -> None:
    assert parse_call({"module": "currency", "call": "mint", "args": {"dest": 7, "amount": 100}}) == (
        "currency",
        Mint(dest=AccountId(7), amount=100),
    )
    assert parse_call({"module": "currency", "call": "transfer", "args": {"dest": 10, "amount": 20}}) == (
        "currency",
        Transfer(dest=AccountId(10), amount=20),
    )
    assert parse_call({"module": "Currency", "call": "TRANSFER_ALL", "args": {"dest": 10}}) == (
        "currency",
        TransferAll(dest=AccountId(10)),
    )
    assert parse_call({"module": "staking", "call": "bond", "args": {"amount": 5}}) == ("staking", Bond(amount=5))


def test_runtime_call_from_json() -> None:
    call = RuntimeCall.from_json({"module": "staking", "call": "bond", "args": {"amount": 5}})
    assert call == RuntimeCall(CallTag.STAKING, Bond(amount=5))


@pytest.mark.parametrize(
    "envelope, reason",
    [
        ([], "schema:envelope_not_object"),
        ({"module": "currency"}, "schema:envelope_invalid"),
        ({"module": "currency", "call": "transfer", "args": {}, "sig": "x"}, "schema:envelope_invalid"),
        ({"module": "currency", "call": "unreserve", "args": {"amount": 1}}, "schema:unknown_call"),
        ({"module": "governance", "call": "bond", "args": {"amount": 1}}, "schema:unknown_call"),
        ({"module": "currency", "call": "transfer", "args": {"dest": 10}}, "schema:args_invalid"),
        ({"module": "currency", "call": "transfer", "args": {"dest": "10", "amount": 1}}, "schema:args_invalid"),
        ({"module": "currency", "call": "transfer", "args": {"dest": 10, "amount": -1}}, "schema:args_invalid"),
        ({"module": "currency", "call": "transfer", "args": {"dest": 2**32, "amount": 1}}, "schema:args_invalid"),
        ({"module": "staking", "call": "bond", "args": {"amount": 1, "extra": True}}, "schema:args_invalid"),
    ],
)
def test_malformed_envelopes_are_rejected(envelope, reason) -> None:
    with pytest.raises(OtherError) as e:
        parse_call(envelope)
    assert e.value.reason.startswith(reason)


def test_dispatch_json_end_to_end(runtime: Runtime) -> None:
    runtime.dispatch_json({"module": "currency", "call": "mint", "args": {"dest": 7, "amount": 100}}, MINTER)
    runtime.dispatch_json({"module": "currency", "call": "transfer", "args": {"dest": 10, "amount": 20}}, ALICE)
    runtime.dispatch_json({"module": "staking", "call": "bond", "args": {"amount": 30}}, ALICE)

    assert runtime.currency.free_balance(ALICE) == 50
    assert runtime.currency.reserved_balance(ALICE) == 30
    assert runtime.currency.free_balance(BOB) == 20
