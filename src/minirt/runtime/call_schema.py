from __future__ import annotations

"""Call envelope schemas.

A call arrives as a JSON object:

    {"module": "currency", "call": "transfer", "args": {"dest": 10, "amount": 20}}

Envelopes and their args are shape-checked with strict pydantic models
(unknown keys rejected, ints only). Module logic still enforces semantics such
as balance ranges; these models only stop malformed input from reaching it.
"""

from typing import Any, Dict, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from minirt.modules.currency import Mint, Transfer, TransferAll
from minirt.modules.shared import AccountId
from minirt.modules.staking import Bond
from minirt.runtime.errors import OtherError

Json = Dict[str, Any]

_U32_MAX = (1 << 32) - 1


class _StrictModel(BaseModel):
    """Strict model: reject unknown keys."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class CallEnvelope(_StrictModel):
    module: str = Field(..., min_length=1)
    call: str = Field(..., min_length=1)
    args: Json = Field(default_factory=dict)


class MintArgs(_StrictModel):
    dest: StrictInt = Field(..., ge=0, le=_U32_MAX)
    amount: StrictInt = Field(..., ge=0)

    def build(self) -> Mint:
        return Mint(dest=AccountId(self.dest), amount=self.amount)


class TransferArgs(_StrictModel):
    dest: StrictInt = Field(..., ge=0, le=_U32_MAX)
    amount: StrictInt = Field(..., ge=0)

    def build(self) -> Transfer:
        return Transfer(dest=AccountId(self.dest), amount=self.amount)


class TransferAllArgs(_StrictModel):
    dest: StrictInt = Field(..., ge=0, le=_U32_MAX)

    def build(self) -> TransferAll:
        return TransferAll(dest=AccountId(self.dest))


class BondArgs(_StrictModel):
    amount: StrictInt = Field(..., ge=0)

    def build(self) -> Bond:
        return Bond(amount=self.amount)


CALL_SCHEMAS: Dict[Tuple[str, str], Type[_StrictModel]] = {
    ("currency", "mint"): MintArgs,
    ("currency", "transfer"): TransferArgs,
    ("currency", "transfer_all"): TransferAllArgs,
    ("staking", "bond"): BondArgs,
}


def parse_call(envelope: Any) -> Tuple[str, Any]:
    """Validate an envelope and return (module, call object).

    Raises OtherError with a stable reason on any shape problem.
    """
    if not isinstance(envelope, dict):
        raise OtherError("schema:envelope_not_object")
    try:
        env = CallEnvelope(**envelope)
    except ValidationError as ve:
        raise OtherError(f"schema:envelope_invalid:{_first_error(ve)}") from ve

    module = env.module.strip().lower()
    name = env.call.strip().lower()
    sch = CALL_SCHEMAS.get((module, name))
    if sch is None:
        raise OtherError(f"schema:unknown_call:{module}.{name}")

    try:
        args = sch(**env.args)
    except ValidationError as ve:
        raise OtherError(f"schema:args_invalid:{module}.{name}:{_first_error(ve)}") from ve
    return module, args.build()  # type: ignore[attr-defined]


def _first_error(ve: ValidationError) -> str:
    errs = ve.errors()
    if not errs:
        return "unknown"
    loc = ".".join(str(p) for p in errs[0].get("loc", ())) or "_"
    return f"{loc}:{errs[0].get('type', 'invalid')}"


__all__ = ["CALL_SCHEMAS", "CallEnvelope", "parse_call"]
