# src/minirt/runtime/dispatch.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Protocol, runtime_checkable

from minirt.modules.shared import AccountId
from minirt.runtime.errors import DispatchError, ModuleError, OtherError


@runtime_checkable
class Dispatcher(Protocol):
    """Something that executes calls on behalf of a sender.

    Modules and the runtime itself implement this. dispatch() returns None on
    success and raises DispatchError on failure; the call is consumed once.
    """

    def dispatch(self, call: Any, sender: AccountId) -> None: ...


@dataclass(frozen=True)
class DispatchReceipt:
    ok: bool
    module_id: Optional[str] = None
    reason: str = "ok"

    def __iter__(self) -> Iterator[Any]:
        """Allow `ok, err = runtime.try_dispatch(...)` unpacking in tests."""
        yield self.ok
        yield None if self.ok else self.error()

    def error(self) -> DispatchError:
        if self.ok:
            raise ValueError("receipt is not an error")
        if self.module_id is None:
            return OtherError(self.reason)
        return ModuleError(self.module_id, self.reason)

    def to_json(self) -> Dict[str, Any]:
        return {"ok": self.ok, "module_id": self.module_id, "reason": self.reason}

    @staticmethod
    def success() -> "DispatchReceipt":
        return DispatchReceipt(True)

    @staticmethod
    def failure(err: DispatchError) -> "DispatchReceipt":
        if isinstance(err, ModuleError):
            return DispatchReceipt(False, err.module_id, err.reason)
        return DispatchReceipt(False, None, str(err))


def unknown_call(module_id: str, call: Any) -> OtherError:
    return OtherError(f"{module_id}:unknown_call:{type(call).__name__}")


__all__ = ["DispatchReceipt", "Dispatcher", "unknown_call"]
