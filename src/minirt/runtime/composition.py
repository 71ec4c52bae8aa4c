# src/minirt/runtime/composition.py
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from minirt.modules.currency import CurrencyCall, CurrencyConfig, CurrencyModule
from minirt.modules.shared import AccountId
from minirt.modules.staking import StakingCall, StakingConfig, StakingModule
from minirt.runtime.call_schema import parse_call
from minirt.runtime.config import (
    RuntimeConfig,
    default_runtime_config,
    load_runtime_config,
    open_store,
    validate_runtime_config,
)
from minirt.runtime.dispatch import DispatchReceipt, Dispatcher
from minirt.runtime.errors import DispatchError, OtherError
from minirt.runtime.metrics import Counters
from minirt.runtime.structured_logging import configure_structured_logging, log_event
from minirt.storage.byte_store import ByteStore, TransactionalStore

Json = Dict[str, Any]

_log = logging.getLogger("minirt.runtime")


class CallTag(str, Enum):
    CURRENCY = "currency"
    STAKING = "staking"


@dataclass(frozen=True)
class RuntimeCall:
    """Outer call: one module's call, tagged with the module it belongs to."""

    tag: CallTag
    call: Union[CurrencyCall, StakingCall]

    def __post_init__(self) -> None:
        object.__setattr__(self, "tag", CallTag(self.tag))

    @classmethod
    def currency(cls, call: CurrencyCall) -> "RuntimeCall":
        return cls(CallTag.CURRENCY, call)

    @classmethod
    def staking(cls, call: StakingCall) -> "RuntimeCall":
        return cls(CallTag.STAKING, call)

    @classmethod
    def from_json(cls, envelope: Any) -> "RuntimeCall":
        module, call = parse_call(envelope)
        return cls(CallTag(module), call)


class Runtime:
    """Binds config into the currency and staking modules and dispatches RuntimeCalls.

    Each runtime owns its store. Calls are serialised by a per-runtime lock and
    run inside a storage transaction: buffered writes are committed in one batch
    on success and dropped on any error.
    """

    def __init__(self, config: Optional[RuntimeConfig] = None, *, store: Optional[ByteStore] = None) -> None:
        cfg = config or default_runtime_config()
        validate_runtime_config(cfg)
        self.config = cfg

        self.store = TransactionalStore(store if store is not None else open_store(cfg))
        self.currency = CurrencyModule(
            self.store,
            CurrencyConfig(
                module_id=cfg.currency_module_id,
                minter=cfg.minter_id,
                minimum_balance=cfg.minimum_balance,
                balance_type=cfg.balance,
            ),
        )
        self.staking = StakingModule(
            StakingConfig(
                module_id=cfg.staking_module_id,
                currency=self.currency.currency(),
                currency_module_id=cfg.currency_module_id,
            )
        )

        self.counters = Counters()
        self._lock = threading.RLock()
        self._routes: Dict[CallTag, Dispatcher] = {
            CallTag.CURRENCY: self.currency,
            CallTag.STAKING: self.staking,
        }

    @classmethod
    def load(cls, *, config_path: Optional[str] = None) -> "Runtime":
        """Build a runtime from files and environment, and configure logging from it."""
        cfg = load_runtime_config(config_path=config_path)
        configure_structured_logging(cfg.log_level)
        return cls(cfg)

    def dispatch(self, call: RuntimeCall, sender: AccountId) -> None:
        """Forward `call` to its module. The module's DispatchError propagates unchanged."""
        if not isinstance(call, RuntimeCall):
            raise OtherError(f"runtime:not_a_runtime_call:{type(call).__name__}")
        if not isinstance(sender, AccountId):
            raise OtherError(f"runtime:invalid_sender:{type(sender).__name__}")
        module = self._routes.get(call.tag)
        if module is None:
            raise OtherError(f"runtime:unknown_module:{call.tag}")

        name = type(call.call).__name__
        with self._lock:
            started = time.monotonic()
            try:
                with self.store.transaction() as overlay:
                    module.dispatch(call.call, sender)
                    writes = len(overlay.pending)
            except DispatchError as e:
                self.counters.inc("dispatch_err")
                log_event(
                    _log,
                    "dispatch",
                    ok=False,
                    module=call.tag.value,
                    call=name,
                    sender=sender.value,
                    error=e.to_json(),
                    duration_ms=int((time.monotonic() - started) * 1000),
                )
                raise

            self.counters.inc("dispatch_ok")
            log_event(
                _log,
                "dispatch",
                ok=True,
                module=call.tag.value,
                call=name,
                sender=sender.value,
                writes=writes,
                duration_ms=int((time.monotonic() - started) * 1000),
            )

    def try_dispatch(self, call: RuntimeCall, sender: AccountId) -> DispatchReceipt:
        try:
            self.dispatch(call, sender)
        except DispatchError as e:
            return DispatchReceipt.failure(e)
        return DispatchReceipt.success()

    def dispatch_json(self, envelope: Json, sender: AccountId) -> None:
        self.dispatch(RuntimeCall.from_json(envelope), sender)


__all__ = ["CallTag", "Runtime", "RuntimeCall"]
