# src/minirt/runtime/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from minirt.env import load_dotenv_if_present
from minirt.modules.shared import BALANCE_TYPES, AccountId, BalanceType, balance_type_by_name
from minirt.storage.byte_store import ByteStore, MemoryByteStore, SqliteByteStore
from minirt.storage.codec import U32

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    if v is None:
        return int(default)
    if isinstance(v, bool):
        raise ValueError("bool is not a valid int")
    if isinstance(v, float) and not v.is_integer():
        raise ValueError(f"{v!r} is not a whole number")
    return int(v)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class RuntimeConfig:
    currency_module_id: str
    staking_module_id: str

    minimum_balance: int
    minter: int
    balance_type: str  # "u32" | "u64" | "u128"

    store: str  # "memory" | "sqlite"
    db_path: str

    log_level: str

    @property
    def balance(self) -> BalanceType:
        return balance_type_by_name(self.balance_type)

    @property
    def minter_id(self) -> AccountId:
        return AccountId(int(self.minter))


_ALLOWED_STORES = {"memory", "sqlite"}
_ALLOWED_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def validate_runtime_config(cfg: RuntimeConfig) -> None:
    """Fail-fast validation: a misconfigured runtime must not start."""

    for name, mid in (("currency_module_id", cfg.currency_module_id), ("staking_module_id", cfg.staking_module_id)):
        if not isinstance(mid, str) or not mid.strip():
            raise ValueError(f"{name} must be a non-empty string")
    if cfg.currency_module_id == cfg.staking_module_id:
        raise ValueError(f"module ids must be distinct; both are {cfg.currency_module_id!r}")

    if str(cfg.balance_type).strip().lower() not in BALANCE_TYPES:
        raise ValueError(f"balance_type must be one of {sorted(BALANCE_TYPES)}; got: {cfg.balance_type!r}")

    bt = cfg.balance
    if not bt.contains(cfg.minimum_balance):
        raise ValueError(f"minimum_balance must be in 0..{bt.max_value}; got: {cfg.minimum_balance!r}")

    if isinstance(cfg.minter, bool) or not isinstance(cfg.minter, int) or not 0 <= cfg.minter <= U32.max_value:
        raise ValueError(f"minter must be a u32 account id; got: {cfg.minter!r}")

    store = str(cfg.store or "").strip().lower()
    if store not in _ALLOWED_STORES:
        raise ValueError(f"store must be one of {sorted(_ALLOWED_STORES)}; got: {cfg.store!r}")
    if store == "sqlite" and (not isinstance(cfg.db_path, str) or not cfg.db_path.strip()):
        raise ValueError("db_path must be a non-empty string when store is 'sqlite'")

    if str(cfg.log_level or "").strip().upper() not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {list(_ALLOWED_LOG_LEVELS)}; got: {cfg.log_level!r}")


def default_runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        currency_module_id="MOD_CURRENCY",
        staking_module_id="MOD_STAKING",
        minimum_balance=5,
        minter=42,
        balance_type="u64",
        store="memory",
        db_path="./data/minirt.db",
        log_level=(os.environ.get("MINIRT_LOG_LEVEL") or "INFO").strip().upper(),
    )


def _read_raw(p: Path) -> Any:
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(text)
    return json.loads(text)


def runtime_config_from_dict(raw: Json) -> RuntimeConfig:
    if not isinstance(raw, dict):
        raise ValueError("runtime config must be a mapping")

    d = default_runtime_config()
    try:
        cfg = RuntimeConfig(
            currency_module_id=_as_str(raw.get("currency_module_id"), d.currency_module_id),
            staking_module_id=_as_str(raw.get("staking_module_id"), d.staking_module_id),
            minimum_balance=_as_int(raw.get("minimum_balance"), d.minimum_balance),
            minter=_as_int(raw.get("minter"), d.minter),
            balance_type=_as_str(raw.get("balance_type"), d.balance_type).strip().lower(),
            store=_as_str(raw.get("store"), d.store).strip().lower(),
            db_path=_as_str(raw.get("db_path"), d.db_path),
            log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid runtime config: {e}") from e

    validate_runtime_config(cfg)
    return cfg


def read_runtime_config_file(path: str) -> RuntimeConfig:
    """Read a JSON or YAML (by suffix) runtime config file."""
    return runtime_config_from_dict(_read_raw(Path(path)))


def load_runtime_config(*, config_path: Optional[str] = None) -> RuntimeConfig:
    load_dotenv_if_present()
    p = config_path or os.environ.get("MINIRT_CONFIG_PATH")
    if p:
        return read_runtime_config_file(p)

    cfg = default_runtime_config()
    validate_runtime_config(cfg)
    return cfg


def open_store(cfg: RuntimeConfig) -> ByteStore:
    if cfg.store == "sqlite":
        return SqliteByteStore(path=cfg.db_path)
    return MemoryByteStore()


__all__ = [
    "RuntimeConfig",
    "default_runtime_config",
    "load_runtime_config",
    "open_store",
    "read_runtime_config_file",
    "runtime_config_from_dict",
    "validate_runtime_config",
]
