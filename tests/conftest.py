from __future__ import annotations

import logging
import sys
from dataclasses import replace
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed "minirt" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from minirt.modules.currency import Mint  # noqa: E402
from minirt.modules.shared import AccountId  # noqa: E402
from minirt.runtime.composition import Runtime, RuntimeCall  # noqa: E402
from minirt.runtime.config import default_runtime_config  # noqa: E402

MINTER = AccountId(42)
ALICE = AccountId(7)
BOB = AccountId(10)
CHARLIE = AccountId(11)


@pytest.fixture
def runtime() -> Runtime:
    """Fresh in-memory runtime: minimum balance 5, minter 42, u64 balances."""
    return Runtime(default_runtime_config())


@pytest.fixture
def funded_runtime(runtime: Runtime) -> Runtime:
    """Runtime where ALICE holds 100 free."""
    runtime.dispatch(RuntimeCall.currency(Mint(dest=ALICE, amount=100)), MINTER)
    return runtime


@pytest.fixture
def make_runtime():
    def _make(**overrides) -> Runtime:
        return Runtime(replace(default_runtime_config(), **overrides))

    return _make


@pytest.fixture
def restore_minirt_logger():
    """Undo configure_structured_logging so later tests keep propagating to caplog."""
    root = logging.getLogger("minirt")
    saved = (list(root.handlers), root.level, root.propagate, getattr(root, "_minirt_configured", False))
    yield root
    root.handlers, root.level, root.propagate = saved[0], saved[1], saved[2]
    setattr(root, "_minirt_configured", saved[3])
