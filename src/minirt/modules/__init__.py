# src/minirt/modules/__init__.py
"""Runtime modules. Modules talk to each other only through the protocols in shared.py."""

from __future__ import annotations

__all__ = ["currency", "shared", "staking"]
