from __future__ import annotations

from dataclasses import dataclass


class DispatchError(Exception):
    """Base type for every failure surfaced by dispatch."""

    def to_json(self) -> dict:  # pragma: no cover
        raise NotImplementedError


@dataclass
class ModuleError(DispatchError):
    """Error raised by module logic, tagged with the module's id."""

    module_id: str
    reason: str

    def __str__(self) -> str:
        return f"{self.module_id}:{self.reason}"

    def to_json(self) -> dict:
        return {"module_id": self.module_id, "reason": self.reason}


@dataclass
class OtherError(DispatchError):
    """Untagged error for infrastructure or cross-module failures."""

    reason: str

    def __str__(self) -> str:
        return self.reason

    def to_json(self) -> dict:
        return {"module_id": None, "reason": self.reason}
