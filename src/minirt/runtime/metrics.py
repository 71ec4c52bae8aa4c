from __future__ import annotations

import threading
import time
from typing import Dict


class Counters:
    """Integer counters for one runtime instance."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {}
        self._started_ms = int(time.time() * 1000)

    def inc(self, name: str, value: int = 1) -> None:
        n = str(name or "").strip()
        if not n:
            return
        with self._lock:
            self._counters[n] = self._counters.get(n, 0) + int(value)

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> dict:
        with self._lock:
            now = int(time.time() * 1000)
            return {
                "ts_ms": now,
                "uptime_ms": now - self._started_ms,
                "counters": dict(self._counters),
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
