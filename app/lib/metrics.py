"""In-memory counters for the exporter's own refresh and request activity."""

from __future__ import annotations

import threading
from collections import Counter
from typing import Dict


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Counter[str] = Counter()

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] += value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def snapshot(self, prefix: str | None = None) -> Dict[str, int]:
        with self._lock:
            if prefix is None:
                return dict(self._counters)
            return {key: value for key, value in self._counters.items() if key.startswith(prefix)}

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()


METRICS = MetricsRegistry()
