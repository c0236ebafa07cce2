"""Owned handle to the current application snapshot."""

from __future__ import annotations

import threading

from app.applications.schemas import Snapshot


class SnapshotCache:
    """Hold exactly one current snapshot, replaced wholesale by reference swap.

    The refresher publishes from the event loop while the Prometheus collector
    reads from whatever thread renders the scrape, so both sides go through a
    threading lock. Snapshots are frozen, so readers can keep using the one
    they loaded after a newer one is published.
    """

    def __init__(self, initial: Snapshot | None = None) -> None:
        self._lock = threading.Lock()
        self._current = initial if initial is not None else Snapshot()

    def publish(self, snapshot: Snapshot) -> None:
        """Replace the current snapshot."""

        with self._lock:
            self._current = snapshot

    def current(self) -> Snapshot:
        """Return the most recently published snapshot."""

        with self._lock:
            return self._current

    def reset(self) -> None:
        """Restore the empty start-up snapshot (testing utility)."""

        with self._lock:
            self._current = Snapshot()
