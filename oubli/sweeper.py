from __future__ import annotations

import logging
import threading

from .constants import SWEEP_INTERVAL_SECONDS
from .store import HouseStore

_LOGGER = logging.getLogger(__name__)


class SweepWorker(threading.Thread):
    def __init__(
        self,
        *,
        store: HouseStore,
        stop_event: threading.Event,
        interval_seconds: float = SWEEP_INTERVAL_SECONDS,
    ):
        super().__init__(daemon=True, name="oubli-sweep")
        self._store = store
        self._stop_event = stop_event
        self._interval_seconds = max(0.01, float(interval_seconds))
        self.passes = 0

    def run(self) -> None:
        while not self._stop_event.wait(self._interval_seconds):
            try:
                removed = self._store.sweep()
            except Exception:
                _LOGGER.exception("sweep pass failed")
                continue
            self.passes += 1
            if removed.get("rooms") or removed.get("visitors"):
                _LOGGER.debug(
                    "swept %d idle rooms and %d idle visitors",
                    removed.get("rooms", 0),
                    removed.get("visitors", 0),
                )
