"""At-most-one in-flight matching pass per athlete."""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator


logger = logging.getLogger(__name__)


class SingleFlightGuard:
    """Non-blocking per-key guard; a busy key is reported, never queued."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    def is_busy(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    @contextmanager
    def try_acquire(self, key: str) -> Iterator[bool]:
        """Yield True if the caller now owns ``key``, False if a pass is already running."""
        with self._lock:
            if key in self._in_flight:
                acquired = False
            else:
                self._in_flight.add(key)
                acquired = True

        if not acquired:
            logger.info("Matching pass already running for %s - skipping", key)
            yield False
            return

        try:
            yield True
        finally:
            with self._lock:
                self._in_flight.discard(key)
