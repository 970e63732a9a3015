"""
Per-address nonce sequencing.

The remote nonce hint is trusted on every call and nothing is cached
between calls. Acquisition is serialized per address: a caller holds
reserve(address) across fetch, build, sign and broadcast so two
overlapping tool calls from this process never interleave.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator

logger = logging.getLogger(__name__)


class NonceSequencer:
    """Hands out the next usable nonce for an address."""

    def __init__(self, fetch_hint: Callable[[str], int]):
        self._fetch_hint = fetch_hint
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, address: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(address)
            if lock is None:
                lock = self._locks[address] = threading.Lock()
            return lock

    @contextmanager
    def reserve(self, address: str) -> Iterator[None]:
        """Hold the address for one fetch-build-sign-broadcast sequence."""
        lock = self._lock_for(address)
        with lock:
            yield

    def next_nonce(self, address: str) -> int:
        """Nonce the next transaction from address must use: the remote hint as is."""
        nonce = self._fetch_hint(address)
        logger.debug("Nonce hint for %s: %d", address, nonce)
        return nonce
