"""Existence-check store used to deduplicate generated codes.

The store stands in for a distributed cache. Its only correctness-critical
operation is an atomic check-and-insert: for any key, at most one caller
ever observes it as accepted.
"""

import logging
import threading
from typing import Iterable, Protocol

# Configure logging
logger = logging.getLogger(__name__)


def build_key(namespace: str, code: str) -> str:
    """Build the namespaced dedup key for a code."""
    return f"{namespace}:{code}"


class DedupStore(Protocol):
    """Anything that supports atomic check-and-insert of keys."""

    def check_and_insert(self, key: str) -> bool:
        """Insert key if absent.

        Returns:
            True if key was absent and is now stored, False if it was present
        """
        ...


class InMemoryDedupStore:
    """Thread-safe in-process dedup store.

    Keys are spread across independently locked shards so that workers
    probing unrelated keys rarely contend for the same lock.
    """

    def __init__(self, shards: int = 16):
        if shards < 1:
            raise ValueError(f"shards must be at least 1, got {shards}")
        self._shards: list[set[str]] = [set() for _ in range(shards)]
        self._locks = [threading.Lock() for _ in range(shards)]

    def _shard_for(self, key: str) -> int:
        return hash(key) % len(self._shards)

    def check_and_insert(self, key: str) -> bool:
        index = self._shard_for(key)
        with self._locks[index]:
            shard = self._shards[index]
            if key in shard:
                return False
            shard.add(key)
            return True

    def seed(self, keys: Iterable[str]) -> int:
        """Pre-insert keys, returning how many were new."""
        added = 0
        for key in keys:
            if self.check_and_insert(key):
                added += 1
        logger.debug(f"Seeded dedup store with {added} keys")
        return added

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        index = self._shard_for(key)
        with self._locks[index]:
            return key in self._shards[index]

    def __len__(self) -> int:
        total = 0
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                total += len(shard)
        return total
