"""Per-user serialisation of schedule-changing operations."""
from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator
from uuid import UUID

_locks: Dict[UUID, Lock] = {}
_registry_lock = Lock()


def _lock_for(user_id: UUID) -> Lock:
    with _registry_lock:
        lock = _locks.get(user_id)
        if lock is None:
            lock = Lock()
            _locks[user_id] = lock
        return lock


@contextmanager
def user_lock(user_id: UUID) -> Iterator[None]:
    """Hold the lock for ``user_id`` so two runs never share a stale snapshot."""
    lock = _lock_for(user_id)
    with lock:
        yield
