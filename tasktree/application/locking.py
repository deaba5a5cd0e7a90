"""Per-project mutual exclusion.

At most one structural mutation may be in flight per project. Mutations on
different projects run in parallel.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ProjectLockRegistry:
    """Hands out one re-entrant lock per project id.

    Locks are created lazily and never removed; the number of projects a
    process touches is small.

    Example:
        locks = ProjectLockRegistry()
        with locks.hold("acme"):
            ...  # exclusive access to project "acme"
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def lock_for(self, project_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[project_id] = lock
            return lock

    @contextmanager
    def hold(self, project_id: str) -> Iterator[None]:
        """Hold the project's lock for the duration of the block."""
        lock = self.lock_for(project_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
