"""Per-obligation asyncio locks.

Serialises mutations of one obligation inside this process; the
SELECT ... FOR UPDATE in the repository covers other processes. A lock
never spans more than one obligation.

Entries are held weakly: a lock lives only while some caller holds a
reference to it, so the registry does not grow with every obligation
ever touched.
"""

import asyncio
import weakref

from src.rb_common.enums import ObligationKind


class ObligationLocks:
    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[tuple[ObligationKind, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def get(self, kind: ObligationKind, resource_id: str) -> asyncio.Lock:
        key = (kind, resource_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


_locks: ObligationLocks | None = None


def get_obligation_locks() -> ObligationLocks:
    global _locks  # noqa: PLW0603
    if _locks is None:
        _locks = ObligationLocks()
    return _locks
