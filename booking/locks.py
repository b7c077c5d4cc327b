from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from typing import Iterator


class IdentityLocks:
    """One in-process lock per end-user identity.

    Locks are held weakly, so an identity that is not being processed does
    not keep an entry alive. Cross-process exclusion is provided by the
    repository's version check, not by this class.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, _IdentityLock] = weakref.WeakValueDictionary()

    def lock_for(self, identity: str) -> "_IdentityLock":
        with self._guard:
            lock = self._locks.get(identity)
            if lock is None:
                lock = _IdentityLock()
                self._locks[identity] = lock
            return lock

    @contextmanager
    def hold(self, identity: str) -> Iterator[None]:
        lock = self.lock_for(identity)
        with lock.mutex:
            yield


class _IdentityLock:
    __slots__ = ("mutex", "__weakref__")

    def __init__(self) -> None:
        self.mutex = threading.Lock()
