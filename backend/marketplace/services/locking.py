"""Serialization of mutating commands per aggregate (requirement or order).

Sync FastAPI endpoints run on a thread pool, so two requests touching the same
requirement can interleave their read-modify-write sequences. Each command holds
the aggregate's lock from its first read until commit. Writers in other processes
are caught by the version columns on Requirement and Order.
"""
import logging
import threading
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from marketplace.services.errors import ConcurrencyConflictError

logger = logging.getLogger(__name__)


class KeyedLock:
    """One lock per key, kept only while some thread holds or waits on it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    def _acquire_entry(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _release_entry(self, key: str) -> None:
        with self._guard:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str):
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)


aggregate_locks = KeyedLock()


def requirement_key(requirement_id: str) -> str:
    return f"requirement:{requirement_id}"


def order_key(order_id: str) -> str:
    return f"order:{order_id}"


@contextmanager
def serialized(db: Session, key: str, locks: KeyedLock = aggregate_locks):
    """Run one command under the aggregate lock and commit it as a single unit."""
    with locks.hold(key):
        # Drop anything read before the lock was taken.
        db.expire_all()
        try:
            yield
            db.commit()
        except (StaleDataError, IntegrityError) as exc:
            db.rollback()
            logger.warning("Concurrent write rejected on %s: %s", key, exc)
            raise ConcurrencyConflictError(
                "The record was changed by another request; re-fetch and retry."
            ) from exc
        except Exception:
            db.rollback()
            raise
