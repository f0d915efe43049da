# Overview: Service-layer concurrency helpers; per-key locks, row locks and retry on conflicts.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from weakref import WeakValueDictionary

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class _KeyLock:
    """Re-entrant lock that can live in a WeakValueDictionary."""

    __slots__ = ("_lock", "__weakref__")

    def __init__(self):
        self._lock = threading.RLock()

    def acquire(self):
        self._lock.acquire()

    def release(self):
        self._lock.release()


_registry_guard = threading.Lock()
# Entries vanish once no caller holds the lock
_key_locks: "WeakValueDictionary[str, _KeyLock]" = WeakValueDictionary()


def _lock_for(key: str) -> _KeyLock:
    with _registry_guard:
        lock = _key_locks.get(key)
        if lock is None:
            lock = _KeyLock()
            _key_locks[key] = lock
        return lock


@contextmanager
def keyed_lock(*keys: str):
    """
    Serialize in-process work on the given keys (e.g. "order:ORD-...").

    Keys are acquired in sorted order so two callers asking for overlapping
    key sets cannot deadlock. Cross-process safety comes from the database
    (optimistic version checks and conditional updates), not from here.
    """
    locks = [_lock_for(k) for k in sorted(set(keys))]
    for lock in locks:
        lock.acquire()
    try:
        yield
    finally:
        for lock in reversed(locks):
            lock.release()


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _retry_policy() -> tuple[int, float]:
    cfg = current_app.config
    return int(cfg.get("RETRY_ATTEMPTS", 3)), float(cfg.get("RETRY_BACKOFF_SECONDS", 0.1))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back and propagates unchanged.
    """
    default_attempts, default_backoff = _retry_policy()
    attempts = attempts or default_attempts
    backoff_base = default_backoff if backoff_base is None else backoff_base

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Concurrency conflict (attempt %d/%d): %s", attempt + 1, attempts, exc.__class__.__name__
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
