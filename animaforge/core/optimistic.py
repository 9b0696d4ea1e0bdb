"""
Optimistic local state with rollback, plus a per-key in-flight guard.

Services apply the pure computation to their local copy first, then persist.
If the write raises PersistenceError the local copy is put back to the
snapshot taken before the update and the error propagates.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Generic, Iterator, Optional, Set, TypeVar

from animaforge.core.errors import ConflictError, PersistenceError

logger = logging.getLogger("animaforge")

T = TypeVar("T")
_MISSING = object()


class InFlightGuard:
    """Rejects a second mutation for a key while the first is still persisting."""

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight: Set[str] = set()

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._lock:
            if key in self._in_flight:
                logger.warning("mutation.rejected_in_flight", extra={"identity_id": key})
                raise ConflictError(f"A mutation for {key} is already in progress", code="in_flight")
            self._in_flight.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(key)


class OptimisticStore(Generic[T]):
    """Local copy of state keyed by id."""

    def __init__(self):
        self._items: Dict[str, T] = {}

    def get(self, key: str) -> Optional[T]:
        return self._items.get(key)

    def put(self, key: str, value: T) -> None:
        self._items[key] = value

    @contextmanager
    def update(self, key: str, value: T) -> Iterator[T]:
        """Install `value` now; restore the previous value if persistence fails."""
        previous = copy.deepcopy(self._items[key]) if key in self._items else _MISSING
        self._items[key] = value
        try:
            yield value
        except PersistenceError:
            if previous is _MISSING:
                self._items.pop(key, None)
            else:
                self._items[key] = previous
            logger.warning("optimistic.rolled_back", extra={"identity_id": key})
            raise
