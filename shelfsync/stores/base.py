"""
Session-scoped entity caches.

Stores keep what the backend has told them in ``EntityCache`` instances and
expose ``loading`` / ``error`` the way the original UI state did.
Subscribers are called synchronously after every write.
"""

from __future__ import annotations

from typing import Callable, Generic, Hashable, Iterator, TypeVar

from shelfsync.core.logging import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Listener = Callable[[], None]


class EntityCache(Generic[K, V]):
    """Keyed upsert cache with change notification. No eviction."""

    def __init__(self, name: str = "cache"):
        self.name = name
        self._items: dict[K, V] = {}
        self._listeners: list[Listener] = []

    def get(self, key: K) -> V | None:
        return self._items.get(key)

    def put(self, key: K, value: V) -> None:
        self._items[key] = value
        self._notify()

    def put_many(self, items: dict[K, V]) -> None:
        if not items:
            return
        self._items.update(items)
        self._notify()

    def remove(self, key: K) -> V | None:
        value = self._items.pop(key, None)
        self._notify()
        return value

    def clear(self) -> None:
        self._items.clear()
        self._notify()

    def list(self, predicate: Callable[[V], bool] | None = None) -> list[V]:
        if predicate is None:
            return list(self._items.values())
        return [v for v in self._items.values() if predicate(v)]

    def values(self) -> list[V]:
        return list(self._items.values())

    def keys(self) -> list[K]:
        return list(self._items.keys())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.warning(f"Listener failed for {self.name}", exc_info=True)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._items))


class StoreState:
    """``loading`` and ``error`` shared by every store."""

    def __init__(self):
        self.loading = False
        self.error: str | None = None

    def _begin(self) -> None:
        self.loading = True
        self.error = None

    def _fail(self, message: str) -> None:
        self.error = message
        self.loading = False

    def _done(self) -> None:
        self.loading = False
