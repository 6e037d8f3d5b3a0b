"""
In-process message bus for cross-store invalidation.

Delivery contract: best-effort, non-blocking, non-retried. A publisher never
sees a subscriber's failure; failures are logged. Coroutine handlers run as
background tasks so ``publish`` returns immediately.
"""

import asyncio
import inspect
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable

from shelfsync.core.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[Any], Any]


@dataclass(frozen=True)
class ShelfChanged:
    """A shelf entry was created or updated (status, progress or review)."""

    book_id: int
    user_book_id: int
    reason: str  # "added", "updated", "reviewed"


@dataclass(frozen=True)
class FollowChanged:
    followable_type: str
    followable_id: int
    following: bool


@dataclass(frozen=True)
class Unauthorized:
    """The backend answered 401; the token has already been cleared."""

    path: str


class EventBus:
    def __init__(self):
        self._subscribers: dict[type, list[Handler]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, message_type: type, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``message_type``. Returns an unsubscribe callable."""
        self._subscribers[message_type].append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(message_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, message: Any) -> None:
        for handler in list(self._subscribers.get(type(message), [])):
            try:
                result = handler(message)
            except Exception:
                logger.warning(
                    f"Subscriber failed for {type(message).__name__}",
                    exc_info=True,
                )
                continue

            if inspect.isawaitable(result):
                self._schedule(message, result)

    def _schedule(self, message: Any, awaitable: Any) -> None:
        async def _run() -> None:
            try:
                await awaitable
            except Exception:
                logger.warning(
                    f"Background subscriber failed for {type(message).__name__}",
                    exc_info=True,
                )

        task = asyncio.ensure_future(_run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled handler, including ones scheduled while draining."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
