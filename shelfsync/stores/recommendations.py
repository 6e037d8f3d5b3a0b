"""
Recommended books, authors and events.

``RecommendationsStore`` listens for shelf and follow changes on the bus and
refreshes itself in the background; failures stay in ``books_error`` /
``authors_error`` and never reach the caller that triggered them.
"""

import asyncio

from shelfsync.core.bus import EventBus, FollowChanged, ShelfChanged
from shelfsync.core.errors import ShelfSyncError, error_message
from shelfsync.core.http import ApiClient
from shelfsync.core.logging import get_logger
from shelfsync.schemas import RecommendedAuthor, RecommendedBook, RecommendedEventGroup
from shelfsync.stores.base import StoreState

logger = get_logger(__name__)


class RecommendationsStore:
    def __init__(self, api: ApiClient, bus: EventBus | None = None):
        self.api = api
        self.books: list[RecommendedBook] = []
        self.authors: list[RecommendedAuthor] = []
        self.books_loading = False
        self.authors_loading = False
        self.books_error: str | None = None
        self.authors_error: str | None = None
        self.refresh_count = 0

        self._unsubscribe = []
        if bus is not None:
            self._unsubscribe = [
                bus.subscribe(ShelfChanged, self._on_change),
                bus.subscribe(FollowChanged, self._on_change),
            ]

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    async def _on_change(self, message) -> None:
        logger.debug(f"Refreshing recommendations after {type(message).__name__}")
        await self.refresh()

    async def fetch_books(self) -> list[RecommendedBook]:
        self.books_loading = True
        self.books_error = None
        try:
            self.books = await self.api.get_recommended_books()
        except ShelfSyncError as e:
            self.books_error = error_message(e, "Failed to load recommended books")
        finally:
            self.books_loading = False
        return self.books

    async def fetch_authors(self) -> list[RecommendedAuthor]:
        self.authors_loading = True
        self.authors_error = None
        try:
            self.authors = await self.api.get_recommended_authors()
        except ShelfSyncError as e:
            self.authors_error = error_message(e, "Failed to load recommended authors")
        finally:
            self.authors_loading = False
        return self.authors

    async def refresh(self) -> None:
        self.refresh_count += 1
        await asyncio.gather(self.fetch_books(), self.fetch_authors())
        if self.books_error or self.authors_error:
            logger.warning(
                "Failed to refresh recommendations",
                extra={
                    "extra_fields": {
                        "books_error": self.books_error,
                        "authors_error": self.authors_error,
                    }
                },
            )


class RecommendedEventsStore(StoreState):
    def __init__(self, api: ApiClient):
        super().__init__()
        self.api = api
        self.groups: list[RecommendedEventGroup] = []

    async def fetch_recommended_events(self) -> list[RecommendedEventGroup]:
        self._begin()
        try:
            self.groups = await self.api.get_recommended_events()
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to load recommended events"))
            raise
        self._done()
        return self.groups

    async def refresh(self) -> list[RecommendedEventGroup]:
        return await self.fetch_recommended_events()
