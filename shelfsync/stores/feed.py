"""
Activity feed.

Items are validated one at a time so that a single unknown activity or
feedable shape is dropped (with a warning) instead of failing the page.
Private shelf activity is filtered out at read time by ``visible_items``.
"""

from pydantic import ValidationError as PydanticValidationError

from shelfsync.core.errors import ShelfSyncError, error_message
from shelfsync.core.http import ApiClient
from shelfsync.core.logging import get_logger
from shelfsync.schemas import ActivityType, FeedItem, Pagination
from shelfsync.stores.base import StoreState

logger = get_logger(__name__)


def parse_feed_items(raw_items: list) -> list[FeedItem]:
    items = []
    for raw in raw_items:
        try:
            items.append(FeedItem.model_validate(raw))
        except PydanticValidationError as e:
            item_id = raw.get("id") if isinstance(raw, dict) else None
            logger.warning(
                f"Dropping unreadable feed item {item_id}",
                extra={"extra_fields": {"feed_item_id": item_id, "errors": e.error_count()}},
            )
    return items


class FeedStore(StoreState):
    def __init__(self, api: ApiClient, per_page: int = 50):
        super().__init__()
        self.api = api
        self.per_page = per_page
        self.items: list[FeedItem] = []
        self.pagination: Pagination | None = None
        self.activity_type: ActivityType | None = None

    async def fetch_feed(
        self,
        page: int = 1,
        per_page: int | None = None,
        activity_type: ActivityType | None = None,
    ) -> list[FeedItem]:
        """Page 1 replaces the items; later pages append."""
        activity_type = ActivityType(activity_type) if activity_type else None

        self._begin()
        try:
            data = await self.api.get_feed(
                page,
                per_page or self.per_page,
                activity_type.value if activity_type else None,
            )
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to fetch feed"))
            raise

        items = parse_feed_items(data.get("feed_items") or [])
        self.items = items if page == 1 else [*self.items, *items]
        self.pagination = (
            Pagination.model_validate(data["pagination"]) if data.get("pagination") else None
        )
        self.activity_type = activity_type
        self._done()
        return items

    async def refresh_feed(self) -> list[FeedItem]:
        return await self.fetch_feed(1, activity_type=self.activity_type)

    async def load_more(self) -> list[FeedItem]:
        if self.loading or self.pagination is None or not self.pagination.has_more:
            return []
        return await self.fetch_feed(self.pagination.page + 1, activity_type=self.activity_type)

    def clear_feed(self) -> None:
        self.items = []
        self.pagination = None
        self.error = None

    def visible_items(self) -> list[FeedItem]:
        """Items safe to show, in feed order; private shelf activity is excluded."""
        return [item for item in self.items if not item.is_private]
