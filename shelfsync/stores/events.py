"""
Events from followed authors, with pagination and refresh tracking.

Events are discovered by the backend from external sources and shared by
every user; the client only asks for a rediscovery (``refresh_events``) and
tracks when each scope was last refreshed.
"""

from typing import Any

from shelfsync.core.errors import ShelfSyncError, error_message
from shelfsync.core.http import ApiClient
from shelfsync.core.logging import get_logger
from shelfsync.schemas import Event, Pagination, Venue
from shelfsync.services.staleness import (
    GLOBAL_SCOPE,
    RefreshOutcome,
    StalenessTracker,
    refresh_error_message,
    refresh_message,
)
from shelfsync.stores.base import EntityCache, StoreState

logger = get_logger(__name__)


class EventsStore(StoreState):
    def __init__(self, api: ApiClient, tracker: StalenessTracker, per_page: int = 20):
        super().__init__()
        self.api = api
        self.tracker = tracker
        self.per_page = per_page

        self.events: list[Event] = []
        self.author_events: dict[int, list[Event]] = {}
        self.event_details: EntityCache[int, Event] = EntityCache("events")
        self.venues: list[Venue] = []

        self.current_page = 1
        self.total_pages = 1
        self.has_more = False
        self.filters: dict[str, Any] = {}

        self.is_loading_more = False
        self.is_refreshing = False
        self.refresh_error: str | None = None
        self.refresh_message: str | None = None

    # Listing

    async def fetch_events(self, page: int = 1, **filters: Any) -> list[Event]:
        """
        Fetch one page. Page 1 replaces the list and marks the global scope
        refreshed; later pages append.
        """
        if page == 1:
            self.filters = filters
            self.loading = True
        else:
            filters = filters or self.filters
            self.is_loading_more = True
        self.error = None

        try:
            events, pagination = await self.api.get_events(
                **{"per_page": self.per_page, **filters, "page": page}
            )
        except ShelfSyncError as e:
            self.error = error_message(e, "Failed to fetch events")
            raise
        finally:
            self.loading = False
            self.is_loading_more = False

        if page == 1:
            self.events = events
        else:
            self.events = [*self.events, *events]
        self.event_details.put_many({e.id: e for e in events})
        self._set_pagination(page, pagination)

        if page == 1:
            self.tracker.mark_refreshed(GLOBAL_SCOPE)
        return events

    async def load_more(self) -> list[Event]:
        if self.loading or self.is_loading_more or not self.has_more:
            return []
        return await self.fetch_events(self.current_page + 1, **self.filters)

    async def ensure_fresh(self, **filters: Any) -> bool:
        """Fetch page 1 only when the global scope is stale."""
        if not self.tracker.should_refresh(GLOBAL_SCOPE):
            return False
        await self.fetch_events(1, **filters)
        return True

    def _set_pagination(self, page: int, pagination: Pagination | None) -> None:
        if pagination is None:
            self.current_page = page
            return
        self.current_page = pagination.page
        self.total_pages = pagination.total_pages
        self.has_more = pagination.has_more

    async def fetch_author_events(self, author_id: int, **params: Any) -> list[Event]:
        try:
            events, _ = await self.api.get_author_events(author_id, **params)
        except ShelfSyncError as e:
            self.error = error_message(e, "Failed to fetch author events")
            raise

        self.author_events[author_id] = events
        self.event_details.put_many({e.id: e for e in events})
        return events

    async def get_event(self, event_id: int) -> Event:
        cached = self.event_details.get(event_id)
        if cached is not None:
            return cached
        try:
            event = await self.api.get_event(event_id)
        except ShelfSyncError as e:
            self.error = error_message(e, "Failed to load event")
            raise
        self.event_details.put(event.id, event)
        return event

    async def fetch_venues(
        self,
        city: str | None = None,
        state: str | None = None,
        zipcode: str | None = None,
    ) -> list[Venue]:
        try:
            self.venues = await self.api.get_venues(city=city, state=state, zipcode=zipcode)
        except ShelfSyncError as e:
            self.error = error_message(e, "Failed to fetch venues")
            raise
        return self.venues

    # Refresh

    async def refresh_events(self, author_id: int | None = None) -> RefreshOutcome:
        """
        Ask the backend to rediscover events for one author, or for every
        followed author. Failures are reported in the outcome, not raised.
        """
        scope = self.tracker.scope_for(author_id)
        self.is_refreshing = True
        self.refresh_error = None
        self.refresh_message = None

        try:
            response = await self.api.refresh_events(author_id)
        except ShelfSyncError as e:
            self.refresh_error = refresh_error_message(e)
            logger.warning(
                f"Event refresh failed: {e.message}",
                extra={"extra_fields": {"scope": str(scope)}},
            )
            return RefreshOutcome(success=False, message=self.refresh_error)
        finally:
            self.is_refreshing = False

        refreshed_at = self.tracker.mark_refreshed(scope, response.last_refreshed_at)
        self.refresh_message = refresh_message(response.events_count)
        return RefreshOutcome(
            success=True,
            message=self.refresh_message,
            events_count=response.events_count,
            last_refreshed_at=refreshed_at,
        )

    def should_refresh(self, author_id: int | None = None) -> bool:
        return self.tracker.should_refresh(self.tracker.scope_for(author_id))

    def time_since_refresh(self, author_id: int | None = None) -> str | None:
        return self.tracker.time_since_refresh(self.tracker.scope_for(author_id))

    # Local edits

    def add_event_optimistically(self, event: Event) -> None:
        self.events = [event, *self.events]

    def remove_event_optimistically(self, event_id: int) -> None:
        self.events = [e for e in self.events if e.id != event_id]

    def clear_events(self) -> None:
        self.events = []

    def clear_author_events(self, author_id: int) -> None:
        self.author_events.pop(author_id, None)

    def reset(self) -> None:
        self.events = []
        self.author_events = {}
        self.event_details.clear()
        self.venues = []
        self.current_page = 1
        self.total_pages = 1
        self.has_more = False
        self.filters = {}
        self.loading = False
        self.is_loading_more = False
        self.is_refreshing = False
        self.error = None
        self.refresh_error = None
        self.refresh_message = None
        self.tracker.reset()
