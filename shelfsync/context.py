"""
Client context: the one place where settings, transports, services and
stores are wired together.

    async with ClientContext() as ctx:
        ctx.set_token(token)
        await ctx.follows.fetch_follows()
"""

import httpx

from shelfsync.core.bus import EventBus, Unauthorized
from shelfsync.core.clock import Clock
from shelfsync.core.config import Settings, get_settings
from shelfsync.core.http import ApiClient
from shelfsync.core.logging import get_logger, setup_logging
from shelfsync.services.google_books import GoogleBooksClient
from shelfsync.services.identity import IdentityReconciler
from shelfsync.services.imports import ImportsService, ImportStatusPoller
from shelfsync.services.staleness import StalenessTracker
from shelfsync.stores.authors import AuthorsStore
from shelfsync.stores.books import BooksStore
from shelfsync.stores.events import EventsStore
from shelfsync.stores.feed import FeedStore
from shelfsync.stores.follows import FollowsStore
from shelfsync.stores.forums import ForumsStore
from shelfsync.stores.onboarding import OnboardingStore
from shelfsync.stores.recommendations import RecommendationsStore, RecommendedEventsStore

logger = get_logger(__name__)


class ClientContext:
    """One set of stores per signed-in session."""

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Clock | None = None,
        api_transport: httpx.AsyncBaseTransport | None = None,
        catalog_transport: httpx.AsyncBaseTransport | None = None,
        configure_logging: bool = False,
    ):
        self.settings = settings or get_settings()
        if configure_logging:
            setup_logging(self.settings)

        self.clock = clock or Clock()
        self.bus = EventBus()

        self.api = ApiClient(self.settings, bus=self.bus, transport=api_transport)
        self.catalog = GoogleBooksClient(self.settings, transport=catalog_transport)
        self.reconciler = IdentityReconciler(self.api)
        self.staleness = StalenessTracker(
            self.clock, window_seconds=self.settings.EVENTS_STALENESS_SECONDS
        )
        self.imports = ImportsService(self.api, self.settings)

        self.books = BooksStore(self.api, self.bus, self.reconciler, self.catalog)
        self.follows = FollowsStore(self.api, self.bus, self.reconciler)
        self.authors = AuthorsStore(
            self.api,
            self.catalog,
            self.reconciler,
            max_cached_queries=self.settings.AUTHOR_SEARCH_CACHE_SIZE,
        )
        self.events = EventsStore(self.api, self.staleness)
        self.forums = ForumsStore(self.api)
        self.onboarding = OnboardingStore(self.api, self.follows)
        self.feed = FeedStore(self.api)
        self.recommendations = RecommendationsStore(self.api, self.bus)
        self.recommended_events = RecommendedEventsStore(self.api)

        self.logged_out = False
        self.pollers: set[ImportStatusPoller] = set()
        self.bus.subscribe(Unauthorized, self._on_unauthorized)

    @property
    def is_authenticated(self) -> bool:
        return self.api.token is not None

    def set_token(self, token: str | None) -> None:
        self.api.set_token(token)
        self.logged_out = token is None

    def _on_unauthorized(self, message: Unauthorized) -> None:
        logger.warning(f"Session expired (401 on {message.path})")
        self.logged_out = True

    def poll_import(self, import_id: int) -> ImportStatusPoller:
        """Start following an import in the background."""
        poller = ImportStatusPoller.from_settings(
            self.imports, import_id, self.clock, self.settings
        )
        task = poller.start()
        self.pollers.add(poller)
        task.add_done_callback(lambda _: self.pollers.discard(poller))
        return poller

    async def aclose(self) -> None:
        for poller in list(self.pollers):
            poller.cancel()
            await poller.wait()
        self.pollers.clear()
        self.recommendations.close()
        await self.bus.drain()
        await self.api.close()
        await self.catalog.close()

    async def __aenter__(self) -> "ClientContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
