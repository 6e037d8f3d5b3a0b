"""
Author search (platform plus catalog) and author profiles.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Literal

from shelfsync.core.errors import CatalogError, ExternalEntityError, ShelfSyncError, error_message
from shelfsync.core.http import ApiClient
from shelfsync.core.logging import get_logger
from shelfsync.schemas import Author, Book, CatalogAuthor
from shelfsync.schemas.common import is_persisted
from shelfsync.services.google_books import GoogleBooksClient
from shelfsync.services.identity import EntityKind, IdentityReconciler
from shelfsync.stores.base import EntityCache, StoreState

logger = get_logger(__name__)

SearchSource = Literal["local", "google", "both"]


@dataclass
class AuthorSearchResult:
    query: str
    page: int
    include_catalog: bool = True
    authors: list[Author] = field(default_factory=list)
    source: SearchSource = "local"
    has_more: bool = False


class AuthorsStore(StoreState):
    def __init__(
        self,
        api: ApiClient,
        catalog: GoogleBooksClient,
        reconciler: IdentityReconciler,
        max_cached_queries: int = 10,
    ):
        super().__init__()
        self.api = api
        self.catalog = catalog
        self.reconciler = reconciler
        self.max_cached_queries = max_cached_queries

        self.search_cache: OrderedDict[tuple[str, int, bool], AuthorSearchResult] = OrderedDict()
        self.profiles: EntityCache[int, Author] = EntityCache("author_profiles")
        self.author_books: dict[int, list[Book]] = {}

    # Search

    async def search(
        self,
        query: str,
        page: int = 1,
        per_page: int = 20,
        include_catalog: bool = True,
    ) -> AuthorSearchResult:
        """
        Search platform authors and, when enabled, the catalog.

        A catalog failure degrades to platform results only. Catalog-only
        authors carry the sentinel id until they are imported.
        """
        if not query.strip():
            return AuthorSearchResult(query=query, page=page)

        cached = self.get_search_results(query, page, include_catalog)
        if cached is not None:
            return cached

        self._begin()
        try:
            local, _ = await self.api.search_authors(query, page, per_page)
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to search authors"))
            raise

        authors = local
        source: SearchSource = "local"
        if include_catalog:
            try:
                external = await self.catalog.search_authors(query, per_page)
            except CatalogError as e:
                logger.warning(f"Catalog author search failed, using platform results: {e.message}")
            else:
                authors = self.reconciler.merge_authors(local, external)
                if external:
                    source = "both" if local else "google"

        result = AuthorSearchResult(
            query=query,
            page=page,
            include_catalog=include_catalog,
            authors=authors,
            source=source,
            # The catalog cannot be paged by author
            has_more=source == "local" and len(authors) >= per_page,
        )
        self.set_search_results(result)
        self._done()
        return result

    def set_search_results(self, result: AuthorSearchResult) -> None:
        key = (result.query, result.page, result.include_catalog)
        self.search_cache[key] = result
        self.search_cache.move_to_end(key, last=False)
        while len(self.search_cache) > self.max_cached_queries:
            self.search_cache.popitem(last=True)

    def get_search_results(
        self, query: str, page: int = 1, include_catalog: bool = True
    ) -> AuthorSearchResult | None:
        key = (query, page, include_catalog)
        result = self.search_cache.get(key)
        if result is not None:
            self.search_cache.move_to_end(key, last=False)
        return result

    def clear_search_results(self) -> None:
        self.search_cache.clear()

    # Profiles

    async def fetch_author(self, author_id: int) -> Author:
        author_id = self.reconciler.resolve(author_id, EntityKind.AUTHOR)
        if not is_persisted(author_id):
            raise ExternalEntityError(author_id, "Author has not been imported yet.")

        self._begin()
        try:
            author = await self.api.get_author(author_id)
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to load author"))
            raise

        self.profiles.put(author.id, author)
        self._done()
        return author

    async def fetch_author_books(self, author_id: int) -> list[Book]:
        author_id = self.reconciler.resolve(author_id, EntityKind.AUTHOR)
        if not is_persisted(author_id):
            return []

        try:
            books = await self.api.get_author_books(author_id)
        except ShelfSyncError as e:
            self.error = error_message(e, "Failed to load author books")
            raise

        self.author_books[author_id] = books
        return books

    async def fetch_catalog_author(self, name: str) -> tuple[CatalogAuthor, list[Book]]:
        """Profile of an author known only to the catalog, with transient-id books."""
        author, volumes = await self.catalog.get_author_details(name)
        return author, self.reconciler.assign_transient_ids(volumes)

    def get_author_profile(self, author_id: int) -> Author | None:
        return self.profiles.get(author_id)

    def clear_author_profile(self, author_id: int) -> None:
        self.profiles.remove(author_id)

    def clear_all_profiles(self) -> None:
        self.profiles.clear()
