"""
Client for the Google Books API, the external book catalog.

Results have no platform id: authors come back as ``CatalogAuthor`` and
volumes as ``CatalogBook``. Turning them into platform records (and
assigning transient ids) is the identity reconciler's job.
"""

import httpx

from shelfsync.core.config import Settings
from shelfsync.core.errors import CatalogError
from shelfsync.core.logging import get_logger
from shelfsync.schemas import CatalogAuthor, CatalogBook

logger = get_logger(__name__)

# Google Books refuses maxResults above this
MAX_RESULTS_PER_REQUEST = 40

VOLUME_FIELDS = (
    "items(id,volumeInfo(title,authors,description,imageLinks,"
    "publishedDate,industryIdentifiers,pageCount))"
)


def author_query(name: str) -> str:
    return f'inauthor:"{name}"'


class GoogleBooksClient:
    """Client for Google Books API."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.api_key = settings.GOOGLE_BOOKS_API_KEY
        self.max_results = min(settings.CATALOG_MAX_RESULTS, MAX_RESULTS_PER_REQUEST)
        self.client = httpx.AsyncClient(
            base_url=settings.GOOGLE_BOOKS_BASE_URL,
            timeout=settings.CATALOG_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    async def search_books(
        self, query: str, max_results: int = 20, start_index: int = 0
    ) -> list[CatalogBook]:
        """
        Search volumes by free text (title, author, ISBN, or any
        ``intitle:``/``inauthor:`` expression).

        Args:
            query: Search query
            max_results: Requested page size, capped at 40
            start_index: Offset of the first result

        Returns:
            Parsed volumes, possibly empty
        """
        if not query.strip():
            return []

        items = await self._volumes(query, min(max_results, self.max_results), start_index)
        return [self.transform_book(item) for item in items]

    async def search_authors(self, query: str, max_results: int = 20) -> list[CatalogAuthor]:
        """
        Search authors by name.

        The catalog has no author endpoint, so this searches volumes with
        ``inauthor:`` and groups them by author. Twice as many volumes as
        requested authors are fetched to leave room for duplicates.
        """
        if not query.strip():
            return []

        items = await self._volumes(author_query(query), min(max_results * 2, self.max_results))
        return self.extract_authors(items)[:max_results]

    async def get_author_details(self, author_name: str) -> tuple[CatalogAuthor, list[CatalogBook]]:
        books = await self.search_books(author_query(author_name), 10)

        counts: dict[str, int] = {}
        for book in books:
            for name in book.authors:
                counts[name] = counts.get(name, 0) + 1

        name = next(
            (n for n in counts if n.lower() == author_name.lower()),
            next(iter(counts), author_name),
        )
        return CatalogAuthor(name=name, books_count=len(books)), books

    async def _volumes(self, query: str, max_results: int, start_index: int = 0) -> list[dict]:
        params = {
            "q": query,
            "maxResults": max_results,
            "fields": VOLUME_FIELDS,
        }
        if start_index:
            params["startIndex"] = start_index
        if self.api_key:
            params["key"] = self.api_key

        try:
            response = await self.client.get("/volumes", params=params)
        except httpx.RequestError as e:
            logger.warning(f"Google Books request failed: {e}")
            raise CatalogError("Unable to reach Google Books") from e

        if response.status_code != 200:
            raise CatalogError(f"Google Books API error: {response.status_code}")

        return response.json().get("items", [])

    @staticmethod
    def transform_book(item: dict) -> CatalogBook:
        """Parse a volume item from Google Books."""
        volume_info = item.get("volumeInfo", {})
        image_links = volume_info.get("imageLinks", {})

        identifiers = {
            i.get("type"): i.get("identifier")
            for i in volume_info.get("industryIdentifiers", [])
        }

        return CatalogBook(
            id=item["id"],
            title=volume_info.get("title") or "Unknown Title",
            authors=volume_info.get("authors", []),
            description=volume_info.get("description"),
            cover_image_url=image_links.get("thumbnail") or image_links.get("smallThumbnail"),
            published_date=volume_info.get("publishedDate"),
            isbn=identifiers.get("ISBN_13") or identifiers.get("ISBN_10"),
            page_count=volume_info.get("pageCount"),
        )

    @staticmethod
    def extract_authors(items: list[dict]) -> list[CatalogAuthor]:
        """Unique authors across volumes, in first-seen order, with book counts."""
        authors: dict[str, CatalogAuthor] = {}
        for item in items:
            for name in item.get("volumeInfo", {}).get("authors", []):
                if name in authors:
                    authors[name].books_count += 1
                else:
                    authors[name] = CatalogAuthor(name=name, books_count=1)
        return list(authors.values())
