"""
Identity reconciliation between platform records and catalog results.

Handles merging local and catalog search results by name, assigning
transient ids to catalog books, tracking id redirects after an external
entity is persisted, and promoting external authors.
"""

from dataclasses import dataclass
from enum import Enum

from shelfsync.core.errors import ApiError, NetworkError, PromotionError, error_message
from shelfsync.core.http import ApiClient
from shelfsync.core.logging import get_logger
from shelfsync.schemas import Author, Book, CatalogAuthor, CatalogBook
from shelfsync.schemas.common import EXTERNAL_SENTINEL_ID, is_persisted, is_transient

logger = get_logger(__name__)

# Catalog results on one page get ids -(page * TRANSIENT_PAGE_STRIDE + index)
TRANSIENT_PAGE_STRIDE = 1000


class EntityKind(str, Enum):
    AUTHOR = "author"
    BOOK = "book"


@dataclass(frozen=True)
class Redirect:
    """An external id that now lives under a persisted id."""

    kind: EntityKind
    old_id: int
    new_id: int


def merge_key(name: str | None) -> str:
    """Normalized name used to match entities across sources."""
    return (name or "").strip().lower()


def book_merge_key(title: str | None, author_name: str | None) -> str:
    return f"{merge_key(title)}\x1f{merge_key(author_name)}"


def transient_id(page: int, index: int) -> int:
    return -(page * TRANSIENT_PAGE_STRIDE + index)


class IdentityReconciler:
    """Merges search results and tracks external → persisted ids."""

    def __init__(self, api: ApiClient):
        self.api = api
        self._redirects: dict[tuple[EntityKind, int], Redirect] = {}

    # Merging

    def merge_authors(
        self, local: list[Author], external: list[CatalogAuthor]
    ) -> list[Author]:
        """
        Merge platform authors with catalog authors by normalized name.

        Platform authors come first and keep their ids; a catalog author with
        the same key only fills in a missing bio or book count. Catalog
        authors with no platform match are appended with the sentinel id.
        """
        merged: dict[str, Author] = {}
        for author in local:
            merged.setdefault(merge_key(author.name), author.model_copy())

        for catalog in external:
            key = merge_key(catalog.name)
            existing = merged.get(key)
            if existing is None:
                merged[key] = Author(
                    id=EXTERNAL_SENTINEL_ID,
                    name=catalog.name,
                    bio=catalog.bio,
                    avatar_url=catalog.avatar_url,
                    books_count=catalog.books_count,
                    events_count=0,
                    followers_count=0,
                )
                continue

            if not existing.bio and catalog.bio:
                existing.bio = catalog.bio
            if not existing.books_count and catalog.books_count:
                existing.books_count = catalog.books_count

        return list(merged.values())

    def merge_books(self, local: list[Book], external: list[Book]) -> list[Book]:
        """Same rule as authors, keyed on title plus author name."""
        merged: dict[str, Book] = {}
        for book in local:
            merged.setdefault(
                book_merge_key(book.title, book.display_author()), book.model_copy()
            )

        for candidate in external:
            key = book_merge_key(candidate.title, candidate.display_author())
            existing = merged.get(key)
            if existing is None:
                merged[key] = candidate
                continue

            for field in ("description", "cover_image_url", "isbn"):
                if not getattr(existing, field) and getattr(candidate, field):
                    setattr(existing, field, getattr(candidate, field))

        return list(merged.values())

    @staticmethod
    def assign_transient_ids(catalog_books: list[CatalogBook], page: int = 1) -> list[Book]:
        """Turn one page of catalog volumes into books with negative ids."""
        return [
            Book(
                id=transient_id(page, index),
                title=volume.title,
                isbn=volume.isbn,
                description=volume.description,
                cover_image_url=volume.cover_image_url,
                release_date=volume.published_date,
                author_name=", ".join(volume.authors) or None,
                page_count=volume.page_count,
                google_books_id=volume.id,
            )
            for index, volume in enumerate(catalog_books)
        ]

    # Redirects

    def record_redirect(self, old_id: int, new_id: int, kind: EntityKind) -> None:
        # The sentinel id is shared by every unimported author, so it never redirects
        if not is_transient(old_id) or not is_persisted(new_id):
            return
        kind = EntityKind(kind)
        self._redirects[(kind, old_id)] = Redirect(kind=kind, old_id=old_id, new_id=new_id)
        logger.debug(f"Recorded {kind.value} redirect {old_id} -> {new_id}")

    def resolve(self, entity_id: int, kind: EntityKind) -> int:
        """Persisted id for ``entity_id`` if it was promoted, else ``entity_id``."""
        redirect = self._redirects.get((EntityKind(kind), entity_id))
        return redirect.new_id if redirect else entity_id

    def has_redirect(self, entity_id: int, kind: EntityKind) -> bool:
        return (EntityKind(kind), entity_id) in self._redirects

    def clear_redirects(self, kind: EntityKind | None = None) -> None:
        if kind is None:
            self._redirects.clear()
            return
        kind = EntityKind(kind)
        for key in [k for k in self._redirects if k[0] == kind]:
            del self._redirects[key]

    # Promotion

    async def promote_author(self, author: Author) -> Author:
        """
        Persist an external author.

        A persisted author is returned untouched. On success the backend id
        is authoritative and a redirect from the external id is recorded.

        Raises:
            PromotionError: The backend refused or could not be reached; the
                backend message is carried verbatim.
        """
        if is_persisted(author.id):
            return author

        try:
            created = await self.api.create_author(
                name=author.name,
                bio=author.bio,
                avatar_url=author.avatar_url,
                website_url=author.website_url,
            )
        except (ApiError, NetworkError) as e:
            logger.warning(f"Failed to import author {author.name!r}: {e.message}")
            raise PromotionError(error_message(e, "Failed to import author"), cause=e) from e

        self.record_redirect(author.id, created.id, EntityKind.AUTHOR)
        logger.info(
            f"Imported author {created.name!r}",
            extra={"extra_fields": {"author_id": created.id}},
        )
        return created
