"""
Shelf entries, catalog search session and book details.

Shelf entries are cached by ``book_id`` and written only from backend
responses; ``loading`` is the only feedback given before a response lands.
A failed mutation leaves the cache as it was, records ``error`` and
re-raises.
"""

from shelfsync.core.bus import EventBus, ShelfChanged
from shelfsync.core.errors import (
    ExternalEntityError,
    NotFoundError,
    ShelfSyncError,
    error_message,
)
from shelfsync.core.http import ApiClient
from shelfsync.core.logging import get_logger
from shelfsync.schemas import (
    Book,
    BookFriend,
    Pagination,
    ProgressUpdate,
    ShelfStatus,
    UserBook,
    Visibility,
)
from shelfsync.schemas.common import is_persisted, is_transient
from shelfsync.services.google_books import GoogleBooksClient
from shelfsync.services.identity import EntityKind, IdentityReconciler
from shelfsync.stores.base import EntityCache, StoreState

logger = get_logger(__name__)


class BooksStore(StoreState):
    def __init__(
        self,
        api: ApiClient,
        bus: EventBus,
        reconciler: IdentityReconciler,
        catalog: GoogleBooksClient,
    ):
        super().__init__()
        self.api = api
        self.bus = bus
        self.reconciler = reconciler
        self.catalog = catalog

        self.user_books: EntityCache[int, UserBook] = EntityCache("user_books")
        self.books: EntityCache[int, Book] = EntityCache("books")
        self.friends: dict[int, list[BookFriend]] = {}

        # Catalog search session
        self.search_results: EntityCache[int, Book] = EntityCache("search_results")
        self.search_order: list[int] = []
        self.search_query: str = ""
        self.search_page = 1
        self.search_per_page = 20
        self.search_pagination: Pagination | None = None
        self.search_loading = False
        self.search_error: str | None = None

    # Shelf reads

    async def fetch_user_book(self, book_id: int) -> UserBook | None:
        """
        The current user's entry for a book, or None when it is not shelved.

        A 404 is the normal "not shelved" answer, not an error.
        """
        book_id = self.reconciler.resolve(book_id, EntityKind.BOOK)
        if not is_persisted(book_id):
            return None

        self._begin()
        try:
            user_book = await self.api.get_user_book(book_id)
        except NotFoundError:
            self._done()
            return None
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to fetch user book"))
            raise

        self.user_books.put(user_book.book_id, user_book)
        self._done()
        return user_book

    async def get_user_books(
        self,
        status: ShelfStatus | None = None,
        visibility: Visibility | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> list[UserBook]:
        self._begin()
        try:
            user_books, _ = await self.api.get_user_books(
                shelf=status, visibility=visibility, page=page, per_page=per_page
            )
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to fetch user books"))
            raise

        self.user_books.put_many({ub.book_id: ub for ub in user_books})
        self._done()
        return user_books

    def get_user_book_by_book_id(self, book_id: int) -> UserBook | None:
        # Entries are keyed by persisted ids only; transient ids never match
        return self.user_books.get(book_id)

    def get_shelf_books(self, status: ShelfStatus) -> list[UserBook]:
        status = ShelfStatus(status)
        return self.user_books.list(lambda ub: ub.status == status)

    def _find_by_user_book_id(self, user_book_id: int) -> UserBook | None:
        for user_book in self.user_books.values():
            if user_book.id == user_book_id:
                return user_book
        return None

    # Shelf mutations

    async def add_to_shelf(
        self,
        book_id: int,
        status: ShelfStatus,
        book: Book | None = None,
        visibility: Visibility | None = None,
        dnf_page: int | None = None,
        dnf_reason: str | None = None,
    ) -> UserBook:
        """
        Create a shelf entry.

        For a catalog result (negative id) the book is created by the backend
        in the same request; the entry is cached under the persisted id and a
        redirect from the transient id is recorded.
        """
        original_id = book_id
        book_id = self.reconciler.resolve(book_id, EntityKind.BOOK)

        if is_transient(book_id):
            book = book or self.search_results.get(book_id)
            if book is None:
                raise ExternalEntityError(
                    book_id,
                    "Book details are required to shelve a catalog result.",
                )
        elif not is_persisted(book_id):
            raise ExternalEntityError(book_id, "Cannot shelve a book without an id.")

        self._begin()
        try:
            user_book = await self.api.add_book_to_shelf(
                book_id,
                status,
                book=book,
                visibility=visibility,
                dnf_reason=dnf_reason,
                dnf_page=dnf_page,
            )
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to add book to shelf"))
            raise

        if is_transient(original_id):
            self.reconciler.record_redirect(original_id, user_book.book_id, EntityKind.BOOK)
            logger.info(
                f"Imported catalog book as {user_book.book_id}",
                extra={"extra_fields": {"transient_id": original_id, "book_id": user_book.book_id}},
            )

        self.user_books.put(user_book.book_id, user_book)
        if user_book.book is not None:
            self.books.put(user_book.book_id, user_book.book)
        self._done()
        self.bus.publish(ShelfChanged(user_book.book_id, user_book.id, "added"))
        return user_book

    async def update_progress(
        self, user_book_id: int, update: ProgressUpdate | None = None, **fields
    ) -> UserBook:
        """
        Patch an entry. Pages and percentage are reconciled against the
        cached entry before sending, so the two never drift apart.
        """
        update = update or ProgressUpdate(**fields)
        update = update.reconciled(self._find_by_user_book_id(user_book_id))

        self._begin()
        try:
            user_book = await self.api.update_book_progress(user_book_id, update)
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to update progress"))
            raise

        self.user_books.put(user_book.book_id, user_book)
        self._done()
        self.bus.publish(ShelfChanged(user_book.book_id, user_book.id, "updated"))
        return user_book

    async def update_visibility(self, user_book_id: int, visibility: Visibility) -> UserBook:
        self._begin()
        try:
            user_book = await self.api.update_book_visibility(user_book_id, visibility)
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to update visibility"))
            raise

        self.user_books.put(user_book.book_id, user_book)
        self._done()
        self.bus.publish(ShelfChanged(user_book.book_id, user_book.id, "updated"))
        return user_book

    async def save_review(
        self, user_book_id: int, rating: int, review: str | None = None
    ) -> UserBook:
        self._begin()
        try:
            user_book = await self.api.save_book_review(user_book_id, rating, review)
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to save review"))
            raise

        self.user_books.put(user_book.book_id, user_book)
        self._done()
        self.bus.publish(ShelfChanged(user_book.book_id, user_book.id, "reviewed"))
        return user_book

    async def update_shelf(
        self,
        user_book_id: int | None,
        status: ShelfStatus,
        book_id: int | None = None,
        book: Book | None = None,
        visibility: Visibility | None = None,
        dnf_page: int | None = None,
        dnf_reason: str | None = None,
        pages_read: int | None = None,
        total_pages: int | None = None,
        completion_percentage: float | None = None,
    ) -> UserBook:
        """
        Move a book to a shelf, creating the entry first when there is none.

        A new entry is created with status, visibility and DNF fields; any
        progress fields are then applied in a second call.
        """
        if user_book_id:
            return await self.update_progress(
                user_book_id,
                ProgressUpdate(
                    status=status,
                    visibility=visibility,
                    dnf_page=dnf_page,
                    dnf_reason=dnf_reason,
                    pages_read=pages_read,
                    total_pages=total_pages,
                    completion_percentage=completion_percentage,
                ),
            )

        if book_id is None:
            if book is None:
                raise ValueError("book_id or book is required to create a shelf entry")
            book_id = book.id

        user_book = await self.add_to_shelf(
            book_id,
            status,
            book=book,
            visibility=visibility,
            dnf_page=dnf_page,
            dnf_reason=dnf_reason,
        )

        if pages_read is None and total_pages is None and completion_percentage is None:
            return user_book

        return await self.update_progress(
            user_book.id,
            ProgressUpdate(
                pages_read=pages_read,
                total_pages=total_pages,
                completion_percentage=completion_percentage,
            ),
        )

    # Catalog search session

    async def search_catalog(self, query: str, page: int = 1, per_page: int = 20) -> list[Book]:
        """
        Search the external catalog and cache the results under transient ids.

        The catalog gives no total, so pagination is estimated: a short page
        is the last one.
        """
        if not query.strip():
            self.clear_search_results()
            return []

        self.search_loading = True
        self.search_error = None
        try:
            volumes = await self.catalog.search_books(
                query, max_results=per_page, start_index=(page - 1) * per_page
            )
        except ShelfSyncError as e:
            self.search_error = error_message(e, "Failed to search books")
            self.search_loading = False
            self.search_order = []
            self.search_pagination = None
            raise

        if page == 1:
            self._end_search_session()
        books = self.reconciler.assign_transient_ids(volumes, page)
        self.cache_search_results(books)
        self.search_order.extend(b.id for b in books)

        is_last_page = len(volumes) < per_page
        self.search_pagination = Pagination(
            page=page,
            per_page=per_page,
            total_pages=page if is_last_page else page + 1,
            total_count=len(self.search_order) if is_last_page else (page + 1) * per_page,
        )
        self.search_query = query
        self.search_page = page
        self.search_per_page = per_page
        self.search_loading = False
        return books

    async def load_more_search(self) -> list[Book]:
        if self.search_loading or not self.search_query or not self.search_has_more:
            return []
        return await self.search_catalog(
            self.search_query, page=self.search_page + 1, per_page=self.search_per_page
        )

    @property
    def search_has_more(self) -> bool:
        return self.search_pagination is not None and self.search_pagination.has_more

    def search_books(self) -> list[Book]:
        """Results of the current search session, in the order received."""
        return [b for b in (self.search_results.get(i) for i in self.search_order) if b]

    def cache_search_results(self, books: list[Book]) -> None:
        self.search_results.put_many({book.id: book for book in books})

    def get_search_result(self, book_id: int) -> Book | None:
        return self.search_results.get(book_id)

    def clear_search_results(self) -> None:
        self._end_search_session()
        self.search_query = ""
        self.search_page = 1
        self.search_pagination = None
        self.search_error = None

    def _end_search_session(self) -> None:
        # Transient ids are reused by the next search, so their redirects die with the session
        self.search_results.clear()
        self.search_order = []
        self.reconciler.clear_redirects(EntityKind.BOOK)

    # Book details

    async def fetch_book(self, book_id: int) -> Book | None:
        """
        Book details. A transient id that was never imported is answered
        from the search cache.
        """
        resolved = self.reconciler.resolve(book_id, EntityKind.BOOK)
        if not is_persisted(resolved):
            return self.search_results.get(resolved)

        self._begin()
        try:
            book = await self.api.get_book(resolved)
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to load book"))
            raise

        self.books.put(book.id, book)
        self._done()
        return book

    async def fetch_book_friends(self, book_id: int) -> list[BookFriend]:
        resolved = self.reconciler.resolve(book_id, EntityKind.BOOK)
        if not is_persisted(resolved):
            return []

        try:
            friends = await self.api.get_book_friends(resolved)
        except ShelfSyncError as e:
            self.error = error_message(e, "Failed to load friends")
            raise

        self.friends[resolved] = friends
        return friends
