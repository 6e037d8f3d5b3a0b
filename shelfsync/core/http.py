"""
HTTP client for the platform backend.

One ``ApiClient`` per client context. Every request carries the bearer token
(when set) and an ``X-Request-ID`` header, and is logged on start, completion
and failure. Non-2xx answers are mapped to the ``ApiError`` hierarchy; a 401
clears the token and publishes ``Unauthorized`` on the bus.
"""

import time
import uuid
from typing import Any

import httpx

from shelfsync.core.bus import EventBus, Unauthorized
from shelfsync.core.config import Settings
from shelfsync.core.errors import (
    ApiError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
    ValidationError,
)
from shelfsync.core.logging import get_logger, request_id_var
from shelfsync.schemas import (
    Author,
    Book,
    BookFriend,
    Event,
    Follow,
    FollowableType,
    Forum,
    ForumComment,
    ForumPost,
    HeartResponse,
    ImportRecord,
    Pagination,
    ProgressUpdate,
    RecommendedAuthor,
    RecommendedBook,
    RecommendedEventGroup,
    RefreshEventsResponse,
    ShelfStatus,
    UserBook,
    UserPreferences,
    Venue,
    Visibility,
)

logger = get_logger(__name__)

ERROR_CLASSES: dict[int, type[ApiError]] = {
    401: UnauthorizedError,
    404: NotFoundError,
    409: ValidationError,
    422: ValidationError,
    429: RateLimitedError,
}


def extract_error_message(status_code: int, body: Any) -> tuple[str, list[str]]:
    """Pull a human-readable message out of an error body.

    Order: ``error``, joined ``errors``, ``detail``, then a generic fallback.
    """
    errors: list[str] = []
    if isinstance(body, dict):
        raw_errors = body.get("errors")
        if isinstance(raw_errors, list):
            errors = [str(e) for e in raw_errors]
        elif isinstance(raw_errors, str):
            errors = [raw_errors]

        if body.get("error"):
            return str(body["error"]), errors
        if errors:
            return ", ".join(errors), errors
        if body.get("detail"):
            return str(body["detail"]), errors

    return f"Request failed with status code {status_code}", errors


def unwrap(data: Any, key: str) -> Any:
    """Return ``data[key]`` for an enveloped object, else ``data`` itself."""
    if isinstance(data, dict) and key in data:
        return data[key]
    return data


def unwrap_list(data: Any, *keys: str) -> list:
    """Return the first list found under ``keys``, or ``data`` if it is a list."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if value is not None:
                return value
    return []


def parse_pagination(data: Any) -> Pagination | None:
    if isinstance(data, dict) and data.get("pagination"):
        return Pagination.model_validate(data["pagination"])
    return None


def _clean_params(params: dict[str, Any] | None) -> dict[str, Any] | None:
    if not params:
        return None
    cleaned = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = value
    return cleaned or None


class ApiClient:
    """Async client for the backend REST API."""

    def __init__(
        self,
        settings: Settings,
        bus: EventBus | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.bus = bus
        self._token: str | None = None
        self.client = httpx.AsyncClient(
            base_url=settings.API_BASE_URL,
            timeout=settings.API_TIMEOUT_SECONDS,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        self._token = token

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        files: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None when empty)."""
        request_id = str(uuid.uuid4())
        request_id_var.set(request_id)

        headers = {"X-Request-ID": request_id}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        start_time = time.perf_counter()
        logger.debug(
            f"Request started: {method} {path}",
            extra={"extra_fields": {"method": method, "path": path}},
        )

        try:
            response = await self.client.request(
                method,
                path,
                params=_clean_params(params),
                json=json,
                files=files,
                headers=headers,
            )
        except httpx.RequestError as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {method} {path}",
                extra={
                    "extra_fields": {
                        "method": method,
                        "path": path,
                        "duration_ms": round(duration_ms, 2),
                        "error": str(e),
                    }
                },
            )
            raise NetworkError() from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Request completed: {method} {path} - {response.status_code}",
            extra={
                "extra_fields": {
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            },
        )

        body = self._decode(response)
        if response.is_success:
            return body

        if response.status_code == 401:
            self.set_token(None)
            if self.bus is not None:
                self.bus.publish(Unauthorized(path=path))

        message, errors = extract_error_message(response.status_code, body)
        error_class = ERROR_CLASSES.get(response.status_code, ApiError)
        raise error_class(response.status_code, message, errors=errors, payload=body)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    # Feed

    async def get_feed(
        self, page: int = 1, per_page: int = 50, activity_type: str | None = None
    ) -> dict:
        """Raw feed page; items are validated one by one by the feed store."""
        data = await self.request(
            "GET",
            "/feed",
            params={"page": page, "per_page": per_page, "activity_type": activity_type},
        )
        return data if isinstance(data, dict) else {"feed_items": unwrap_list(data)}

    # Follows

    async def get_follows(self) -> list[Follow]:
        data = await self.request("GET", "/follows")
        return [Follow.model_validate(f) for f in unwrap_list(data, "follows")]

    async def follow(self, followable_type: FollowableType, followable_id: int) -> Follow:
        data = await self.request(
            "POST",
            "/follows",
            json={
                "followable_type": FollowableType(followable_type).value,
                "followable_id": followable_id,
            },
        )
        return Follow.model_validate(unwrap(data, "follow"))

    async def unfollow(self, follow_id: int) -> None:
        await self.request("DELETE", f"/follows/{follow_id}")

    # Authors

    async def search_authors(
        self, query: str, page: int = 1, per_page: int = 20
    ) -> tuple[list[Author], Pagination | None]:
        data = await self.request(
            "GET", "/authors", params={"query": query, "page": page, "per_page": per_page}
        )
        authors = [Author.model_validate(a) for a in unwrap_list(data, "authors")]
        return authors, parse_pagination(data)

    async def get_author(self, author_id: int) -> Author:
        data = await self.request("GET", f"/authors/{author_id}")
        return Author.model_validate(unwrap(data, "author"))

    async def get_author_books(self, author_id: int) -> list[Book]:
        data = await self.request("GET", f"/authors/{author_id}/books")
        return [Book.model_validate(b) for b in unwrap_list(data, "books")]

    async def get_author_events(
        self, author_id: int, **params: Any
    ) -> tuple[list[Event], Pagination | None]:
        data = await self.request("GET", f"/authors/{author_id}/events", params=params)
        events = [Event.model_validate(e) for e in unwrap_list(data, "events")]
        return events, parse_pagination(data)

    async def create_author(
        self,
        name: str,
        bio: str | None = None,
        avatar_url: str | None = None,
        website_url: str | None = None,
    ) -> Author:
        author = {
            "name": name,
            "bio": bio,
            "avatar_url": avatar_url,
            "website_url": website_url,
        }
        data = await self.request(
            "POST",
            "/authors",
            json={"author": {k: v for k, v in author.items() if v is not None}},
        )
        return Author.model_validate(unwrap(data, "author"))

    # Books

    async def search_books(
        self, query: str, page: int = 1, per_page: int = 20
    ) -> tuple[list[Book], Pagination | None]:
        data = await self.request(
            "GET", "/books", params={"query": query, "page": page, "per_page": per_page}
        )
        books = [Book.model_validate(b) for b in unwrap_list(data, "books")]
        return books, parse_pagination(data)

    async def get_book(self, book_id: int) -> Book:
        data = await self.request("GET", f"/books/{book_id}")
        return Book.model_validate(unwrap(data, "book"))

    async def get_book_friends(self, book_id: int) -> list[BookFriend]:
        data = await self.request("GET", f"/books/{book_id}/friends")
        return [BookFriend.model_validate(f) for f in unwrap_list(data, "friends")]

    # Shelves

    async def get_user_book(self, book_id: int) -> UserBook:
        data = await self.request("GET", f"/user/books/by_book/{book_id}")
        return UserBook.model_validate(unwrap(data, "user_book"))

    async def add_book_to_shelf(
        self,
        book_id: int,
        status: ShelfStatus,
        book: Book | None = None,
        visibility: Visibility | None = None,
        dnf_reason: str | None = None,
        dnf_page: int | None = None,
    ) -> UserBook:
        """Create a shelf entry.

        A negative ``book_id`` is a catalog result; its displayable fields are
        sent along so the backend can create the book in the same request.
        """
        status = ShelfStatus(status)
        payload: dict[str, Any] = {
            "book_id": book_id,
            "status": status.value,
            # Legacy param, still read by older backends
            "shelf": status.value,
        }
        if visibility is not None:
            payload["visibility"] = Visibility(visibility).value
        if dnf_reason:
            payload["dnf_reason"] = dnf_reason
        if dnf_page is not None:
            payload["dnf_page"] = dnf_page
        if book_id < 0 and book is not None:
            payload.update(book.import_payload())

        data = await self.request("POST", "/user/books", json=payload)
        return UserBook.model_validate(unwrap(data, "user_book"))

    async def update_book_progress(self, user_book_id: int, update: ProgressUpdate) -> UserBook:
        data = await self.request(
            "PATCH", f"/user/books/{user_book_id}", json={"user_book": update.payload()}
        )
        return UserBook.model_validate(unwrap(data, "user_book"))

    async def update_book_visibility(self, user_book_id: int, visibility: Visibility) -> UserBook:
        data = await self.request(
            "PATCH",
            f"/user/books/{user_book_id}",
            json={"user_book": {"visibility": Visibility(visibility).value}},
        )
        return UserBook.model_validate(unwrap(data, "user_book"))

    async def get_user_books(
        self,
        shelf: ShelfStatus | None = None,
        visibility: Visibility | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> tuple[list[UserBook], Pagination | None]:
        params = {
            "shelf": ShelfStatus(shelf).value if shelf else None,
            "visibility": Visibility(visibility).value if visibility else None,
            "page": page,
            "per_page": per_page,
        }
        data = await self.request("GET", "/user/books", params=params)
        user_books = [UserBook.model_validate(ub) for ub in unwrap_list(data, "user_books")]
        return user_books, parse_pagination(data)

    async def save_book_review(
        self, user_book_id: int, rating: int, review: str | None = None
    ) -> UserBook:
        data = await self.request(
            "POST",
            f"/user/books/{user_book_id}/review",
            json={"rating": rating, "review": review},
        )
        return UserBook.model_validate(unwrap(data, "user_book"))

    # Events

    async def get_events(self, **params: Any) -> tuple[list[Event], Pagination | None]:
        data = await self.request("GET", "/events", params=params)
        events = [Event.model_validate(e) for e in unwrap_list(data, "events")]
        return events, parse_pagination(data)

    async def get_event(self, event_id: int) -> Event:
        data = await self.request("GET", f"/events/{event_id}")
        return Event.model_validate(unwrap(data, "event"))

    async def refresh_events(self, author_id: int | None = None) -> RefreshEventsResponse:
        data = await self.request(
            "POST", "/events/refresh", params={"author_id": author_id}, json={}
        )
        return RefreshEventsResponse.model_validate(data or {})

    async def get_venues(
        self,
        city: str | None = None,
        state: str | None = None,
        zipcode: str | None = None,
    ) -> list[Venue]:
        data = await self.request(
            "GET", "/venues", params={"city": city, "state": state, "zipcode": zipcode}
        )
        return [Venue.model_validate(v) for v in unwrap_list(data, "venues")]

    # Recommendations

    async def get_recommended_books(self) -> list[RecommendedBook]:
        data = await self.request("GET", "/recommendations/books")
        items = unwrap_list(data, "recommended_books", "books")
        return [RecommendedBook.model_validate(r) for r in items]

    async def get_recommended_authors(self) -> list[RecommendedAuthor]:
        data = await self.request("GET", "/recommendations/authors")
        items = unwrap_list(data, "recommended_authors", "authors")
        return [RecommendedAuthor.model_validate(r) for r in items]

    async def get_recommended_events(self) -> list[RecommendedEventGroup]:
        data = await self.request("GET", "/recommendations/events")
        items = unwrap_list(data, "recommended_events")
        return [RecommendedEventGroup.model_validate(g) for g in items]

    # Forums

    async def get_forums(self) -> list[Forum]:
        data = await self.request("GET", "/forums")
        return [Forum.model_validate(f) for f in unwrap_list(data, "forums")]

    async def get_forum(self, forum_id: int) -> tuple[Forum, list[ForumPost]]:
        data = await self.request("GET", f"/forums/{forum_id}")
        forum = Forum.model_validate(unwrap(data, "forum"))
        posts = [ForumPost.model_validate(p) for p in unwrap_list(data, "posts")]
        return forum, posts

    async def follow_forum(self, forum_id: int) -> dict:
        return await self.request("POST", f"/forums/{forum_id}/follow") or {}

    async def unfollow_forum(self, forum_id: int) -> None:
        await self.request("DELETE", f"/forums/{forum_id}/unfollow")

    async def get_forum_posts(
        self, forum_id: int, page: int = 1
    ) -> tuple[list[ForumPost], Pagination | None]:
        data = await self.request("GET", f"/forums/{forum_id}/posts", params={"page": page})
        posts = [ForumPost.model_validate(p) for p in unwrap_list(data, "posts")]
        return posts, parse_pagination(data)

    async def create_forum_post(self, forum_id: int, body: str) -> ForumPost:
        data = await self.request(
            "POST", f"/forums/{forum_id}/posts", json={"post": {"body": body}}
        )
        return ForumPost.model_validate(unwrap(data, "post"))

    async def get_forum_post(
        self, post_id: int
    ) -> tuple[ForumPost, list[ForumComment], Pagination | None]:
        data = await self.request("GET", f"/forum_posts/{post_id}")
        post = ForumPost.model_validate(unwrap(data, "post"))
        replies = [
            self._comment(r, post_id=post_id) for r in unwrap_list(data, "replies")
        ]
        return post, replies, parse_pagination(data)

    async def update_post(self, post_id: int, body: str) -> ForumPost:
        data = await self.request(
            "PATCH", f"/forum_posts/{post_id}", json={"post": {"body": body}}
        )
        return ForumPost.model_validate(unwrap(data, "post"))

    async def delete_post(self, post_id: int) -> None:
        await self.request("DELETE", f"/forum_posts/{post_id}")

    async def report_post(self, post_id: int, reason: str) -> None:
        await self.request("POST", f"/forum_posts/{post_id}/report", json={"reason": reason})

    async def heart_post(self, post_id: int) -> HeartResponse:
        data = await self.request("POST", f"/forum_posts/{post_id}/heart")
        return HeartResponse.model_validate(data)

    async def unheart_post(self, post_id: int) -> HeartResponse:
        data = await self.request("DELETE", f"/forum_posts/{post_id}/unheart")
        return HeartResponse.model_validate(data)

    async def get_post_comments(self, post_id: int, page: int = 1) -> list[ForumComment]:
        data = await self.request(
            "GET", f"/forum_posts/{post_id}/replies", params={"page": page}
        )
        return [self._comment(r, post_id=post_id) for r in unwrap_list(data, "replies")]

    async def create_post_comment(self, post_id: int, body: str) -> ForumComment:
        data = await self.request(
            "POST", f"/forum_posts/{post_id}/replies", json={"reply": {"body": body}}
        )
        return self._comment(unwrap(data, "reply"), post_id=post_id)

    async def create_thread_reply(self, post_id: int, parent_id: int, body: str) -> ForumComment:
        data = await self.request(
            "POST",
            f"/forum_posts/{post_id}/replies",
            json={"reply": {"body": body, "parent_id": parent_id}},
        )
        return self._comment(unwrap(data, "reply"), post_id=post_id, parent_id=parent_id)

    async def get_comment_thread(self, reply_id: int) -> list[ForumComment]:
        data = await self.request("GET", f"/forum_replies/{reply_id}/thread")
        return [self._comment(r, parent_id=reply_id) for r in unwrap_list(data, "replies")]

    async def update_reply(self, reply_id: int, body: str) -> ForumComment:
        data = await self.request(
            "PATCH", f"/forum_replies/{reply_id}", json={"reply": {"body": body}}
        )
        return self._comment(unwrap(data, "reply"))

    async def delete_reply(self, reply_id: int) -> None:
        await self.request("DELETE", f"/forum_replies/{reply_id}")

    async def report_reply(self, reply_id: int, reason: str) -> None:
        await self.request("POST", f"/forum_replies/{reply_id}/report", json={"reason": reason})

    async def heart_reply(self, reply_id: int) -> HeartResponse:
        data = await self.request("POST", f"/forum_replies/{reply_id}/heart")
        return HeartResponse.model_validate(data)

    async def unheart_reply(self, reply_id: int) -> HeartResponse:
        data = await self.request("DELETE", f"/forum_replies/{reply_id}/unheart")
        return HeartResponse.model_validate(data)

    @staticmethod
    def _comment(
        data: dict, post_id: int | None = None, parent_id: int | None = None
    ) -> ForumComment:
        # Reply payloads do not always echo the ids they were fetched under
        return ForumComment.model_validate(
            {
                **data,
                "forum_post_id": data.get("forum_post_id") or post_id,
                "parent_id": data.get("parent_id") or parent_id,
            }
        )

    # Onboarding

    async def get_preferences(self) -> UserPreferences:
        data = await self.request("GET", "/users/preferences")
        return UserPreferences.model_validate(unwrap(data, "preferences") or {})

    async def save_preferences(self, preferences: UserPreferences) -> UserPreferences:
        data = await self.request(
            "POST",
            "/users/preferences",
            json={"preferences": preferences.model_dump(exclude_none=True)},
        )
        return UserPreferences.model_validate(unwrap(data, "preferences") or {})

    # Imports

    async def upload_goodreads_csv(
        self, filename: str, content: bytes
    ) -> tuple[ImportRecord, str | None]:
        data = await self.request(
            "POST",
            "/imports/goodreads",
            files={"file": (filename, content, "text/csv")},
        )
        message = data.get("message") if isinstance(data, dict) else None
        return ImportRecord.model_validate(unwrap(data, "import")), message

    async def get_import_status(self, import_id: int) -> ImportRecord:
        data = await self.request("GET", f"/imports/{import_id}")
        return ImportRecord.model_validate(unwrap(data, "import"))

    async def get_imports(self) -> list[ImportRecord]:
        data = await self.request("GET", "/imports")
        return [ImportRecord.model_validate(i) for i in unwrap_list(data, "imports")]
