from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from shelfsync.schemas.common import Pagination
from shelfsync.schemas.user_book import ShelfStatus, Visibility


class ActivityType(str, Enum):
    BOOK_RELEASE = "book_release"
    AUTHOR_EVENT = "author_event"
    AUTHOR_ANNOUNCEMENT = "author_announcement"
    BOOK_RECOMMENDATION = "book_recommendation"
    EVENT_RECOMMENDATION = "event_recommendation"
    FOLLOW_ACTIVITY = "follow_activity"
    USER_ADDED_BOOK = "user_added_book"
    USER_FINISHED_BOOK = "user_finished_book"
    USER_PROGRESS_UPDATE = "user_progress_update"
    USER_REVIEW = "user_review"
    USER_FOLLOWED_AUTHOR = "user_followed_author"
    USER_FOLLOWED_USER = "user_followed_user"
    FRIEND_ACTIVITY = "friend_activity"


class FeedSource(str, Enum):
    """Where an activity originates."""

    CATALOG = "catalog"
    RECOMMENDATION = "recommendation"
    SOCIAL = "social"
    USER_BOOK = "user_book"


ACTIVITY_SOURCES: dict[ActivityType, FeedSource] = {
    ActivityType.BOOK_RELEASE: FeedSource.CATALOG,
    ActivityType.AUTHOR_EVENT: FeedSource.CATALOG,
    ActivityType.AUTHOR_ANNOUNCEMENT: FeedSource.CATALOG,
    ActivityType.BOOK_RECOMMENDATION: FeedSource.RECOMMENDATION,
    ActivityType.EVENT_RECOMMENDATION: FeedSource.RECOMMENDATION,
    ActivityType.FOLLOW_ACTIVITY: FeedSource.SOCIAL,
    ActivityType.USER_ADDED_BOOK: FeedSource.USER_BOOK,
    ActivityType.USER_FINISHED_BOOK: FeedSource.USER_BOOK,
    ActivityType.USER_PROGRESS_UPDATE: FeedSource.USER_BOOK,
    ActivityType.USER_REVIEW: FeedSource.USER_BOOK,
    ActivityType.USER_FOLLOWED_AUTHOR: FeedSource.SOCIAL,
    ActivityType.USER_FOLLOWED_USER: FeedSource.SOCIAL,
    ActivityType.FRIEND_ACTIVITY: FeedSource.SOCIAL,
}


class FeedBook(BaseModel):
    type: Literal["Book"]
    id: int
    title: str
    author_name: str | None = None
    cover_image_url: str | None = None
    release_date: str | None = None


class FeedEvent(BaseModel):
    type: Literal["Event"]
    id: int
    title: str
    event_type: str | None = None
    starts_at: datetime | None = None
    author_name: str | None = None


class FeedAuthor(BaseModel):
    type: Literal["Author"]
    id: int
    name: str
    avatar_url: str | None = None


class FeedUser(BaseModel):
    type: Literal["User"]
    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None


class FeedUserBook(BaseModel):
    type: Literal["UserBook"]
    id: int
    book_id: int
    status: ShelfStatus | None = None
    visibility: Visibility = Visibility.PUBLIC
    pages_read: int | None = None
    total_pages: int | None = None
    completion_percentage: float | None = None
    rating: int | None = None
    review: str | None = None
    dnf_page: int | None = None
    dnf_reason: str | None = None
    # Serialized without a ``type`` tag, and empty when the book is gone
    book: dict[str, Any] = Field(default_factory=dict)


Feedable = Annotated[
    Union[FeedBook, FeedEvent, FeedAuthor, FeedUser, FeedUserBook],
    Field(discriminator="type"),
]


class FeedItem(BaseModel):
    id: int
    activity_type: ActivityType
    metadata: dict[str, Any] = Field(default_factory=dict)
    feedable: Feedable | None = None
    created_at: datetime

    @property
    def source(self) -> FeedSource:
        return ACTIVITY_SOURCES[self.activity_type]

    @property
    def is_private(self) -> bool:
        """True for shelf activity the owner has hidden."""
        if isinstance(self.feedable, FeedUserBook):
            return self.feedable.visibility == Visibility.PRIVATE
        if self.source != FeedSource.USER_BOOK:
            return False
        return self.metadata.get("visibility") == Visibility.PRIVATE.value


class FeedPage(BaseModel):
    feed_items: list[FeedItem] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
