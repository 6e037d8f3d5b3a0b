from shelfsync.schemas.author import Author, CatalogAuthor
from shelfsync.schemas.book import Book, BookFriend, CatalogBook
from shelfsync.schemas.common import (
    Pagination,
    is_external,
    is_persisted,
    is_transient,
)
from shelfsync.schemas.event import Event, EventType, RefreshEventsResponse, Venue
from shelfsync.schemas.feed import (
    ACTIVITY_SOURCES,
    ActivityType,
    FeedItem,
    FeedPage,
    FeedSource,
)
from shelfsync.schemas.follow import Follow, FollowableType
from shelfsync.schemas.forum import Forum, ForumComment, ForumPost, ForumUser, HeartResponse
from shelfsync.schemas.imports import ImportRecord, ImportState
from shelfsync.schemas.recommendation import (
    RecommendedAuthor,
    RecommendedBook,
    RecommendedEvent,
    RecommendedEventGroup,
)
from shelfsync.schemas.user import User, UserPreferences
from shelfsync.schemas.user_book import ProgressUpdate, ShelfStatus, UserBook, Visibility

__all__ = [
    "Pagination",
    "is_persisted",
    "is_transient",
    "is_external",
    "User",
    "UserPreferences",
    "Author",
    "CatalogAuthor",
    "Book",
    "BookFriend",
    "CatalogBook",
    "UserBook",
    "ProgressUpdate",
    "ShelfStatus",
    "Visibility",
    "Follow",
    "FollowableType",
    "Event",
    "EventType",
    "RefreshEventsResponse",
    "Venue",
    "Forum",
    "ForumPost",
    "ForumComment",
    "ForumUser",
    "HeartResponse",
    "FeedItem",
    "FeedPage",
    "ActivityType",
    "FeedSource",
    "ACTIVITY_SOURCES",
    "ImportRecord",
    "ImportState",
    "RecommendedBook",
    "RecommendedAuthor",
    "RecommendedEvent",
    "RecommendedEventGroup",
]
