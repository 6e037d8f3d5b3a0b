from shelfsync.stores.authors import AuthorSearchResult, AuthorsStore
from shelfsync.stores.base import EntityCache
from shelfsync.stores.books import BooksStore
from shelfsync.stores.events import EventsStore
from shelfsync.stores.feed import FeedStore
from shelfsync.stores.follows import FollowsStore
from shelfsync.stores.forums import ForumsStore
from shelfsync.stores.recommendations import RecommendationsStore, RecommendedEventsStore

__all__ = [
    "EntityCache",
    "AuthorSearchResult",
    "AuthorsStore",
    "BooksStore",
    "EventsStore",
    "FeedStore",
    "FollowsStore",
    "ForumsStore",
    "RecommendationsStore",
    "RecommendedEventsStore",
]
