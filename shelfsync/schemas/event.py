from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from shelfsync.schemas.author import Author
from shelfsync.schemas.book import Book


class EventType(str, Enum):
    BOOK_RELEASE = "book_release"
    AUTHOR_ANNOUNCEMENT = "author_announcement"
    SIGNING = "signing"
    READING = "reading"
    STORYTIME = "storytime"
    INTERVIEW = "interview"
    TOUR = "tour"
    VIRTUAL_EVENT = "virtual_event"


class Event(BaseModel):
    id: int
    title: str
    description: str | None = None
    event_type: EventType
    starts_at: datetime
    ends_at: datetime | None = None
    location: str | None = None
    is_virtual: bool = False
    venue_name: str | None = None
    external_url: str | None = None
    external_source: str | None = None
    audience_type: str | None = None
    timezone: str | None = None
    author: Author | None = None
    author_id: int | None = None
    author_name: str | None = None
    book: Book | None = None
    book_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_refreshed_at: datetime | None = None


class RefreshEventsResponse(BaseModel):
    message: str | None = None
    events_count: int = 0
    last_refreshed_at: datetime | None = None


class Venue(BaseModel):
    id: int
    name: str
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zipcode: str | None = None
    website_url: str | None = None
    venue_type: str | None = None
