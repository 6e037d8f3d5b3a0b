from pydantic import BaseModel

from shelfsync.schemas.author import Author
from shelfsync.schemas.book import Book
from shelfsync.schemas.event import Event


class RecommendedBook(BaseModel):
    id: int
    book: Book
    reason: str
    score: float | None = None
    source: str | None = None


class RecommendedAuthor(BaseModel):
    id: int
    author: Author
    reason: str
    score: float | None = None
    source: str | None = None


class RecommendedEvent(BaseModel):
    id: int
    event: Event
    reason: str
    score: float | None = None
    source: str | None = None
    group: str | None = None  # followed_authors, related_books, ...


class RecommendedEventGroup(BaseModel):
    group: str
    title: str
    description: str | None = None
    events: list[RecommendedEvent] = []
