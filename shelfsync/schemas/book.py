from pydantic import BaseModel, Field

from shelfsync.schemas.author import Author


class Book(BaseModel):
    id: int
    title: str
    isbn: str | None = None
    description: str | None = None
    cover_image_url: str | None = None
    release_date: str | None = None  # ISO date as sent by the backend
    author: Author | None = None
    author_name: str | None = None
    followers_count: int | None = None
    page_count: int | None = None

    # Set on catalog results only
    google_books_id: str | None = None

    def display_author(self) -> str | None:
        if self.author_name:
            return self.author_name
        return self.author.name if self.author else None

    def import_payload(self) -> dict:
        """Displayable fields the backend needs to create this book."""
        return {
            "title": self.title,
            "author_name": self.display_author(),
            "isbn": self.isbn,
            "description": self.description,
            "cover_image_url": self.cover_image_url,
            "release_date": self.release_date,
            "google_books_id": self.google_books_id,
            "page_count": self.page_count,
        }


class CatalogBook(BaseModel):
    """A volume returned by the external book catalog."""

    id: str
    title: str
    authors: list[str] = Field(default_factory=list)
    description: str | None = None
    cover_image_url: str | None = None
    published_date: str | None = None
    isbn: str | None = None
    page_count: int | None = None


class BookFriend(BaseModel):
    """A followed user who has this book on a shelf."""

    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    status: str
