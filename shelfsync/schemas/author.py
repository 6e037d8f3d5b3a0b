from pydantic import BaseModel


class Author(BaseModel):
    id: int
    name: str
    bio: str | None = None
    avatar_url: str | None = None
    website_url: str | None = None
    books_count: int | None = None
    events_count: int | None = None
    followers_count: int | None = None


class CatalogAuthor(BaseModel):
    """An author as seen by the external book catalog (no platform id)."""

    name: str
    bio: str | None = None
    avatar_url: str | None = None
    books_count: int | None = None
    external_id: str | None = None
