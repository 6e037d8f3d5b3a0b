from datetime import datetime

from pydantic import BaseModel


class User(BaseModel):
    id: int
    username: str
    email: str | None = None
    display_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    created_at: datetime | None = None
    onboarding_completed: bool | None = None


class UserPreferences(BaseModel):
    """Onboarding answers. Unset fields are left out of a save."""

    genres: list[str] | None = None
    author_ids: list[int] | None = None
    zipcode: str | None = None
    onboarding_completed: bool | None = None
