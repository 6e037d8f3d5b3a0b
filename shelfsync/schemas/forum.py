from datetime import datetime

from pydantic import BaseModel


class ForumUser(BaseModel):
    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None


class Forum(BaseModel):
    id: int
    title: str
    slug: str | None = None
    description: str | None = None
    visibility: str | None = None
    owner_id: int | None = None
    created_at: datetime | None = None
    is_following: bool = False
    followers_count: int = 0
    posts_count: int = 0


class ForumPost(BaseModel):
    id: int
    forum_id: int | None = None
    body: str
    created_at: datetime | None = None
    edited_at: datetime | None = None
    deleted_at: datetime | None = None
    user: ForumUser | None = None
    heart_count: int = 0
    reply_count: int = 0
    is_hearted: bool = False


class ForumComment(BaseModel):
    """A reply to a post. Top-level when ``parent_id`` is None."""

    id: int
    forum_post_id: int | None = None
    parent_id: int | None = None
    body: str
    created_at: datetime | None = None
    edited_at: datetime | None = None
    deleted_at: datetime | None = None
    user: ForumUser | None = None
    heart_count: int = 0
    reply_count: int = 0
    is_hearted: bool = False

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None


class HeartResponse(BaseModel):
    message: str | None = None
    heart_count: int
