from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class FollowableType(str, Enum):
    USER = "User"
    AUTHOR = "Author"
    BOOK = "Book"


class Follow(BaseModel):
    id: int
    followable_type: FollowableType
    followable_id: int
    created_at: datetime | None = None

    def key(self) -> tuple[FollowableType, int]:
        return (self.followable_type, self.followable_id)
