from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from shelfsync.schemas.book import Book


class ShelfStatus(str, Enum):
    TO_READ = "to_read"
    READING = "reading"
    READ = "read"
    DNF = "dnf"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


def completion_from_pages(pages_read: int | None, total_pages: int | None) -> int | None:
    """Whole-number percentage, or None when it cannot be derived."""
    if pages_read is None or not total_pages or total_pages <= 0:
        return None
    return round(pages_read / total_pages * 100)


def pages_from_completion(completion_percentage: float | None, total_pages: int | None) -> int | None:
    if completion_percentage is None or not total_pages or total_pages <= 0:
        return None
    return round(total_pages * completion_percentage / 100)


class UserBook(BaseModel):
    id: int
    book_id: int
    book: Book | None = None
    status: ShelfStatus = ShelfStatus.TO_READ
    visibility: Visibility = Visibility.PUBLIC
    pages_read: int | None = None
    total_pages: int | None = None
    completion_percentage: float | None = None
    rating: int | None = Field(None, ge=1, le=5)
    review: str | None = None
    dnf_page: int | None = None
    dnf_reason: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def fold_legacy_shelf(cls, data):
        """Older responses only carry ``shelf``; it names the same thing as ``status``."""
        if isinstance(data, dict) and not data.get("status") and data.get("shelf"):
            data = {**data, "status": data["shelf"]}
        return data

    @property
    def is_private(self) -> bool:
        return self.visibility == Visibility.PRIVATE


class ProgressUpdate(BaseModel):
    """Fields accepted by ``PATCH /user/books/:id``."""

    status: ShelfStatus | None = None
    visibility: Visibility | None = None
    pages_read: int | None = Field(None, ge=0)
    total_pages: int | None = Field(None, ge=0)
    completion_percentage: float | None = Field(None, ge=0, le=100)
    rating: int | None = Field(None, ge=1, le=5)
    review: str | None = None
    dnf_page: int | None = Field(None, ge=0)
    dnf_reason: str | None = None

    def reconciled(self, current: UserBook | None = None) -> "ProgressUpdate":
        """Recompute whichever of pages/percentage the caller did not send.

        Values missing from the update are taken from ``current`` so the two
        representations never drift apart on the server.
        """
        total = self.total_pages
        if total is None and current is not None:
            total = current.total_pages

        updates: dict = {}
        if self.pages_read is not None:
            derived = completion_from_pages(self.pages_read, total)
            if derived is not None:
                updates["completion_percentage"] = derived
        elif self.completion_percentage is not None:
            derived_pages = pages_from_completion(self.completion_percentage, total)
            if derived_pages is not None:
                updates["pages_read"] = derived_pages
        elif self.total_pages is not None and current is not None and current.pages_read is not None:
            derived = completion_from_pages(current.pages_read, total)
            if derived is not None:
                updates["completion_percentage"] = derived

        return self.model_copy(update=updates)

    def payload(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
