from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ImportState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ImportState.COMPLETED, ImportState.FAILED)


class ImportRecord(BaseModel):
    id: int
    source: str
    status: ImportState
    filename: str | None = None
    total_books: int = 0
    processed_books: int = 0
    successful_imports: int = 0
    failed_imports: int = 0
    progress_percentage: float = 0
    metadata: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
