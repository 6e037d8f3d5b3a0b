from pydantic import BaseModel

# Identity space shared by books and authors:
#   id > 0   persisted row, followable and shelvable
#   id < 0   transient catalog search result, unique within one search session
#   id == 0  external author that has not been imported yet
EXTERNAL_SENTINEL_ID = 0


def is_persisted(entity_id: int | None) -> bool:
    return entity_id is not None and entity_id > 0


def is_transient(entity_id: int | None) -> bool:
    return entity_id is not None and entity_id < 0


def is_external(entity_id: int | None) -> bool:
    """True for anything the backend has never seen (sentinel or transient)."""
    return not is_persisted(entity_id)


class Pagination(BaseModel):
    page: int = 1
    per_page: int = 20
    total_pages: int = 1
    total_count: int = 0

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages
