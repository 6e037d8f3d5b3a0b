"""
Onboarding: step navigation, genre and author picks, and the preferences
saved when the flow ends.

Picked authors may come from the catalog with the sentinel id; they are
imported and followed on submit so the saved ``author_ids`` are all
persisted.
"""

from shelfsync.core.errors import PartialPromotionError, ShelfSyncError, error_message
from shelfsync.core.http import ApiClient
from shelfsync.core.logging import get_logger
from shelfsync.schemas import Author, FollowableType, UserPreferences
from shelfsync.schemas.common import is_persisted
from shelfsync.services.identity import merge_key
from shelfsync.stores.base import StoreState
from shelfsync.stores.follows import FollowsStore

logger = get_logger(__name__)

# Welcome, genres, authors, import
TOTAL_STEPS = 4


def author_key(author: Author) -> int | str:
    return author.id if is_persisted(author.id) else merge_key(author.name)


class OnboardingStore(StoreState):
    def __init__(self, api: ApiClient, follows: FollowsStore):
        super().__init__()
        self.api = api
        self.follows = follows
        self.reset()

    def reset(self) -> None:
        self.current_step = 0
        self.total_steps = TOTAL_STEPS
        self.selected_genres: list[str] = []
        self.selected_authors: list[Author] = []
        self.zipcode: str | None = None
        self.loading = False
        self.error = None

    # Steps

    def set_current_step(self, step: int) -> None:
        if 0 <= step < self.total_steps:
            self.current_step = step

    def next_step(self) -> None:
        self.set_current_step(min(self.current_step + 1, self.total_steps - 1))

    def prev_step(self) -> None:
        self.set_current_step(max(self.current_step - 1, 0))

    # Selections

    def toggle_genre(self, genre: str) -> None:
        if genre in self.selected_genres:
            self.selected_genres = [g for g in self.selected_genres if g != genre]
        else:
            self.selected_genres = [*self.selected_genres, genre]

    def toggle_author(self, author: Author) -> None:
        key = author_key(author)
        if self.is_author_selected(author):
            self.selected_authors = [a for a in self.selected_authors if author_key(a) != key]
        else:
            self.selected_authors = [*self.selected_authors, author]

    def is_author_selected(self, author: Author) -> bool:
        key = author_key(author)
        return any(author_key(a) == key for a in self.selected_authors)

    @property
    def selected_author_ids(self) -> list[int]:
        return [a.id for a in self.selected_authors if is_persisted(a.id)]

    # Preferences

    async def submit_preferences(self) -> UserPreferences:
        """
        Import and follow picked catalog authors, then save the preferences
        with ``onboarding_completed`` set.

        Raises:
            PromotionError: An author could not be imported; nothing is saved
            PartialPromotionError: An author was imported but not followed;
                the pick now holds the persisted author so a resubmit does not
                import it twice
        """
        self._begin()
        try:
            await self._import_selected_authors()
            preferences = await self.api.save_preferences(
                UserPreferences(
                    genres=self.selected_genres,
                    author_ids=self.selected_author_ids,
                    zipcode=self.zipcode,
                    onboarding_completed=True,
                )
            )
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to save preferences"))
            raise

        self._done()
        logger.info(
            "Onboarding completed",
            extra={
                "extra_fields": {
                    "genres": len(self.selected_genres),
                    "authors": len(self.selected_authors),
                }
            },
        )
        return preferences

    async def _import_selected_authors(self) -> None:
        for index, author in enumerate(self.selected_authors):
            if is_persisted(author.id):
                continue
            try:
                follow = await self.follows.follow_entity(FollowableType.AUTHOR, author)
            except PartialPromotionError as e:
                self.selected_authors[index] = e.entity
                raise
            self.selected_authors[index] = author.model_copy(
                update={"id": follow.followable_id}
            )

    async def skip_onboarding(self) -> UserPreferences:
        """Mark onboarding completed without saving any picks."""
        self._begin()
        try:
            preferences = await self.api.save_preferences(
                UserPreferences(onboarding_completed=True)
            )
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to skip onboarding"))
            raise

        self._done()
        return preferences

    async def fetch_preferences(self) -> UserPreferences:
        return await self.api.get_preferences()

    async def check_onboarding_status(self) -> bool:
        """Whether onboarding is done. A user without preferences has not finished."""
        try:
            preferences = await self.api.get_preferences()
        except ShelfSyncError as e:
            logger.debug(f"No onboarding preferences: {e.message}")
            return False
        return bool(preferences.onboarding_completed)
