"""
The current user's follows.

Follow appends the backend's record, unfollow filters it out; there is no
reconciliation with the server afterwards. Only persisted ids are ever
written here.
"""

from shelfsync.core.bus import EventBus, FollowChanged
from shelfsync.core.errors import (
    ExternalEntityError,
    PartialPromotionError,
    PromotionError,
    ShelfSyncError,
    error_message,
)
from shelfsync.core.http import ApiClient
from shelfsync.core.logging import get_logger
from shelfsync.schemas import Author, Book, Follow, FollowableType, User
from shelfsync.schemas.common import is_persisted, is_transient
from shelfsync.services.identity import EntityKind, IdentityReconciler
from shelfsync.stores.base import EntityCache, StoreState

logger = get_logger(__name__)

ENTITY_KINDS: dict[FollowableType, EntityKind] = {
    FollowableType.AUTHOR: EntityKind.AUTHOR,
    FollowableType.BOOK: EntityKind.BOOK,
}


class FollowsStore(StoreState):
    def __init__(self, api: ApiClient, bus: EventBus, reconciler: IdentityReconciler):
        super().__init__()
        self.api = api
        self.bus = bus
        self.reconciler = reconciler
        self.follows: EntityCache[int, Follow] = EntityCache("follows")
        self._in_flight: set[tuple[FollowableType, int]] = set()

    # Reads

    def find(self, followable_type: FollowableType, followable_id: int) -> Follow | None:
        followable_type = FollowableType(followable_type)
        for follow in self.follows.values():
            if follow.followable_type == followable_type and follow.followable_id == followable_id:
                return follow
        return None

    def is_following(self, followable_type: FollowableType, followable_id: int) -> bool:
        return self.find(followable_type, followable_id) is not None

    def get_follow_id(self, followable_type: FollowableType, followable_id: int) -> int | None:
        follow = self.find(followable_type, followable_id)
        return follow.id if follow else None

    def is_pending(self, followable_type: FollowableType, followable_id: int) -> bool:
        return (FollowableType(followable_type), followable_id) in self._in_flight

    async def fetch_follows(self) -> list[Follow]:
        """Replace the cache with the server's list."""
        self._begin()
        try:
            follows = await self.api.get_follows()
        except ShelfSyncError as e:
            self._fail(error_message(e, "Failed to fetch follows"))
            raise

        self.follows.clear()
        self.follows.put_many({f.id: f for f in follows})
        self._done()
        return follows

    # Mutations

    def _persisted_id(self, followable_type: FollowableType, followable_id: int) -> int:
        """
        Map an id to the persisted one, or refuse.

        Raises:
            ExternalEntityError: The sentinel id, or a transient id that has
                not been imported
        """
        kind = ENTITY_KINDS.get(FollowableType(followable_type))
        if kind is not None and is_transient(followable_id):
            followable_id = self.reconciler.resolve(followable_id, kind)

        if not is_persisted(followable_id):
            error = ExternalEntityError(followable_id)
            self.error = error.message
            raise error
        return followable_id

    async def follow(self, followable_type: FollowableType, followable_id: int) -> Follow:
        followable_type = FollowableType(followable_type)
        followable_id = self._persisted_id(followable_type, followable_id)

        existing = self.find(followable_type, followable_id)
        if existing is not None:
            return existing

        self.error = None
        try:
            follow = await self.api.follow(followable_type, followable_id)
        except ShelfSyncError as e:
            self.error = error_message(e, "Failed to follow")
            raise

        self.follows.put(follow.id, follow)
        self.bus.publish(FollowChanged(followable_type.value, followable_id, True))
        return follow

    async def unfollow(self, follow_id: int) -> None:
        follow = self.follows.get(follow_id)

        self.error = None
        try:
            await self.api.unfollow(follow_id)
        except ShelfSyncError as e:
            self.error = error_message(e, "Failed to unfollow")
            raise

        self.follows.remove(follow_id)
        if follow is not None:
            self.bus.publish(
                FollowChanged(follow.followable_type.value, follow.followable_id, False)
            )

    async def toggle_follow(
        self, followable_type: FollowableType, followable_id: int
    ) -> bool | None:
        """
        Follow or unfollow. Returns the new following state, or None when a
        toggle for the same entity is already in flight.

        Raises:
            ExternalEntityError: Before any request, for an unimported entity
        """
        followable_type = FollowableType(followable_type)
        followable_id = self._persisted_id(followable_type, followable_id)

        key = (followable_type, followable_id)
        if key in self._in_flight:
            return None

        self._in_flight.add(key)
        try:
            follow_id = self.get_follow_id(followable_type, followable_id)
            if follow_id is not None:
                await self.unfollow(follow_id)
                return False
            await self.follow(followable_type, followable_id)
            return True
        finally:
            self._in_flight.discard(key)

    async def follow_entity(
        self, followable_type: FollowableType, entity: Author | Book | User
    ) -> Follow:
        """
        Follow an entity that may only exist in the external catalog.

        External authors are created first, then followed. Books are only
        followable once they have been imported (by shelving them).

        Raises:
            PromotionError: Creating the author failed; nothing was followed
            PartialPromotionError: The author was created but the follow
                failed; the created author is attached and not rolled back
        """
        followable_type = FollowableType(followable_type)

        if followable_type != FollowableType.AUTHOR or is_persisted(entity.id):
            return await self.follow(followable_type, entity.id)

        resolved = self.reconciler.resolve(entity.id, EntityKind.AUTHOR)
        if is_persisted(resolved):
            return await self.follow(followable_type, resolved)

        try:
            created = await self.reconciler.promote_author(entity)
        except PromotionError as e:
            self.error = e.message
            raise

        try:
            return await self.follow(followable_type, created.id)
        except ShelfSyncError as e:
            message = f"{created.name} was added but could not be followed: {error_message(e, 'Failed to follow')}"
            logger.warning(
                message,
                extra={"extra_fields": {"author_id": created.id}},
            )
            self.error = message
            raise PartialPromotionError(message, entity=created, cause=e) from e
