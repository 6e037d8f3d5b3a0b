"""
Forums, posts and threaded comments.

Comments live in two maps: ``comments[post_id]`` holds a post's top-level
comments and ``threads[parent_id]`` holds replies to a comment. A comment
is only ever added to one of them, but edits, deletes and hearts scan every
key of both since callers only know the comment id.
"""

from typing import Callable

from shelfsync.core.errors import ShelfSyncError, error_message
from shelfsync.core.http import ApiClient
from shelfsync.core.logging import get_logger
from shelfsync.schemas import Forum, ForumComment, ForumPost
from shelfsync.stores.base import EntityCache, StoreState

logger = get_logger(__name__)


class ForumsStore(StoreState):
    def __init__(self, api: ApiClient):
        super().__init__()
        self.api = api

        self.forums: EntityCache[int, Forum] = EntityCache("forums")
        self.posts: EntityCache[int, ForumPost] = EntityCache("forum_posts")
        self.comments: dict[int, list[ForumComment]] = {}
        self.threads: dict[int, list[ForumComment]] = {}
        self.expanded_threads: set[int] = set()

        self.post_error: str | None = None
        self.comments_error: str | None = None

    def toggle_thread(self, post_id: int) -> bool:
        """Expand or collapse a post's thread. Returns True when now expanded."""
        if post_id in self.expanded_threads:
            self.expanded_threads.discard(post_id)
            return False
        self.expanded_threads.add(post_id)
        return True

    # Forums

    async def fetch_forums(self) -> list[Forum]:
        self._begin()
        try:
            forums = await self.api.get_forums()
        except ShelfSyncError as e:
            logger.warning(f"Failed to fetch forums: {e.message}")
            self._fail("Failed to fetch forums")
            return []

        self.forums.put_many({f.id: f for f in forums})
        self._done()
        return forums

    async def fetch_forum(self, forum_id: int) -> Forum | None:
        self._begin()
        try:
            forum, posts = await self.api.get_forum(forum_id)
        except ShelfSyncError as e:
            logger.warning(f"Failed to fetch forum {forum_id}: {e.message}")
            self._fail("Failed to fetch forum")
            return None

        self.forums.put(forum.id, forum)
        self.posts.put_many({p.id: p for p in posts})
        self._done()
        return forum

    async def fetch_forum_by_slug(self, slug: str) -> Forum | None:
        forums = await self.fetch_forums()
        forum = next((f for f in forums if f.slug == slug), None)
        if forum is None:
            if self.error is None:
                self.error = "Forum not found"
            return None

        await self.fetch_forum_posts(forum.id)
        return forum

    async def follow_forum(self, forum_id: int) -> None:
        """The backend does not return counts, so ``followers_count`` is adjusted here."""
        try:
            await self.api.follow_forum(forum_id)
        except ShelfSyncError as e:
            self.error = error_message(e, "Failed to follow forum")
            raise

        forum = self.forums.get(forum_id)
        if forum is not None:
            self.forums.put(
                forum_id,
                forum.model_copy(
                    update={"is_following": True, "followers_count": forum.followers_count + 1}
                ),
            )

    async def unfollow_forum(self, forum_id: int) -> None:
        try:
            await self.api.unfollow_forum(forum_id)
        except ShelfSyncError as e:
            self.error = error_message(e, "Failed to unfollow forum")
            raise

        forum = self.forums.get(forum_id)
        if forum is not None:
            self.forums.put(
                forum_id,
                forum.model_copy(
                    update={
                        "is_following": False,
                        "followers_count": max(0, forum.followers_count - 1),
                    }
                ),
            )

    # Posts

    async def fetch_forum_posts(self, forum_id: int, page: int = 1) -> list[ForumPost]:
        self._begin()
        try:
            posts, _ = await self.api.get_forum_posts(forum_id, page)
        except ShelfSyncError as e:
            logger.warning(f"Failed to fetch posts for forum {forum_id}: {e.message}")
            self._fail("Failed to fetch posts")
            return []

        self.posts.put_many({p.id: p for p in posts})
        self._done()
        return posts

    def forum_posts(self, forum_id: int) -> list[ForumPost]:
        return self.posts.list(lambda p: p.forum_id == forum_id)

    async def fetch_forum_post(self, post_id: int) -> ForumPost | None:
        """A post and its top-level comments."""
        self.loading = True
        self.post_error = None
        try:
            post, replies, _ = await self.api.get_forum_post(post_id)
        except ShelfSyncError as e:
            logger.warning(f"Failed to fetch post {post_id}: {e.message}")
            self.post_error = "Failed to fetch post"
            self.loading = False
            return None

        self.posts.put(post.id, post)
        self.comments[post_id] = replies
        self.loading = False
        return post

    async def create_post(self, forum_id: int, body: str) -> ForumPost:
        post = await self.api.create_forum_post(forum_id, body)
        self.posts.put(post.id, post)
        return post

    async def update_post(self, post_id: int, body: str) -> ForumPost:
        post = await self.api.update_post(post_id, body)
        self.posts.put(post_id, post)
        return post

    async def delete_post(self, post_id: int) -> None:
        await self.api.delete_post(post_id)
        self.posts.remove(post_id)
        self.comments.pop(post_id, None)
        self.expanded_threads.discard(post_id)

    async def report_post(self, post_id: int, reason: str) -> None:
        await self.api.report_post(post_id, reason)

    async def heart_post(self, post_id: int) -> ForumPost | None:
        """
        Heart or unheart a post depending on its cached state. The count is
        taken from the response; ``is_hearted`` flips only after it.
        """
        post = self.posts.get(post_id)
        hearted = post is not None and post.is_hearted
        if hearted:
            response = await self.api.unheart_post(post_id)
        else:
            response = await self.api.heart_post(post_id)

        post = self.posts.get(post_id)
        if post is None:
            return None
        updated = post.model_copy(
            update={"heart_count": response.heart_count, "is_hearted": not hearted}
        )
        self.posts.put(post_id, updated)
        return updated

    # Comments

    async def fetch_comments(self, post_id: int) -> list[ForumComment]:
        self.loading = True
        self.comments_error = None
        try:
            comments = await self.api.get_post_comments(post_id)
        except ShelfSyncError as e:
            logger.warning(f"Failed to fetch comments for post {post_id}: {e.message}")
            self.comments_error = "Failed to fetch comments"
            self.loading = False
            return []

        self.comments[post_id] = comments
        self.loading = False
        return comments

    async def fetch_thread(self, comment_id: int) -> list[ForumComment]:
        self._begin()
        try:
            replies = await self.api.get_comment_thread(comment_id)
        except ShelfSyncError as e:
            logger.warning(f"Failed to fetch thread {comment_id}: {e.message}")
            self._fail("Failed to fetch thread")
            return []

        self.threads[comment_id] = replies
        self._done()
        return replies

    async def create_comment(self, post_id: int, body: str) -> ForumComment:
        comment = await self.api.create_post_comment(post_id, body)
        self.comments[post_id] = [*self.comments.get(post_id, []), comment]
        return comment

    async def create_reply(self, post_id: int, parent_id: int, body: str) -> ForumComment:
        reply = await self.api.create_thread_reply(post_id, parent_id, body)
        self.threads[parent_id] = [*self.threads.get(parent_id, []), reply]
        return reply

    async def update_reply(self, reply_id: int, body: str) -> ForumComment:
        updated = await self.api.update_reply(reply_id, body)
        self._replace_everywhere(reply_id, lambda current: self._merge_ids(current, updated))
        return updated

    async def delete_reply(self, reply_id: int) -> None:
        await self.api.delete_reply(reply_id)
        for bucket in (self.comments, self.threads):
            for key, items in bucket.items():
                bucket[key] = [c for c in items if c.id != reply_id]

    async def report_reply(self, reply_id: int, reason: str) -> None:
        await self.api.report_reply(reply_id, reason)

    async def heart_reply(self, reply_id: int) -> ForumComment | None:
        current = self.find_comment(reply_id)
        hearted = current is not None and current.is_hearted
        if hearted:
            response = await self.api.unheart_reply(reply_id)
        else:
            response = await self.api.heart_reply(reply_id)

        self._replace_everywhere(
            reply_id,
            lambda c: c.model_copy(
                update={"heart_count": response.heart_count, "is_hearted": not c.is_hearted}
            ),
        )
        return self.find_comment(reply_id)

    def find_comment(self, comment_id: int) -> ForumComment | None:
        for bucket in (self.comments, self.threads):
            for items in bucket.values():
                for comment in items:
                    if comment.id == comment_id:
                        return comment
        return None

    def _replace_everywhere(
        self, comment_id: int, replace: Callable[[ForumComment], ForumComment]
    ) -> None:
        for bucket in (self.comments, self.threads):
            for key, items in bucket.items():
                bucket[key] = [replace(c) if c.id == comment_id else c for c in items]

    @staticmethod
    def _merge_ids(current: ForumComment, updated: ForumComment) -> ForumComment:
        # Update responses omit the ids the comment was filed under
        return updated.model_copy(
            update={
                "forum_post_id": updated.forum_post_id or current.forum_post_id,
                "parent_id": updated.parent_id or current.parent_id,
            }
        )
