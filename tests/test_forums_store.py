"""Tests for forums, posts and threaded comments."""

import json

import httpx
import pytest

from shelfsync.core.errors import ApiError
from shelfsync.stores.forums import ForumsStore


def forum(id=1, slug="sci-fi", **fields) -> dict:
    return {"id": id, "title": "Science Fiction", "slug": slug, **fields}


def create_reply(request: httpx.Request) -> httpx.Response:
    reply = json.loads(request.content)["reply"]
    reply_id = 51 if "parent_id" in reply else 60
    return httpx.Response(200, json={"reply": {"id": reply_id, "body": reply["body"]}})


@pytest.fixture
def post_with_comment(backend):
    backend.add(
        "GET",
        "/forum_posts/5",
        json={
            "post": {"id": 5, "forum_id": 1, "body": "Favourite Le Guin?", "heart_count": 2},
            "replies": [{"id": 50, "body": "The Dispossessed"}],
            "pagination": {"page": 1, "total_pages": 1},
        },
    )
    return backend


class TestForums:
    async def test_fetch_forums_error_is_soft(self, ctx, backend):
        backend.add("GET", "/forums", status=500, json={"error": "boom"})

        assert await ctx.forums.fetch_forums() == []
        assert ctx.forums.error == "Failed to fetch forums"
        assert ctx.forums.loading is False

    async def test_fetch_by_slug(self, ctx, backend):
        backend.add("GET", "/forums", json={"forums": [forum(), forum(id=2, slug="romance")]})
        backend.add(
            "GET", "/forums/2/posts", json={"posts": [{"id": 8, "forum_id": 2, "body": "Hi"}]}
        )

        found = await ctx.forums.fetch_forum_by_slug("romance")

        assert found.id == 2
        assert [p.id for p in ctx.forums.forum_posts(2)] == [8]

    async def test_unknown_slug(self, ctx, backend):
        backend.add("GET", "/forums", json={"forums": [forum()]})

        assert await ctx.forums.fetch_forum_by_slug("poetry") is None
        assert ctx.forums.error == "Forum not found"

    async def test_follow_counts_adjusted_locally(self, ctx, backend):
        backend.add("GET", "/forums", json={"forums": [forum(followers_count=0)]})
        backend.add("POST", "/forums/1/follow", json={"message": "Following"})
        backend.add("DELETE", "/forums/1/unfollow", status=204)
        await ctx.forums.fetch_forums()

        await ctx.forums.unfollow_forum(1)
        assert ctx.forums.forums.get(1).followers_count == 0

        await ctx.forums.follow_forum(1)
        followed = ctx.forums.forums.get(1)
        assert followed.followers_count == 1
        assert followed.is_following

    async def test_follow_failure_raises(self, ctx, backend):
        backend.add("POST", "/forums/1/follow", status=403, json={"error": "Private forum"})

        with pytest.raises(ApiError):
            await ctx.forums.follow_forum(1)

        assert ctx.forums.error == "Private forum"

    def test_toggle_thread(self):
        store = ForumsStore(api=None)

        assert store.toggle_thread(5) is True
        assert store.toggle_thread(5) is False


class TestPosts:
    async def test_fetch_post_loads_top_level_comments(self, ctx, post_with_comment):
        post = await ctx.forums.fetch_forum_post(5)

        assert post.body == "Favourite Le Guin?"
        (comment,) = ctx.forums.comments[5]
        assert comment.forum_post_id == 5
        assert comment.is_top_level

    async def test_fetch_post_error_is_soft(self, ctx, backend):
        backend.add("GET", "/forum_posts/6", status=500, json={})

        assert await ctx.forums.fetch_forum_post(6) is None
        assert ctx.forums.post_error == "Failed to fetch post"

    async def test_heart_flips(self, ctx, backend, post_with_comment):
        backend.add("POST", "/forum_posts/5/heart", json={"message": "Hearted", "heart_count": 3})
        backend.add("DELETE", "/forum_posts/5/unheart", json={"heart_count": 2})
        await ctx.forums.fetch_forum_post(5)

        hearted = await ctx.forums.heart_post(5)
        assert hearted.is_hearted
        assert hearted.heart_count == 3

        unhearted = await ctx.forums.heart_post(5)
        assert not unhearted.is_hearted
        assert unhearted.heart_count == 2

    async def test_create_and_delete_post(self, ctx, backend):
        backend.add("POST", "/forums/1/posts", json={"post": {"id": 9, "forum_id": 1, "body": "New"}})
        backend.add("DELETE", "/forum_posts/9", status=204)

        await ctx.forums.create_post(1, "New")
        assert json.loads(backend.calls("POST", "/forums/1/posts")[0].content) == {
            "post": {"body": "New"}
        }
        assert ctx.forums.posts.get(9) is not None

        await ctx.forums.delete_post(9)
        assert ctx.forums.posts.get(9) is None


class TestComments:
    async def test_comments_and_replies_are_kept_apart(self, ctx, backend, post_with_comment):
        backend.add("POST", "/forum_posts/5/replies", handler=create_reply)
        await ctx.forums.fetch_forum_post(5)

        reply = await ctx.forums.create_reply(5, 50, "Agreed")
        comment = await ctx.forums.create_comment(5, "The Left Hand of Darkness")

        assert reply.parent_id == 50
        assert [c.id for c in ctx.forums.threads[50]] == [51]
        assert [c.id for c in ctx.forums.comments[5]] == [50, 60]
        assert comment.is_top_level

    async def test_edit_found_in_either_map(self, ctx, backend):
        backend.add(
            "GET",
            "/forum_replies/50/thread",
            json={"replies": [{"id": 51, "body": "Agreed"}]},
        )
        backend.add("PATCH", "/forum_replies/51", json={"reply": {"id": 51, "body": "Edited"}})
        await ctx.forums.fetch_thread(50)

        await ctx.forums.update_reply(51, "Edited")

        (reply,) = ctx.forums.threads[50]
        assert reply.body == "Edited"
        assert reply.parent_id == 50

    async def test_delete_removes_everywhere(self, ctx, backend, post_with_comment):
        backend.add("DELETE", "/forum_replies/50", status=204)
        await ctx.forums.fetch_forum_post(5)

        await ctx.forums.delete_reply(50)

        assert ctx.forums.comments[5] == []
        assert ctx.forums.find_comment(50) is None

    async def test_heart_reply(self, ctx, backend, post_with_comment):
        backend.add("POST", "/forum_replies/50/heart", json={"heart_count": 1})
        await ctx.forums.fetch_forum_post(5)

        updated = await ctx.forums.heart_reply(50)

        assert updated.is_hearted
        assert updated.heart_count == 1

    async def test_fetch_comments_error_is_soft(self, ctx, backend):
        backend.add("GET", "/forum_posts/5/replies", status=500, json={})

        assert await ctx.forums.fetch_comments(5) == []
        assert ctx.forums.comments_error == "Failed to fetch comments"
