"""Tests for recommendations and their bus-driven refresh."""

import pytest

from shelfsync.core.bus import FollowChanged, ShelfChanged
from shelfsync.core.errors import ApiError

RECOMMENDED_BOOKS = {
    "recommended_books": [
        {
            "id": 1,
            "book": {"id": 501, "title": "Klara and the Sun"},
            "reason": "Because you read Never Let Me Go",
            "score": 0.92,
        }
    ]
}


class TestRecommendationsStore:
    async def test_shelf_change_triggers_refresh(self, ctx, backend):
        backend.add("GET", "/recommendations/books", json=RECOMMENDED_BOOKS)
        backend.add(
            "GET",
            "/recommendations/authors",
            json={"authors": [{"id": 2, "author": {"id": 12, "name": "Ted Chiang"}, "reason": "Popular"}]},
        )

        ctx.bus.publish(ShelfChanged(501, 77, "added"))
        await ctx.bus.drain()

        assert ctx.recommendations.refresh_count == 1
        assert ctx.recommendations.books[0].book.title == "Klara and the Sun"
        assert ctx.recommendations.authors[0].author.name == "Ted Chiang"

    async def test_failures_stay_in_store(self, ctx, backend):
        backend.add("GET", "/recommendations/books", json=RECOMMENDED_BOOKS)
        backend.add("GET", "/recommendations/authors", status=500, json={"error": "Model offline"})

        ctx.bus.publish(FollowChanged("Author", 12, True))
        await ctx.bus.drain()

        assert len(ctx.recommendations.books) == 1
        assert ctx.recommendations.books_error is None
        assert ctx.recommendations.authors_error == "Model offline"
        assert ctx.recommendations.authors_loading is False

    async def test_close_unsubscribes(self, ctx, backend):
        ctx.recommendations.close()

        ctx.bus.publish(ShelfChanged(501, 77, "added"))
        await ctx.bus.drain()

        assert ctx.recommendations.refresh_count == 0
        assert backend.requests == []

    async def test_shelving_refreshes_in_background(self, ctx, backend):
        backend.add(
            "POST", "/user/books", json={"user_book": {"id": 77, "book_id": 501, "status": "read"}}
        )
        backend.add("GET", "/recommendations/books", json=RECOMMENDED_BOOKS)
        backend.add("GET", "/recommendations/authors", json={"recommended_authors": []})

        await ctx.books.add_to_shelf(501, "read")
        await ctx.bus.drain()

        assert ctx.recommendations.refresh_count == 1
        assert len(backend.calls("GET", "/recommendations/books")) == 1


class TestRecommendedEventsStore:
    async def test_groups(self, ctx, backend):
        backend.add(
            "GET",
            "/recommendations/events",
            json={
                "recommended_events": [
                    {
                        "group": "followed_authors",
                        "title": "From authors you follow",
                        "events": [
                            {
                                "id": 3,
                                "reason": "You follow Ted Chiang",
                                "event": {
                                    "id": 40,
                                    "title": "Signing",
                                    "event_type": "signing",
                                    "starts_at": "2026-03-01T18:00:00Z",
                                },
                            }
                        ],
                    }
                ]
            },
        )

        groups = await ctx.recommended_events.refresh()

        assert groups[0].group == "followed_authors"
        assert groups[0].events[0].event.title == "Signing"

    async def test_error_raised(self, ctx, backend):
        backend.add("GET", "/recommendations/events", status=500, json={"error": "Down"})

        with pytest.raises(ApiError):
            await ctx.recommended_events.fetch_recommended_events()

        assert ctx.recommended_events.error == "Down"
