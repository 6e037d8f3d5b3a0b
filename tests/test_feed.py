"""Tests for feed parsing and visibility filtering."""

import logging

import pytest

from shelfsync.schemas import ACTIVITY_SOURCES, ActivityType, FeedItem, FeedSource
from shelfsync.schemas.feed import FeedUserBook
from shelfsync.stores.feed import parse_feed_items

CREATED_AT = "2026-01-01T10:00:00Z"


def item(id, activity_type, feedable=None, **metadata) -> dict:
    return {
        "id": id,
        "activity_type": activity_type,
        "metadata": metadata,
        "feedable": feedable,
        "created_at": CREATED_AT,
    }


def user_book(visibility="public") -> dict:
    return {"type": "UserBook", "id": 77, "book_id": 501, "status": "reading", "visibility": visibility}


FEED_ITEMS = [
    item(1, "user_added_book", user_book()),
    item(2, "user_progress_update", user_book("private")),
    item(3, "book_release", {"type": "Book", "id": 501, "title": "Klara and the Sun"}, visibility="private"),
    item(4, "user_review", None, visibility="private"),
    item(5, "mystery_activity"),
    item(6, "author_event", {"type": "Podcast", "id": 1}),
    item(7, "user_followed_author", {"type": "Author", "id": 12, "name": "Ted Chiang"}),
]


class TestActivitySources:
    def test_every_activity_has_a_source(self):
        assert set(ACTIVITY_SOURCES) == set(ActivityType)

    @pytest.mark.parametrize(
        "activity_type, source",
        [
            (ActivityType.BOOK_RELEASE, FeedSource.CATALOG),
            (ActivityType.EVENT_RECOMMENDATION, FeedSource.RECOMMENDATION),
            (ActivityType.FRIEND_ACTIVITY, FeedSource.SOCIAL),
            (ActivityType.USER_FINISHED_BOOK, FeedSource.USER_BOOK),
        ],
    )
    def test_sources(self, activity_type, source):
        assert ACTIVITY_SOURCES[activity_type] == source


class TestParseFeedItems:
    def test_invalid_items_dropped(self, caplog):
        with caplog.at_level(logging.WARNING):
            items = parse_feed_items(FEED_ITEMS)

        assert [i.id for i in items] == [1, 2, 3, 4, 7]
        assert "Dropping unreadable feed item 5" in caplog.text
        assert "Dropping unreadable feed item 6" in caplog.text

    def test_feedable_discriminated_by_type(self):
        items = parse_feed_items(FEED_ITEMS)

        assert isinstance(items[0].feedable, FeedUserBook)
        assert items[2].feedable.title == "Klara and the Sun"
        assert items[4].feedable.name == "Ted Chiang"

    def test_privacy(self):
        items = {i.id: i for i in parse_feed_items(FEED_ITEMS)}

        assert not items[1].is_private
        assert items[2].is_private
        # Visibility metadata only applies to shelf activity
        assert not items[3].is_private
        assert items[4].is_private

    def test_missing_timestamp_rejected(self):
        raw = item(8, "user_added_book")
        del raw["created_at"]

        assert parse_feed_items([raw]) == []
        assert FeedItem.model_validate(item(8, "user_added_book")).source == FeedSource.USER_BOOK


class TestFeedStore:
    async def test_visible_items_in_order(self, ctx, backend):
        backend.add(
            "GET",
            "/feed",
            json={
                "feed_items": FEED_ITEMS,
                "pagination": {"page": 1, "per_page": 50, "total_pages": 1, "total_count": 7},
            },
        )

        await ctx.feed.fetch_feed()

        assert [i.id for i in ctx.feed.visible_items()] == [1, 3, 7]
        assert await ctx.feed.load_more() == []

    async def test_activity_filter_sent(self, ctx, backend):
        backend.add("GET", "/feed", json={"feed_items": []})

        await ctx.feed.fetch_feed(activity_type="book_release")

        request = backend.calls("GET", "/feed")[0]
        assert request.url.params["activity_type"] == "book_release"
        assert ctx.feed.activity_type == ActivityType.BOOK_RELEASE

    async def test_pages_append(self, ctx, backend):
        backend.add(
            "GET",
            "/feed",
            json={
                "feed_items": [item(1, "user_added_book", user_book())],
                "pagination": {"page": 1, "per_page": 1, "total_pages": 2},
            },
        )
        await ctx.feed.fetch_feed()

        backend.add(
            "GET",
            "/feed",
            json={
                "feed_items": [item(2, "user_added_book", user_book())],
                "pagination": {"page": 2, "per_page": 1, "total_pages": 2},
            },
        )
        await ctx.feed.load_more()

        assert [i.id for i in ctx.feed.items] == [1, 2]
        assert backend.calls("GET", "/feed")[1].url.params["page"] == "2"
