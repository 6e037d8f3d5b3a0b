"""Tests for merging, transient ids, redirects and author promotion."""

import json

import httpx
import pytest

from shelfsync.core.errors import GENERIC_NETWORK_MESSAGE, PromotionError
from shelfsync.schemas import Author, Book, CatalogAuthor, CatalogBook
from shelfsync.services.identity import (
    EntityKind,
    book_merge_key,
    merge_key,
    transient_id,
)


class TestMergeKeys:
    def test_merge_key_normalizes(self):
        assert merge_key("  N. K. Jemisin ") == "n. k. jemisin"
        assert merge_key(None) == ""

    def test_book_merge_key_includes_author(self):
        assert book_merge_key("Emma", "Jane Austen") != book_merge_key("Emma", "Someone Else")
        assert book_merge_key("EMMA ", "jane austen") == book_merge_key("Emma", "Jane Austen")

    def test_transient_ids_by_page(self):
        assert transient_id(1, 0) == -1000
        assert transient_id(1, 19) == -1019
        assert transient_id(2, 5) == -2005


class TestMergeAuthors:
    async def test_local_first_catalog_backfills(self, ctx):
        local = [Author(id=5, name="N. K. Jemisin")]
        external = [
            CatalogAuthor(name="n. k. jemisin ", bio="Hugo winner", books_count=12),
            CatalogAuthor(name="Becky Chambers", books_count=3),
        ]

        merged = ctx.reconciler.merge_authors(local, external)

        assert [a.id for a in merged] == [5, 0]
        assert merged[0].bio == "Hugo winner"
        assert merged[0].books_count == 12
        assert merged[1].name == "Becky Chambers"
        assert merged[1].events_count == 0
        assert merged[1].followers_count == 0
        # Inputs are not mutated
        assert local[0].bio is None

    async def test_local_values_win(self, ctx):
        local = [Author(id=5, name="Ann Leckie", bio="Local bio", books_count=9)]
        external = [CatalogAuthor(name="Ann Leckie", bio="Catalog bio", books_count=4)]

        merged = ctx.reconciler.merge_authors(local, external)

        assert len(merged) == 1
        assert merged[0].bio == "Local bio"
        assert merged[0].books_count == 9

    async def test_merge_books_by_title_and_author(self, ctx):
        local = [Book(id=7, title="Emma", author_name="Jane Austen")]
        external = [
            Book(id=-1000, title="emma", author_name="Jane Austen", isbn="9780141439587"),
            Book(id=-1001, title="Emma", author_name="Someone Else"),
        ]

        merged = ctx.reconciler.merge_books(local, external)

        assert [b.id for b in merged] == [7, -1001]
        assert merged[0].isbn == "9780141439587"


class TestTransientIds:
    async def test_assign_transient_ids(self, ctx):
        volumes = [
            CatalogBook(id="a", title="One", authors=["X", "Y"], published_date="2021-03-02"),
            CatalogBook(id="b", title="Two"),
        ]

        books = ctx.reconciler.assign_transient_ids(volumes, page=2)

        assert [b.id for b in books] == [-2000, -2001]
        assert books[0].author_name == "X, Y"
        assert books[0].release_date == "2021-03-02"
        assert books[0].google_books_id == "a"
        assert books[1].author_name is None


class TestRedirects:
    async def test_transient_to_persisted_recorded(self, ctx):
        ctx.reconciler.record_redirect(-1000, 501, EntityKind.BOOK)

        assert ctx.reconciler.resolve(-1000, EntityKind.BOOK) == 501
        assert ctx.reconciler.has_redirect(-1000, EntityKind.BOOK)
        # Kinds do not share redirects
        assert ctx.reconciler.resolve(-1000, EntityKind.AUTHOR) == -1000

    async def test_sentinel_never_redirects(self, ctx):
        ctx.reconciler.record_redirect(0, 31, EntityKind.AUTHOR)

        assert ctx.reconciler.resolve(0, EntityKind.AUTHOR) == 0
        assert not ctx.reconciler.has_redirect(0, EntityKind.AUTHOR)

    async def test_non_persisted_target_ignored(self, ctx):
        ctx.reconciler.record_redirect(-5, -6, EntityKind.BOOK)
        ctx.reconciler.record_redirect(8, 9, EntityKind.BOOK)

        assert ctx.reconciler.resolve(-5, EntityKind.BOOK) == -5
        assert ctx.reconciler.resolve(8, EntityKind.BOOK) == 8

    async def test_clear_by_kind(self, ctx):
        ctx.reconciler.record_redirect(-1000, 501, EntityKind.BOOK)
        ctx.reconciler.record_redirect(-1001, 31, EntityKind.AUTHOR)

        ctx.reconciler.clear_redirects(EntityKind.BOOK)

        assert not ctx.reconciler.has_redirect(-1000, EntityKind.BOOK)
        assert ctx.reconciler.has_redirect(-1001, EntityKind.AUTHOR)

        ctx.reconciler.clear_redirects()
        assert not ctx.reconciler.has_redirect(-1001, EntityKind.AUTHOR)


class TestPromoteAuthor:
    async def test_persisted_author_returned_untouched(self, ctx, backend):
        author = Author(id=12, name="Ted Chiang")

        assert await ctx.reconciler.promote_author(author) is author
        assert backend.requests == []

    async def test_creates_author(self, ctx, backend):
        backend.add("POST", "/authors", json={"id": 31, "name": "Ottessa Moshfegh"})

        created = await ctx.reconciler.promote_author(
            Author(id=0, name="Ottessa Moshfegh", bio="Novelist")
        )

        assert created.id == 31
        (request,) = backend.calls("POST", "/authors")
        assert json.loads(request.content) == {
            "author": {"name": "Ottessa Moshfegh", "bio": "Novelist"}
        }

    async def test_backend_message_carried(self, ctx, backend):
        backend.add(
            "POST", "/authors", status=422, json={"errors": ["Name has already been taken"]}
        )

        with pytest.raises(PromotionError) as exc_info:
            await ctx.reconciler.promote_author(Author(id=0, name="Ottessa Moshfegh"))

        assert exc_info.value.message == "Name has already been taken"
        assert exc_info.value.cause.status_code == 422

    async def test_network_failure(self, ctx, backend):
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend.add("POST", "/authors", handler=unreachable)

        with pytest.raises(PromotionError) as exc_info:
            await ctx.reconciler.promote_author(Author(id=0, name="Ottessa Moshfegh"))

        assert exc_info.value.message == GENERIC_NETWORK_MESSAGE
