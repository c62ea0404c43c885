"""
Unit tests for in-memory live and archive stores.

Tests cover:
- Insert/get/replace/delete_many semantics
- Condition filtering
- Copy isolation
- Failure-injection helpers
"""

import pytest

from backend.cms_server.errors import StoreError
from backend.cms_server.models import ArchivedBanner, Banner, Page
from backend.cms_server.store import Condition, InMemoryArchiveStore, InMemoryRecordStore


class TestCondition:
    """Tests for Condition predicates."""

    def test_unknown_op_rejected(self):
        with pytest.raises(ValueError):
            Condition("expire_at", "gt", 5)

    def test_lte_never_matches_none(self):
        banner = Banner(title="B", expire_at=None)
        assert not Condition("expire_at", "lte", 10**15).matches(banner)

    def test_lte_inclusive(self):
        banner = Banner(title="B", expire_at=100)
        assert Condition("expire_at", "lte", 100).matches(banner)
        assert not Condition("expire_at", "lte", 99).matches(banner)


class TestInMemoryRecordStore:
    """Tests for InMemoryRecordStore."""

    @pytest.fixture
    def pages(self):
        """Create an empty page store."""
        return InMemoryRecordStore("pages", Page)

    @pytest.mark.asyncio
    async def test_insert_assigns_id(self, pages):
        stored = await pages.insert(Page(title="About", slug="about"))

        assert stored.id is not None
        assert await pages.count() == 1
        assert (await pages.get(stored.id)).title == "About"

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, pages):
        assert await pages.get("missing") is None

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, pages):
        """Mutating a returned record does not change the store."""
        stored = await pages.insert(Page(title="About", slug="about", tags=["a"]))

        fetched = await pages.get(stored.id)
        fetched.tags.append("b")

        assert (await pages.get(stored.id)).tags == ["a"]

    @pytest.mark.asyncio
    async def test_replace_keeps_id(self, pages):
        stored = await pages.insert(Page(title="About", slug="about"))

        ok = await pages.replace(stored.id, Page(title="About us", slug="about-us"))

        assert ok
        updated = await pages.get(stored.id)
        assert updated.id == stored.id
        assert updated.title == "About us"

    @pytest.mark.asyncio
    async def test_replace_missing_returns_false(self, pages):
        assert not await pages.replace("missing", Page(title="X", slug="x"))

    @pytest.mark.asyncio
    async def test_delete_many_counts_existing_only(self, pages):
        a = await pages.insert(Page(title="A", slug="a"))
        b = await pages.insert(Page(title="B", slug="b"))

        deleted = await pages.delete_many([a.id, "missing", a.id])

        assert deleted == 1
        assert pages.ids() == [b.id]

    @pytest.mark.asyncio
    async def test_find_with_conditions(self):
        banners = InMemoryRecordStore("banners", Banner)
        banners.put(Banner(title="past", expire_at=100, id="b1"))
        banners.put(Banner(title="future", expire_at=10_000, id="b2"))
        banners.put(Banner(title="never", id="b3"))

        found = await banners.find(
            [Condition("expire_at", "not_null"), Condition("expire_at", "lte", 500)]
        )

        assert [b.id for b in found] == ["b1"]

    @pytest.mark.asyncio
    async def test_find_unknown_field_rejected(self, pages):
        with pytest.raises(ValueError):
            await pages.find([Condition("expire_at", "not_null")])

    @pytest.mark.asyncio
    async def test_fail_next_delete_many_is_one_shot(self, pages):
        stored = await pages.insert(Page(title="A", slug="a"))
        pages.fail_next_delete_many()

        with pytest.raises(StoreError):
            await pages.delete_many([stored.id])
        assert pages.ids() == [stored.id]

        assert await pages.delete_many([stored.id]) == 1
        assert pages.call_count("delete_many") == 2

    @pytest.mark.asyncio
    async def test_fail_next_find_always(self, pages):
        pages.fail_next_find(times=-1)

        for _ in range(3):
            with pytest.raises(StoreError):
                await pages.find()


class TestInMemoryArchiveStore:
    """Tests for InMemoryArchiveStore."""

    @pytest.fixture
    def archive(self):
        return InMemoryArchiveStore("archived_banners", ArchivedBanner)

    def _archived(self, original_id):
        return ArchivedBanner(
            original_id=original_id,
            title="B",
            image_url="",
            status="active",
            link="",
            content="",
            publish_at=1,
            expire_at=2,
            archive_reason="Expired",
            archived_at=3,
        )

    @pytest.mark.asyncio
    async def test_insert_many_assigns_fresh_ids(self, archive):
        stored = await archive.insert_many([self._archived("b1"), self._archived("b2")])

        assert len(stored) == 2
        assert all(r.id is not None for r in stored)
        assert stored[0].id != stored[1].id
        assert await archive.count() == 2

    @pytest.mark.asyncio
    async def test_failed_insert_many_stores_nothing(self, archive):
        archive.fail_next_insert_many()

        with pytest.raises(StoreError):
            await archive.insert_many([self._archived("b1"), self._archived("b2")])

        assert await archive.count() == 0

    @pytest.mark.asyncio
    async def test_find_by_original_id(self, archive):
        await archive.insert_many([self._archived("b1"), self._archived("b2")])

        found = await archive.find([Condition("original_id", "eq", "b2")])

        assert [r.original_id for r in found] == ["b2"]
