"""
Unit tests for the view cache and the invalidation signal.
"""
import time

import pytest

from smile_cms.services.cache.view_cache import ViewCache, ViewInvalidator, view_scope


@pytest.mark.unit
@pytest.mark.asyncio
class TestViewCache:
    async def test_set_and_get_by_scope(self):
        cache = ViewCache(default_ttl=60)
        await cache.set("/units", "user-1", [1])

        assert await cache.get("/units", "user-1") == [1]
        assert await cache.get("/units", "user-2") is None

    async def test_expired_entries_are_dropped(self):
        cache = ViewCache(default_ttl=60)
        await cache.set("/units", "user-1", [1], ttl=-1)

        assert await cache.get("/units", "user-1") is None

    async def test_invalidate_path_drops_every_scope(self):
        cache = ViewCache()
        await cache.set("/units", "user-1", [1])
        await cache.set("/units", "user-2", [2])
        await cache.set("/units/unit-1", "user-1", {})

        removed = await cache.invalidate_path("/units")

        assert removed == 2
        assert await cache.get("/units/unit-1", "user-1") == {}

    async def test_invalidate_prefix_drops_list_and_detail_views(self):
        cache = ViewCache()
        await cache.set("/units", "user-1", [1])
        await cache.set("/units/unit-1", "user-1", {})
        await cache.set("/units/unit-2", "user-2", {})
        await cache.set("/dashboard", "user-1", {})

        removed = await cache.invalidate_prefix("/units")

        assert removed == 3
        assert await cache.get("/dashboard", "user-1") == {}

    async def test_cache_info(self):
        cache = ViewCache(default_ttl=30)
        await cache.set("/units", "user-1", [1])
        await cache.invalidate_path("/dashboard")

        info = await cache.get_cache_info()

        assert info["total_keys"] == 1
        assert info["recent_invalidations"] == ["/dashboard"]
        assert info["default_ttl"] == 30


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalidate_unit_publishes_unit_paths():
    cache = ViewCache()
    started = time.time()

    await ViewInvalidator(cache).invalidate_unit("unit-9")

    assert cache.invalidated_since(started) == ["/units", "/units/unit-9", "/dashboard"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalidate_user_clears_unit_and_dashboard_views():
    cache = ViewCache()
    await cache.set("/units/unit-1", "admin-1:admin", {"id": "unit-1"})
    await cache.set("/dashboard", "admin-1:admin", {})

    await ViewInvalidator(cache).invalidate_user("manager-1")

    assert await cache.get("/units/unit-1", "admin-1:admin") is None
    assert await cache.get("/dashboard", "admin-1:admin") is None


@pytest.mark.unit
def test_view_scope_carries_role(admin_user, manager_user):
    assert view_scope(admin_user) == "admin-1:admin"
    assert view_scope(manager_user, None, "x") == "manager-1:store_manager::x"
