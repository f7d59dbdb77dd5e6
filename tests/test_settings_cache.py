import pytest

from backend.models import StoreSettings
from backend.settings_cache import SettingsCache


class FakeStore:
    def __init__(self):
        self.calls = []

    async def get_or_create(self, shop):
        self.calls.append(shop)
        return StoreSettings(shop=shop, single_discount=len(self.calls))


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_second_get_within_ttl_returns_same_object():
    store, clock = FakeStore(), FakeClock()
    cache = SettingsCache(store, ttl_sec=300, clock=clock)

    first = await cache.get("shop")
    clock.now += 299
    second = await cache.get("shop")

    assert second is first
    assert store.calls == ["shop"]


@pytest.mark.asyncio
async def test_get_after_ttl_refetches_once():
    store, clock = FakeStore(), FakeClock()
    cache = SettingsCache(store, ttl_sec=300, clock=clock)

    first = await cache.get("shop")
    clock.now += 300
    second = await cache.get("shop")
    third = await cache.get("shop")

    assert store.calls == ["shop", "shop"]
    assert second is not first
    assert third is second
    assert second.single_discount == 2


@pytest.mark.asyncio
async def test_different_shop_misses():
    store, clock = FakeStore(), FakeClock()
    cache = SettingsCache(store, clock=clock)

    await cache.get("a")
    await cache.get("b")

    assert store.calls == ["a", "b"]


@pytest.mark.asyncio
async def test_invalidate_forces_reload():
    store, clock = FakeStore(), FakeClock()
    cache = SettingsCache(store, clock=clock)

    await cache.get("shop")
    cache.invalidate()
    await cache.get("shop")

    assert store.calls == ["shop", "shop"]
