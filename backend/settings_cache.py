import logging
import time
from typing import Callable, Optional

from .models import StoreSettings
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_SEC = 5 * 60


class SettingsCache:
    """Single-slot, time-boxed cache in front of :class:`SettingsStore`.

    Holds one ``(shop, settings, timestamp)`` entry. A hit for the same shop
    younger than ``ttl_sec`` returns the very same object; anything else goes
    to the store and replaces the slot.

    There is no lock. Two requests that both find the slot cold or stale will
    both query the store; ``get_or_create`` is idempotent so the only cost is
    a duplicate read, and the slot ends up holding whichever finished last.
    """

    def __init__(
        self,
        store: SettingsStore,
        ttl_sec: float = DEFAULT_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._shop: Optional[str] = None
        self._settings: Optional[StoreSettings] = None
        self._fetched_at: float = 0.0

    async def get(self, shop: str) -> StoreSettings:
        if (
            self._settings is not None
            and self._shop == shop
            and (self._clock() - self._fetched_at) < self.ttl_sec
        ):
            return self._settings

        settings = await self.store.get_or_create(shop)
        self._shop = shop
        self._settings = settings
        self._fetched_at = self._clock()
        logger.debug("Settings cache refreshed for %s", shop)
        return settings

    def invalidate(self) -> None:
        self._shop = None
        self._settings = None
        self._fetched_at = 0.0
