import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite
import asyncpg

from . import config
from .models import StoreSettings, StoreSettingsUpdate

logger = logging.getLogger(__name__)

SETTINGS_COLUMNS = (
    "double_orders_enabled",
    "discount_a",
    "discount_b",
    "tag_a",
    "tag_b",
    "single_discount",
    "single_tag",
)


class SettingsStore:
    """Per-store settings table on SQLite, or PostgreSQL when ``db_url`` is set."""

    def __init__(self, db_path: str | None = None, db_url: str | None = None):
        self.db_url = db_url if db_url is not None else config.DATABASE_URL
        self.db_path = db_path or config.DB_PATH
        self.use_postgres = bool(self.db_url)
        if not self.use_postgres:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._pool: Optional[asyncpg.pool.Pool] = None

    async def _get_pool(self):
        if not self._pool:
            self._pool = await asyncpg.create_pool(
                self.db_url,
                min_size=config.PG_POOL_MIN,
                max_size=config.PG_POOL_MAX,
                timeout=30.0,
                # PgBouncer in transaction mode does not support prepared statements
                statement_cache_size=0,
            )
        return self._pool

    def _convert(self, query: str) -> str:
        """Convert SQLite style placeholders to asyncpg numbered ones."""
        if not self.use_postgres:
            return query

        idx = 1

        def repl(match):
            nonlocal idx
            rep = f"${idx}"
            idx += 1
            return rep

        return re.sub(r"\?|:\w+", repl, query)

    @asynccontextmanager
    async def _conn(self):
        if self.use_postgres:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                yield conn
            return
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            yield db

    async def close(self):
        if self._pool:
            await self._pool.close()
            self._pool = None

    # ── schema ──
    async def init_db(self):
        ddl = """
            CREATE TABLE IF NOT EXISTS settings (
                shop                  TEXT PRIMARY KEY,
                double_orders_enabled INTEGER DEFAULT 0,   -- bool 0/1
                discount_a            REAL DEFAULT 0,
                discount_b            REAL DEFAULT 0,
                tag_a                 TEXT DEFAULT '',
                tag_b                 TEXT DEFAULT '',
                single_discount       REAL DEFAULT 0,
                single_tag            TEXT DEFAULT '',
                updated_at            TEXT
            )
        """
        async with self._conn() as db:
            await db.execute(ddl)
            if not self.use_postgres:
                await db.commit()

    # ── helpers ──
    async def _fetchrow(self, db, query: str, *args):
        query = self._convert(query)
        if self.use_postgres:
            return await db.fetchrow(query, *args)
        cur = await db.execute(query, args)
        return await cur.fetchone()

    @staticmethod
    def _row_to_settings(row) -> StoreSettings:
        data = dict(row)
        data["double_orders_enabled"] = bool(data.get("double_orders_enabled"))
        for key in ("tag_a", "tag_b", "single_tag"):
            data[key] = data.get(key) or ""
        for key in ("discount_a", "discount_b", "single_discount"):
            data[key] = float(data.get(key) or 0)
        return StoreSettings(**data)

    # ── public API ──
    async def get(self, shop: str) -> StoreSettings | None:
        async with self._conn() as db:
            row = await self._fetchrow(db, "SELECT * FROM settings WHERE shop = ?", shop)
        return self._row_to_settings(row) if row else None

    async def get_or_create(self, shop: str) -> StoreSettings:
        """Return the row for ``shop``, inserting zero-value defaults first if absent.

        Idempotent: a concurrent insert for the same shop is absorbed by the
        primary key, so at most one row ever exists.
        """
        now = datetime.now(timezone.utc).isoformat()
        query = self._convert(
            "INSERT INTO settings (shop, updated_at) VALUES (?, ?) ON CONFLICT (shop) DO NOTHING"
        )
        async with self._conn() as db:
            if self.use_postgres:
                await db.execute(query, shop, now)
            else:
                await db.execute(query, (shop, now))
                await db.commit()
            row = await self._fetchrow(db, "SELECT * FROM settings WHERE shop = ?", shop)
        return self._row_to_settings(row)

    async def update(self, shop: str, changes: StoreSettingsUpdate) -> StoreSettings:
        current = await self.get_or_create(shop)
        fields = changes.model_dump(exclude_none=True)
        if not fields:
            return current

        merged = current.model_copy(update=fields)
        values = [getattr(merged, col) for col in SETTINGS_COLUMNS]
        values[0] = 1 if merged.double_orders_enabled else 0
        assignments = ", ".join(f"{col} = ?" for col in SETTINGS_COLUMNS)
        query = self._convert(f"UPDATE settings SET {assignments}, updated_at = ? WHERE shop = ?")
        params = (*values, datetime.now(timezone.utc).isoformat(), shop)

        async with self._conn() as db:
            if self.use_postgres:
                await db.execute(query, *params)
            else:
                await db.execute(query, params)
                await db.commit()
            row = await self._fetchrow(db, "SELECT * FROM settings WHERE shop = ?", shop)
        logger.info("Settings updated for %s: %s", shop, ", ".join(sorted(fields)))
        return self._row_to_settings(row)
