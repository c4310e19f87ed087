"""
asyncpg connection pool and the builder schema.
"""
import asyncpg
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from shopbuilder.config import Settings, settings as default_settings
from shopbuilder.utils.logging import get_logger

logger = get_logger(__name__)


SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS mobile_apps (
        id TEXT PRIMARY KEY,
        app_key TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        bundle_id TEXT NOT NULL,
        package_name TEXT,
        theme JSONB,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS component_kinds (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        type TEXT NOT NULL,
        category TEXT NOT NULL,
        description TEXT,
        icon TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS app_pages (
        id TEXT PRIMARY KEY,
        app_id TEXT NOT NULL REFERENCES mobile_apps(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        slug TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (app_id, slug)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS page_components (
        id TEXT PRIMARY KEY,
        page_id TEXT NOT NULL REFERENCES app_pages(id) ON DELETE CASCADE,
        kind_id TEXT NOT NULL REFERENCES component_kinds(id) ON DELETE RESTRICT,
        position INTEGER NOT NULL,
        params JSONB NOT NULL
    )
    """,
]


class DatabaseManager:
    """
    Pooled asyncpg access for the PostgreSQL page store.

    Queries go through ``fetch_*``/``execute``; multi-statement writes use
    ``transaction()``. Every call fails with RuntimeError before ``connect()``.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        """Create the pool and check the server answers. Raises on failure."""
        cfg = self.config
        logger.info(
            "database.postgres.connecting",
            extra={"host": cfg.postgres_host, "port": cfg.postgres_port, "database": cfg.postgres_db}
        )

        pool = await asyncpg.create_pool(
            host=cfg.postgres_host,
            port=cfg.postgres_port,
            database=cfg.postgres_db,
            user=cfg.postgres_user,
            password=cfg.postgres_password,
            min_size=cfg.postgres_min_connections,
            max_size=cfg.postgres_max_connections,
            command_timeout=cfg.postgres_command_timeout,
            timeout=10
        )
        try:
            async with pool.acquire() as conn:
                server_version = await conn.fetchval("SHOW server_version")
        except Exception:
            await pool.close()
            raise

        self.pool = pool
        logger.info(
            "database.postgres.connected",
            extra={
                "server_version": server_version,
                "pool_size": f"{cfg.postgres_min_connections}-{cfg.postgres_max_connections}",
            }
        )

    async def disconnect(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("database.postgres.disconnected")

    async def ensure_schema(self) -> None:
        """Create missing builder tables. Existing tables are left as they are."""
        async with self.transaction() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        logger.info("database.schema.ready", extra={"tables": len(SCHEMA_STATEMENTS)})

    @asynccontextmanager
    async def acquire(self):
        if self.pool is None:
            raise RuntimeError("Database not connected")
        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self):
        """
        Connection inside a transaction, committed when the block exits cleanly.

        Usage:
            async with db.transaction() as conn:
                await conn.execute("INSERT INTO page_components ...", *values)
                await conn.execute("UPDATE app_pages SET updated_at = NOW() WHERE id = $1", page_id)
        """
        async with self.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args) -> str:
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch_one(self, query: str, *args) -> Optional[Dict[str, Any]]:
        async with self.acquire() as conn:
            row = await conn.fetchrow(query, *args)
        return dict(row) if row else None

    async def fetch_all(self, query: str, *args) -> List[Dict[str, Any]]:
        async with self.acquire() as conn:
            rows = await conn.fetch(query, *args)
        return [dict(row) for row in rows]

    async def fetch_val(self, query: str, *args) -> Any:
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    @property
    def is_connected(self) -> bool:
        return self.pool is not None


db_manager = DatabaseManager()
