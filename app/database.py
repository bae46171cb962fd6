import json
import uuid
import asyncpg
from contextlib import asynccontextmanager
from typing import Optional
from app.core.exceptions import APIError, translate_db_error
import logging

logger = logging.getLogger(__name__)

class Database:
    """
    Owns the asyncpg pool for the Supabase Postgres instance.

    Created once in the application lifespan and passed to services through
    their constructors; nothing imports a module-level pool.
    """

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 20):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self._pool = None

    async def create_pool(self):
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(
                    dsn=self.dsn,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    # Supabase's pgbouncer does not support prepared statements
                    statement_cache_size=0,
                )
                logger.info("Database pool created")
            except Exception as e:
                logger.error(f"Failed to create database pool: {e}")
                raise translate_db_error(e) from e
        return self._pool

    async def close_pool(self):
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database pool closed")

    @asynccontextmanager
    async def connection(self, use_transaction: bool = True, as_user: Optional[str] = None):
        """
        Get database connection from pool.

        Args:
            use_transaction: If True, wraps operations in a transaction.
                            Set to False for read-only operations.
            as_user: Run the block as this Supabase user so row-level
                     security applies. Always opens a transaction because
                     the claims are set transaction-locally.

        Usage:
        async with db.connection(as_user=user_id) as conn:
            result = await conn.fetchrow("SELECT * FROM table WHERE id = $1", id)
        """
        pool = await self.create_pool()
        try:
            async with pool.acquire() as connection:
                if use_transaction or as_user:
                    async with connection.transaction():
                        if as_user:
                            await impersonate(connection, as_user)
                        yield connection
                else:
                    yield connection
        except APIError:
            raise
        except Exception as e:
            raise translate_db_error(e) from e


async def impersonate(connection, user_id: str):
    """Set transaction-local JWT claims and role the way PostgREST does"""
    claims = json.dumps({"sub": str(user_id), "role": "authenticated"})
    await connection.execute(
        "SELECT set_config('request.jwt.claims', $1, true), set_config('role', 'authenticated', true)",
        claims
    )


def row_to_dict(row) -> dict:
    """asyncpg Record -> dict with uuid values (and uuid arrays) as strings"""
    return {key: _plain(value) for key, value in dict(row).items()}


def _plain(value):
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value
