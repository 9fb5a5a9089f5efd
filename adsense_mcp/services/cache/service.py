"""Persistent response cache on top of the SQLAlchemy async session.

Entries are keyed by ``{operation_prefix}:{md5(params)}`` and carry an
absolute expiry. Expired rows are ignored by ``get`` and physically removed
only by ``clear_expired`` (run periodically by the server).

Storage failures are raised as ``CacheStorageError``. A broken store must
never look like a cache miss, or a failed write would silently turn into
repeated upstream traffic and stale reads.
"""

import hashlib
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import orjson
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adsense_mcp.core.exceptions import CacheStorageError
from adsense_mcp.core.logging import get_logger
from adsense_mcp.db.models import AccountCacheEntry, QueryHistory, ReportCacheEntry

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def fingerprint(params: dict[str, Any]) -> str:
    """MD5 hex digest of the compact JSON form of ``params``.

    Key order is preserved, so callers must build params in a stable shape.
    """
    return hashlib.md5(orjson.dumps(params), usedforsecurity=False).hexdigest()


def make_key(prefix: str, params: dict[str, Any]) -> str:
    """Create a cache key from an operation prefix and its parameters."""
    return f"{prefix}:{fingerprint(params)}"


# Backends whose INSERT supports ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


def upsert_statement(dialect_name: str, values: dict[str, Any]) -> Any:
    """``INSERT ... ON CONFLICT (cache_key) DO UPDATE`` for the given dialect."""
    insert = _UPSERT_INSERTS.get(dialect_name)
    if insert is None:
        raise CacheStorageError("set", f"Unsupported cache backend {dialect_name!r}")

    stmt = insert(ReportCacheEntry).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=[ReportCacheEntry.cache_key],
        set_={k: stmt.excluded[k] for k in values if k != "cache_key"},
    )


@dataclass
class CacheStats:
    """Diagnostic snapshot of the cache store."""

    total_entries: int
    total_size: int
    expired_count: int


class ResponseCache:
    """TTL cache for upstream responses, persisted through SQLAlchemy."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def get(self, prefix: str, params: dict[str, Any]) -> Any | None:
        """Return the cached payload, or None when absent or expired."""
        cache_key = make_key(prefix, params)
        now = self._clock()

        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ReportCacheEntry.response_data, ReportCacheEntry.expires_at).where(
                        ReportCacheEntry.cache_key == cache_key
                    )
                )
                row = result.first()
        except SQLAlchemyError as e:
            logger.error("Cache read failed", cache_key=cache_key, error=str(e))
            raise CacheStorageError("get") from e

        if row is None or row.expires_at <= now:
            logger.debug("Cache miss", cache_key=cache_key, expired=row is not None)
            return None

        try:
            payload = orjson.loads(row.response_data)
        except orjson.JSONDecodeError as e:
            logger.error("Cached payload is not valid JSON", cache_key=cache_key)
            raise CacheStorageError("get", "Cached payload is corrupted") from e

        logger.debug("Cache hit", cache_key=cache_key)
        return payload

    async def set(
        self,
        prefix: str,
        params: dict[str, Any],
        payload: Any,
        ttl_ms: int,
        account_id: str,
    ) -> None:
        """Insert or replace the entry for ``(prefix, params)``."""
        query_hash = fingerprint(params)
        cache_key = f"{prefix}:{query_hash}"
        now = self._clock()
        values = {
            "cache_key": cache_key,
            "account_id": account_id,
            "query_hash": query_hash,
            "response_data": orjson.dumps(payload).decode(),
            "created_at": now,
            "expires_at": now + ttl_ms,
        }

        try:
            async with self._session_factory() as session:
                stmt = upsert_statement(session.get_bind().dialect.name, values)
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Cache write failed", cache_key=cache_key, error=str(e))
            raise CacheStorageError("set") from e

        logger.debug("Cache stored", cache_key=cache_key, account_id=account_id, ttl_ms=ttl_ms)

    async def clear_expired(self) -> int:
        """Delete entries whose expiry has passed; returns the count removed."""
        count = await self._delete(
            delete(ReportCacheEntry).where(ReportCacheEntry.expires_at < self._clock()),
            "clear_expired",
        )
        logger.info("Expired cache entries cleared", count=count)
        return count

    async def clear_account(self, account_id: str) -> int:
        """Delete every entry tagged with ``account_id`` regardless of expiry."""
        count = await self._delete(
            delete(ReportCacheEntry).where(ReportCacheEntry.account_id == account_id),
            "clear_account",
        )
        logger.info("Account cache cleared", account_id=account_id, count=count)
        return count

    async def clear_all(self) -> None:
        """Wipe all cached responses."""
        try:
            async with self._session_factory() as session:
                await session.execute(delete(ReportCacheEntry))
                await session.execute(delete(AccountCacheEntry))
                await session.commit()
        except SQLAlchemyError as e:
            raise CacheStorageError("clear_all") from e
        logger.info("Cache cleared")

    async def stats(self) -> CacheStats:
        """Entry count, approximate payload bytes, and expired-but-present count."""
        now = self._clock()
        try:
            async with self._session_factory() as session:
                total_entries = await session.scalar(
                    select(func.count()).select_from(ReportCacheEntry)
                )
                expired_count = await session.scalar(
                    select(func.count())
                    .select_from(ReportCacheEntry)
                    .where(ReportCacheEntry.expires_at < now)
                )
                total_size = await session.scalar(
                    select(func.sum(func.length(ReportCacheEntry.response_data)))
                )
        except SQLAlchemyError as e:
            raise CacheStorageError("stats") from e

        return CacheStats(
            total_entries=total_entries or 0,
            total_size=total_size or 0,
            expired_count=expired_count or 0,
        )

    async def record_query(
        self,
        account_id: str,
        tool_name: str,
        params: dict[str, Any],
        response_time_ms: int,
    ) -> None:
        """Append an entry to the query history log."""
        try:
            async with self._session_factory() as session:
                session.add(
                    QueryHistory(
                        account_id=account_id,
                        tool_name=tool_name,
                        query_params=orjson.dumps(params).decode(),
                        executed_at=self._clock(),
                        response_time_ms=response_time_ms,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise CacheStorageError("record_query") from e

    async def _delete(self, stmt: Any, operation: str) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Cache delete failed", operation=operation, error=str(e))
            raise CacheStorageError(operation) from e
        return result.rowcount or 0
