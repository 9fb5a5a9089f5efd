"""SQLAlchemy ORM models for the response cache store.

Timestamps are integer milliseconds since the epoch.
"""

from sqlalchemy import BigInteger, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ReportCacheEntry(Base):
    """One memoized upstream response."""

    __tablename__ = "report_cache"
    __table_args__ = (
        Index("idx_report_cache_key", "cache_key"),
        Index("idx_report_cache_expires", "expires_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cache_key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    query_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    response_data: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<ReportCacheEntry(cache_key={self.cache_key}, expires_at={self.expires_at})>"


class AccountCacheEntry(Base):
    """Reserved account info table (cleared with the rest of the cache)."""

    __tablename__ = "accounts_cache"

    account_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    account_data: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class QueryHistory(Base):
    """Append-only log of queries that reached the upstream API."""

    __tablename__ = "query_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    tool_name: Mapped[str] = mapped_column(String(100), nullable=False)
    query_params: Mapped[str | None] = mapped_column(Text, nullable=True)
    executed_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    response_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<QueryHistory(id={self.id}, tool_name={self.tool_name})>"
