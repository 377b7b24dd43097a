"""
Database engine, session factory and request-scoped sessions.

SQLite (aiosqlite) is the default; DATABASE_URL accepts any async driver.
Slow statements (>= 1s) are logged with event="db".
"""
import logging
import time
from typing import AsyncGenerator

from fastapi import HTTPException
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.config import get_settings
from app.utils.prometheus_metrics import db_errors_total

_logger = logging.getLogger("app.db")

settings = get_settings()

SLOW_QUERY_THRESHOLD = 1.0
_SLOW_QUERY_PREVIEW = 100

_database_url = settings.database_url.strip()
_is_sqlite = _database_url.startswith("sqlite")


def _engine_options() -> dict:
    # SQLite는 커넥션 재사용 없이 (파일 잠금 회피)
    if _is_sqlite:
        return {"poolclass": NullPool}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": True,
    }


engine = create_async_engine(_database_url, echo=False, **_engine_options())


if _is_sqlite:
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@event.listens_for(engine.sync_engine, "before_cursor_execute")
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("query_start_time", []).append(time.perf_counter())


@event.listens_for(engine.sync_engine, "after_cursor_execute")
def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    start_times = conn.info.get("query_start_time")
    if not start_times:
        return
    elapsed = time.perf_counter() - start_times.pop()
    if elapsed < SLOW_QUERY_THRESHOLD:
        return
    preview = statement if len(statement) <= _SLOW_QUERY_PREVIEW else statement[:_SLOW_QUERY_PREVIEW] + "..."
    _logger.warning(
        "Slow query",
        extra={"event": "db", "ms": round(elapsed * 1000), "query": preview},
    )


async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Declarative base for users, albums and photos."""


async def init_db() -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db() -> None:
    """Drop all tables (test teardown)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def close_db() -> None:
    await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.

    Routes commit explicitly after a mutation; anything left pending is
    committed here. On error the session is rolled back, db_errors_total is
    incremented and the exception propagates to the app handlers.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except HTTPException:
            # 4xx/5xx 응답은 DB 오류로 집계하지 않음
            await session.rollback()
            raise
        except Exception as e:
            db_errors_total.inc()
            _logger.error(
                "DB error",
                extra={
                    "event": "db",
                    "error_type": type(e).__name__,
                    "error": str(e)[:200],
                },
            )
            await session.rollback()
            raise
