# -*- coding: utf-8 -*-
# luckydraw/core/database_core.py
# =============================================================================
# Назначение кода:
#   • Единая точка работы с БД Lucky Draw (PostgreSQL + asyncpg + SQLAlchemy 2.0).
#   • Создание и конфигурация AsyncEngine и async_sessionmaker.
#   • Declarative Base для всех моделей и схема таблиц.
#   • Безопасная выдача сессий для FastAPI-роутов и сервисов.
#   • Health-утилита (ping) и классификация временных ошибок БД.
#
# Канон / инварианты:
#   • Только async-движок (create_async_engine), никаких sync-engine.
#   • DSN берём из Settings.database_url_async(), там единый источник истины.
#   • Сессии expire_on_commit=False (во избежание лишних рефрешей).
#   • SQLite (тесты) не умеет FOR UPDATE: каждая транзакция открывается
#     BEGIN IMMEDIATE, и писатели сериализуются блокировкой всей БД.
#
# Запреты:
#   • Никакой бизнес-логики розыгрыша в этом модуле.
#   • Никаких Alembic-миграций/DDL здесь, только подключения и сессии.
# =============================================================================

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy import MetaData, event, text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from luckydraw.core.config_core import get_settings
from luckydraw.core.logging_core import get_logger

logger = get_logger(__name__)
settings = get_settings()

SCHEMA: Optional[str] = settings.DB_SCHEMA


def qualified(name: str) -> str:
    """Имя таблицы/колонки со схемой (если схема задана): 'draws.id' → 'luckydraw.draws.id'."""
    return f"{SCHEMA}.{name}" if SCHEMA else name


# Первичные ключи - INTEGER (int4). Больший id в запросе роняет драйвер
# (OverflowError в SQLite, DataError в PostgreSQL), а не даёт «не найдено».
INT4_MAX = 2_147_483_647


def id_in_range(value: int) -> bool:
    """True, если value помещается в INTEGER-ключ (1..INT4_MAX)."""
    return 1 <= int(value) <= INT4_MAX


class Base(DeclarativeBase):
    """Declarative Base всех моделей Lucky Draw (одна схема на сервис)."""

    metadata = MetaData(schema=SCHEMA)


# -----------------------------------------------------------------------------
# Глобальные объекты: движок и фабрика сессий
# -----------------------------------------------------------------------------
_engine: Optional[AsyncEngine] = None
_SessionFactory: Optional[async_sessionmaker[AsyncSession]] = None


def _install_sqlite_immediate_begin(engine: AsyncEngine) -> None:
    """
    SQLite: отключаем собственный BEGIN драйвера и открываем транзакции
    как BEGIN IMMEDIATE. Вторая транзакция ждёт (busy timeout), пока первая
    не сделает commit, что эквивалентно FOR UPDATE для одной строки.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(dsn: str, *, echo: bool = False) -> AsyncEngine:
    """
    Создаёт AsyncEngine для произвольного DSN.

    Особенности:
    • Для PostgreSQL включены pool_pre_ping и размеры пула из настроек.
    • Для SQLite ставится BEGIN IMMEDIATE (см. _install_sqlite_immediate_begin).
    """
    kwargs: Dict[str, Any] = {"echo": echo}
    is_sqlite = dsn.startswith("sqlite")
    if not is_sqlite:
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
    engine = create_async_engine(dsn, **kwargs)
    if is_sqlite:
        _install_sqlite_immediate_begin(engine)
    return engine


def _create_engine() -> AsyncEngine:
    """Создаёт новый AsyncEngine на базе актуальных настроек."""
    dsn = settings.database_url_async()
    logger.info("Creating async DB engine", extra={"dsn_set": bool(dsn)})
    return build_engine(dsn, echo=settings.DEBUG)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Строит async_sessionmaker поверх переданного движка.

    Канон:
    • expire_on_commit=False: объекты остаются валидными после commit().
    • autoflush=False: явный контроль flush при необходимости.
    """
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )


def get_engine() -> AsyncEngine:
    """
    Возвращает текущий AsyncEngine.

    Движок создаётся лениво при первом обращении, чтобы импорт моделей
    (Alembic, тесты) не требовал живой БД.
    """
    global _engine, _SessionFactory

    if _engine is None:
        engine = _create_engine()
        _engine = engine
        _SessionFactory = build_session_factory(engine)
        logger.info("DB engine lazily initialized")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Возвращает фабрику сессий, гарантируя, что движок создан."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = build_session_factory(get_engine())
        logger.info("Session factory initialized")
    return _SessionFactory


@asynccontextmanager
async def lifespan_session() -> AsyncIterator[AsyncSession]:
    """
    Сессия на время запроса/задачи.

    Транзакциями управляет вызывающий код (сервис открывает db.begin()).
    Незавершённая транзакция при выходе откатывается close().
    """
    session = get_session_factory()()
    try:
        yield session
    finally:
        await session.close()


# -----------------------------------------------------------------------------
# Классификация ошибок БД: «можно повторить» или нет
# -----------------------------------------------------------------------------
# SQLSTATE PostgreSQL, после которых повтор операции безопасен:
#   55P03 lock_not_available (lock_timeout), 40001 serialization_failure,
#   40P01 deadlock_detected, 57014 query_canceled (statement_timeout).
TRANSIENT_SQLSTATES = frozenset({"55P03", "40001", "40P01", "57014"})


def _sqlstate_of(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def is_transient_db_error(exc: BaseException) -> bool:
    """
    True, если ошибка временная (таймаут блокировки, обрыв соединения,
    конфликт сериализации) и операцию можно безопасно повторить.
    """
    if isinstance(exc, (OperationalError, InterfaceError, TimeoutError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        return _sqlstate_of(exc) in TRANSIENT_SQLSTATES
    return False


# -----------------------------------------------------------------------------
# Health-check / ping
# -----------------------------------------------------------------------------
async def db_ping(engine: Optional[AsyncEngine] = None) -> bool:
    """
    Простейший health-check БД.

    Возвращает True, если SELECT 1 прошёл, и False, если БД не отвечает.
    """
    engine = engine or get_engine()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (OperationalError, DBAPIError, OSError) as exc:
        logger.error(
            "DB ping failed: DB is not reachable",
            extra={"error": str(exc)},
        )
        return False


__all__ = [
    "AsyncSession",
    "AsyncEngine",
    "Base",
    "SCHEMA",
    "qualified",
    "INT4_MAX",
    "id_in_range",
    "build_engine",
    "build_session_factory",
    "get_engine",
    "get_session_factory",
    "lifespan_session",
    "db_ping",
    "is_transient_db_error",
]
