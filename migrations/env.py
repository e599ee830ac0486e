# -*- coding: utf-8 -*-
"""Alembic env: миграции Lucky Draw поверх async-движка.

Назначение:
    • Таблицы розыгрышей живут в схеме DB_SCHEMA; там же лежит alembic_version,
      чтобы соседние сервисы в той же БД не делили с нами историю миграций.
    • Автогенерация видит только нашу схему (чужие таблицы не трогаем).
    • SQLite (локальная разработка) мигрируется в batch-режиме: ALTER TABLE
      там почти ничего не умеет.

Запреты:
    • Данные здесь не пишем, только DDL из файлов versions/.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool, text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from luckydraw.core.config_core import get_settings
from luckydraw.core.database_core import SCHEMA
from luckydraw.core.logging_core import get_logger
from luckydraw.models import Base  # импорт пакета регистрирует все таблицы

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

logger = get_logger(__name__)
settings = get_settings()

db_url = settings.database_url_async()
config.set_main_option("sqlalchemy.url", db_url)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    """Автогенерация: только объекты схемы розыгрышей."""
    if type_ == "table":
        return getattr(obj, "schema", None) == SCHEMA
    return True


def _configure_kwargs(dialect_name: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "version_table_schema": SCHEMA or None,
        "include_schemas": bool(SCHEMA),
        "include_object": include_object,
        "render_as_batch": dialect_name == "sqlite",
        "compare_type": True,
    }


def run_migrations_offline() -> None:
    """SQL-скрипт без подключения (alembic upgrade head --sql)."""
    dialect_name = db_url.split(":", 1)[0].split("+", 1)[0]
    context.configure(
        url=db_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(dialect_name),
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    # alembic_version создаётся до первой ревизии, схема нужна заранее
    if SCHEMA and connection.dialect.name == "postgresql":
        connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}"))
        connection.commit()
    context.configure(connection=connection, **_configure_kwargs(connection.dialect.name))
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()
    logger.info("Lucky Draw migrations applied", extra={"schema": SCHEMA or "-"})


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
