# -*- coding: utf-8 -*-
"""Initial migration for Lucky Draw.

Назначение:
    • Создать схему розыгрышей и все таблицы согласно текущим моделям:
      fundraisers, supporters, orders, draws, pending_emails.

Канон/инварианты:
    • Таблицы создаются через Declarative Base, что исключает расхождение между
      миграцией и моделями.
    • checkfirst=True: повторный запуск не ломает БД.
"""

from __future__ import annotations

from alembic import op
from sqlalchemy import text

from luckydraw.core.config_core import get_settings
from luckydraw.core.logging_core import get_logger
from luckydraw.models import MODEL_REGISTRY, Base

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels = None
depends_on = None

logger = get_logger(__name__)
settings = get_settings()
SCHEMA = settings.DB_SCHEMA


def upgrade() -> None:
    """Создать схему и все таблицы/индексы из моделей."""

    bind = op.get_bind()
    if SCHEMA and bind.dialect.name == "postgresql":
        logger.info("Creating schema if missing", extra={"schema": SCHEMA})
        bind.execute(text(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}"))
    logger.info("Creating tables", extra={"tables": sorted(cls.__tablename__ for cls in MODEL_REGISTRY.values())})
    Base.metadata.create_all(bind=bind, checkfirst=True)


def downgrade() -> None:
    """Удалить таблицы розыгрышей (схему оставляем: в ней может жить alembic_version)."""

    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind, checkfirst=True)
