# -*- coding: utf-8 -*-
# luckydraw/deps.py
# =============================================================================
# Lucky Draw: общие зависимости FastAPI: БД-сессия, админ-гейт, ETag,
#             источник случайности и «сегодня» для розыгрышей.
# -----------------------------------------------------------------------------
# Канон/требования:
#   • Админ-операции (выбор победителя, пул билетов) требуют X-Admin-Token,
#     если ADMIN_API_TOKEN задан. Без токена в настройках гейт открыт (local).
#   • get_rng/get_today по умолчанию отдают None: сервис берёт SystemRandom
#     и дату в DRAW_TIMEZONE. Тесты подменяют их через dependency_overrides.
#
# Этот модуль НЕ делает бизнес-логику, только инфраструктуру/валидацию.
# =============================================================================
from __future__ import annotations

import hmac
from datetime import date
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession

from luckydraw.core.config_core import get_settings
from luckydraw.core.database_core import lifespan_session
from luckydraw.core.errors_core import ForbiddenError
from luckydraw.core.logging_core import get_logger
from luckydraw.core.utils_core import stable_json_hash
from luckydraw.services.draws_service import RandomSource

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# БД-сессия
# -----------------------------------------------------------------------------
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Выдаёт AsyncSession для роутов/сервисов.
    • Транзакцией управляет сервис (async with db.begin()).
    • Незавершённое чтение откатывается при закрытии сессии.
    """
    async with lifespan_session() as session:
        yield session


# -----------------------------------------------------------------------------
# ETag
# -----------------------------------------------------------------------------
def make_etag(payload: Dict[str, Any]) -> str:
    """
    Делает детерминированный ETag из JSON-представления payload.
    Используется фронтом для «304 Not Modified».
    """
    return f'"{stable_json_hash(payload)}"'


# -----------------------------------------------------------------------------
# Админ-гейт
# -----------------------------------------------------------------------------
async def require_admin(
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
) -> None:
    expected = get_settings().ADMIN_API_TOKEN
    if not expected:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Admin gate rejected request", extra={"token_present": bool(x_admin_token)})
        raise ForbiddenError()


# -----------------------------------------------------------------------------
# Источник случайности / «сегодня»
# -----------------------------------------------------------------------------
async def get_rng() -> Optional[RandomSource]:
    return None


async def get_today() -> Optional[date]:
    return None


__all__ = ["get_db", "make_etag", "require_admin", "get_rng", "get_today"]
