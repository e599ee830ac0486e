# -*- coding: utf-8 -*-
# luckydraw/core/__init__.py
# =============================================================================
# Назначение кода:
# Единая точка входа ядра Lucky Draw: загрузка настроек, первичная инициализация
# логирования и безопасный экспорт ключевых утилит ядра во внешние модули
# (сервисы, роуты, миграции).
#
# Канон/инварианты:
# • Источником истины служит config_core.get_settings(), никаких локальных
#   дублей констант здесь не создаём.
# • core_health() никогда не падает: возвращает отчёт (ok + список ошибок).
#
# Запреты:
# • Не определяем здесь бизнес-логики и не импортируем тяжёлые слои (CRUD/Services).
# =============================================================================

from __future__ import annotations

from typing import Any, Dict, List

from .config_core import get_settings
from .logging_core import get_logger
from . import utils_core

# Версия ядра (повышать при несовместимых изменениях ядра)
CORE_VERSION = "1.0.0"

logger = get_logger(__name__)

__all__ = [
    "CORE_VERSION",
    "get_settings",
    "logger",
    "core_health",
    "utils_core",
]


def core_health() -> Dict[str, Any]:
    """
    Быстрые sanity-checks по ключевым настройкам. Никаких падений,
    только отчёт для логов и /health.

    Проверяем:
        • DATABASE_URL задан.
        • DRAW_LOCK_TIMEOUT_MS положителен.
        • ADMIN_API_TOKEN задан в prod (иначе выбор победителя открыт всем).

    Возвращает:
        dict: { ok: bool, errors: List[str], snapshot: Dict[str, Any] }
    """
    settings = get_settings()
    errors: List[str] = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL must be set.")
    if settings.DRAW_LOCK_TIMEOUT_MS <= 0:
        errors.append("DRAW_LOCK_TIMEOUT_MS must be positive.")
    if settings.is_prod and not settings.ADMIN_API_TOKEN:
        errors.append("ADMIN_API_TOKEN should be set in production.")

    ok = len(errors) == 0
    if not ok:
        logger.warning("Core health warnings: %s", errors)

    # ВНИМАНИЕ: debug_dump() не содержит секретов (DSN/токен только как yes/no)
    return {"ok": ok, "errors": errors, "snapshot": settings.debug_dump(), "core_version": CORE_VERSION}


# =============================================================================
# Пояснения:
# • Этот __init__ не дублирует конфиг, только экспортирует get_settings и
#   предоставляет core_health() для старта и /health.
# =============================================================================
