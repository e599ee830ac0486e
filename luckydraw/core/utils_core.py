# -*- coding: utf-8 -*-
# luckydraw/core/utils_core.py
# =============================================================================
# Назначение:
#   • Базовые утилиты уровня "core" без зависимостей от FastAPI/SQLAlchemy.
#   • Время и даты розыгрыша (UTC-таймстемпы, «сегодня» в поясе розыгрыша).
#   • Детерминированные хэши для ETag.
#
# Канон:
#   • «Сегодня» для проверки даты розыгрыша считается в DRAW_TIMEZONE,
#     а не в поясе сервера.
#   • Все функции чистые: без сетевых вызовов и без побочных эффектов.
# =============================================================================

from __future__ import annotations

import hashlib
import json
from datetime import date, datetime, timezone
from typing import Any, Dict, Union
from zoneinfo import ZoneInfo


# -----------------------------------------------------------------------------
# Время / даты
# -----------------------------------------------------------------------------
def utcnow() -> datetime:
    """Текущее время в UTC с tzinfo=UTC."""
    return datetime.now(tz=timezone.utc)


def today_in_timezone(zone: Union[str, ZoneInfo, None] = None) -> date:
    """
    Календарная дата «сейчас» в указанном поясе (по умолчанию UTC).

    Пример: в 23:30 UTC для Pacific/Auckland это уже следующий день.
    """
    if zone is None:
        return utcnow().date()
    tz = zone if isinstance(zone, ZoneInfo) else ZoneInfo(zone)
    return datetime.now(tz=tz).date()


# -----------------------------------------------------------------------------
# Хэши
# -----------------------------------------------------------------------------
def sha256_hex(data: Union[str, bytes]) -> str:
    """SHA-256 в hex (str → utf-8)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def stable_json_hash(payload: Dict[str, Any]) -> str:
    """
    Детерминированный хэш JSON-представления payload
    (ключи отсортированы, без пробелов). Основа для ETag.
    """
    raw = json.dumps(
        payload,
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return sha256_hex(raw)


__all__ = [
    "utcnow",
    "today_in_timezone",
    "sha256_hex",
    "stable_json_hash",
]
