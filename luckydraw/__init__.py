# ==============================================================================
# Lucky Draw: FastAPI application factory
# ------------------------------------------------------------------------------
# Назначение: создаёт и конфигурирует FastAPI-приложение сервиса розыгрышей,
# подключает middleware, обработчики ошибок и роутеры.
#
# Канон/инварианты:
#   • Все ручки живут под settings.API_PREFIX (по умолчанию /api).
#   • Ошибки домена отдаются единым JSON {"error", "message", "details"}.
#   • Каждый запрос получает X-Request-ID (корреляция логов).
#
# ИИ-защиты/самовосстановление:
#   • Инициализация повторяема и идемпотентна: create_app() можно вызывать
#     несколько раз без изменения состояния (так делают тесты).
#   • /health не падает при недоступной БД, а отдаёт db: "down".
#
# Запреты:
#   • Фабрика не трогает данные, только конфигурирует API.
# ==============================================================================
from __future__ import annotations

from typing import Any, Dict

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from .core import core_health
from .core.config_core import get_settings
from .core.database_core import db_ping
from .core.errors_core import setup_exception_handlers
from .core.logging_core import CorrelationIdMiddleware, get_logger
from .deps import get_db
from .routes import api_router

logger = get_logger(__name__)


def create_app() -> FastAPI:
    """Создать FastAPI-приложение с middleware, обработчиками ошибок и роутерами."""

    settings = get_settings()
    prefix = settings.API_PREFIX.rstrip("/")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.APP_VERSION,
        docs_url=settings.DOCS_URL,
        redoc_url=settings.REDOC_URL,
        openapi_url=settings.OPENAPI_URL,
    )

    origins = settings.effective_cors_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
            expose_headers=["ETag", "X-Request-ID"],
        )
    app.add_middleware(CorrelationIdMiddleware)

    setup_exception_handlers(app)
    app.include_router(api_router, prefix=prefix)

    @app.get(f"{prefix}/health", tags=["health"])
    async def health(db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
        """Живость сервиса + ping БД + sanity-checks настроек (без секретов)."""

        db_ok = await db_ping(db.bind)
        core = core_health()
        return {
            "status": "ok" if db_ok else "degraded",
            "db": "up" if db_ok else "down",
            "core": {"ok": core["ok"], "errors": core["errors"]},
            "version": settings.APP_VERSION,
        }

    logger.info("FastAPI app initialised", extra={"api_prefix": prefix, "cors_origins": len(origins)})
    return app


# ==============================================================================
# Пояснения «для чайника»:
#   • Этот модуль ничего не пишет в БД, только конфигурирует API.
#   • Запуск: python run.py (uvicorn) или uvicorn luckydraw:create_app --factory.
# ==============================================================================

__all__ = ["create_app"]
