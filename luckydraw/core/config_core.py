# -*- coding: utf-8 -*-
# luckydraw/core/config_core.py
# =============================================================================
# Назначение:
#   • Единый конфигурационный модуль Lucky Draw (FastAPI + SQLAlchemy async).
#   • Канонический источник всех настроек (БД, розыгрыш, логирование, веб).
#
# Канон / инварианты:
#   1) Розыгрыш разрешён в день draw_date и позже; «сегодня» считается
#      в часовом поясе DRAW_TIMEZONE.
#   2) Блокировка строки розыгрыша на PostgreSQL ограничена
#      DRAW_LOCK_TIMEOUT_MS; по истечении это временный сбой (retry).
#   3) Победитель пишется в outbox pending_emails в той же транзакции,
#      если WINNER_EMAIL_OUTBOX_ENABLED.
#
# Самодиагностика:
#   • initialize_runtime() проверяет DSN и выводит предупреждения
#     по секретам (ADMIN_API_TOKEN в prod).
#   • Валидаторы жёстко отсекают неизвестный часовой пояс и
#     неположительный таймаут блокировки.
# =============================================================================

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Вспомогательные утилиты (локальные, без сетевых вызовов)
# =============================================================================


def _parse_csv(value: object) -> List[str]:
    """Преобразует CSV-строку 'a,b,c' в ['a', 'b', 'c'] (пробелы обрезаются)."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(x).strip() for x in value if str(x).strip()]
    s = str(value).strip()
    if not s:
        return []
    return [item.strip() for item in s.split(",") if item.strip()]


def _unique(items: Iterable[str]) -> List[str]:
    """Возвращает элементы без повторов, сохраняя порядок первого появления."""
    out: List[str] = []
    for item in items:
        if item not in out:
            out.append(item)
    return out


# =============================================================================
# Док-описания полей (используются в Swagger и как подсказки)
# =============================================================================


class _Doc:
    # Приложение
    PROJECT_NAME = "Имя проекта (отображается в Swagger/health)."
    ENV = "Окружение: production/dev/local (нормализуется в prod/dev/local)."
    DEBUG = "Расширенные логи и SQL echo (только для dev/local)."
    APP_VERSION = "Версия приложения (попадает в /health)."

    APP_HOST = "Адрес для uvicorn (обычно 0.0.0.0)."
    APP_PORT = "Порт для uvicorn (например, 8000)."
    APP_RELOAD = "Горячая перезагрузка (для разработки)."
    API_PREFIX = "Префикс REST API, например /api."
    DOCS_URL = "Путь Swagger UI (/docs)."
    REDOC_URL = "Путь Redoc (/redoc)."
    OPENAPI_URL = "Путь OpenAPI JSON (/openapi.json)."

    # БД
    DATABASE_URL = (
        "DSN PostgreSQL. "
        "Будет автоматически приведён к async (postgresql+asyncpg://)."
    )
    DB_POOL_SIZE = "Размер пула соединений SQLAlchemy."
    DB_MAX_OVERFLOW = "Дополнительные соединения в пике."
    DB_SCHEMA = "Схема таблиц (пустая строка = без схемы, для SQLite)."

    # Розыгрыш
    DRAW_TIMEZONE = "IANA-пояс, в котором считается «сегодня» для draw_date."
    DRAW_LOCK_TIMEOUT_MS = "lock_timeout для FOR UPDATE строки розыгрыша (мс)."
    WINNER_EMAIL_OUTBOX_ENABLED = "Писать победителя в pending_emails."

    # Доступ
    ADMIN_API_TOKEN = "Токен заголовка X-Admin-Token для админ-ручек."

    # Веб
    CORS_ORIGINS = "Список разрешённых Origin (CSV)."

    # Logging
    LOG_LEVEL = "Уровень логирования (INFO/DEBUG/WARNING/ERROR)."
    LOG_JSON = "Лог в JSON (true/false); по умолчанию JSON только в prod."


# =============================================================================
# Настройки приложения (единственный источник истины)
# =============================================================================


class Settings(BaseSettings):
    """
    Контейнер переменных окружения Lucky Draw.

    Важное:
      • Секреты берём только из ENV, в код не шьём.
      • Политика даты розыгрыша («в день draw_date и позже») закреплена
        в сервисе; здесь только часовой пояс.
    """

    # --------------------------- БАЗОВЫЕ НАСТРОЙКИ ---------------------------
    PROJECT_NAME: str = Field("Lucky Draw", description=_Doc.PROJECT_NAME)
    ENV: str = Field("production", description=_Doc.ENV)
    DEBUG: bool = Field(False, description=_Doc.DEBUG)
    APP_VERSION: str = Field("1.0.0", description=_Doc.APP_VERSION)

    APP_HOST: str = Field("0.0.0.0", description=_Doc.APP_HOST)
    APP_PORT: int = Field(8000, description=_Doc.APP_PORT)
    APP_RELOAD: bool = Field(False, description=_Doc.APP_RELOAD)

    API_PREFIX: str = Field("/api", description=_Doc.API_PREFIX)
    DOCS_URL: str = Field("/docs", description=_Doc.DOCS_URL)
    REDOC_URL: str = Field("/redoc", description=_Doc.REDOC_URL)
    OPENAPI_URL: str = Field("/openapi.json", description=_Doc.OPENAPI_URL)

    # --------------------------------- БАЗА ----------------------------------
    DATABASE_URL: Optional[str] = Field(None, description=_Doc.DATABASE_URL)
    DB_POOL_SIZE: int = Field(10, description=_Doc.DB_POOL_SIZE)
    DB_MAX_OVERFLOW: int = Field(10, description=_Doc.DB_MAX_OVERFLOW)
    DB_SCHEMA: Optional[str] = Field("luckydraw", description=_Doc.DB_SCHEMA)

    # -------------------------------- РОЗЫГРЫШ -------------------------------
    DRAW_TIMEZONE: str = Field("UTC", description=_Doc.DRAW_TIMEZONE)
    DRAW_LOCK_TIMEOUT_MS: int = Field(
        5000,
        description=_Doc.DRAW_LOCK_TIMEOUT_MS,
    )
    WINNER_EMAIL_OUTBOX_ENABLED: bool = Field(
        True,
        description=_Doc.WINNER_EMAIL_OUTBOX_ENABLED,
    )

    # --------------------------------- ДОСТУП --------------------------------
    ADMIN_API_TOKEN: Optional[str] = Field(
        None,
        description=_Doc.ADMIN_API_TOKEN,
    )

    # ----------------------------------- ВЕБ ---------------------------------
    CORS_ORIGINS: str = Field(
        "http://localhost:3000",
        description=_Doc.CORS_ORIGINS,
    )

    # --------------------------------- LOGGING -------------------------------
    LOG_LEVEL: str = Field("INFO", description=_Doc.LOG_LEVEL)
    LOG_JSON: Optional[bool] = Field(None, description=_Doc.LOG_JSON)

    # --------------------------- Pydantic BaseSettings -----------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =============================== ВАЛИДАТОРЫ ==============================

    @field_validator("DB_SCHEMA", mode="before")
    @classmethod
    def _v_db_schema(cls, value: object) -> Optional[str]:
        """Пустая схема означает «без схемы» (SQLite не умеет схемы)."""
        if value is None:
            return None
        text_value = str(value).strip()
        return text_value or None

    @field_validator("DRAW_TIMEZONE")
    @classmethod
    def _v_draw_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"DRAW_TIMEZONE: неизвестный часовой пояс {value!r}") from None
        return value

    @field_validator("DRAW_LOCK_TIMEOUT_MS")
    @classmethod
    def _v_lock_timeout(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("DRAW_LOCK_TIMEOUT_MS должен быть > 0")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _v_log_level(cls, value: str) -> str:
        level = (value or "INFO").strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL: неизвестный уровень {value!r}")
        return level

    # =========================== Удобные свойства/методы =====================

    # ---- ENV флаги ----
    @property
    def env_normalized(self) -> str:
        """Нормализует ENV к одному из: prod/dev/local."""
        value = (self.ENV or "").strip().lower()
        if value.startswith("prod") or value == "production":
            return "prod"
        if value.startswith("dev") or value == "test":
            return "dev"
        if value.startswith("loc") or value == "local":
            return "local"
        return "prod"

    @property
    def is_prod(self) -> bool:
        return self.env_normalized == "prod"

    @property
    def log_as_json(self) -> bool:
        """JSON-логи: явный LOG_JSON или по умолчанию только в prod."""
        if self.LOG_JSON is not None:
            return bool(self.LOG_JSON)
        return self.is_prod

    # ---- База данных / DSN ----
    def database_url_async(self) -> str:
        """
        Возвращает DSN для SQLAlchemy async:
          postgres://   → postgresql+asyncpg://
          postgresql:// → postgresql+asyncpg:// при отсутствии драйвера.
        sqlite+aiosqlite:// возвращается как есть (тесты/локальный запуск).
        """
        if not self.DATABASE_URL:
            raise RuntimeError(
                "DATABASE_URL не задан (нужен DSN Postgres).",
            )
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def is_sqlite(self) -> bool:
        return bool(self.DATABASE_URL) and str(self.DATABASE_URL).startswith("sqlite")

    @property
    def draw_zone(self) -> ZoneInfo:
        return ZoneInfo(self.DRAW_TIMEZONE)

    # ---- CORS ----
    def effective_cors_origins(self) -> List[str]:
        """Возвращает итоговый список CORS-Origin (после парсинга CSV)."""
        return _unique(_parse_csv(self.CORS_ORIGINS))

    # ---- Health/диагностика ----
    def assert_required_secrets(self) -> None:
        """
        Мягкая самодиагностика критичных секретов.
        Печатает WARN, но не падает.
        """
        if not self.DATABASE_URL:
            print("[WARN] DATABASE_URL не задан, БД будет недоступна.")
        if self.is_prod and not self.ADMIN_API_TOKEN:
            print(
                "[WARN] ADMIN_API_TOKEN не задан в prod: "
                "выбор победителя доступен без токена.",
            )

    def debug_dump(self) -> Dict[str, str]:
        """Безопасный дамп ключевых настроек (без секретов) для /health и логов."""
        return {
            "env": self.env_normalized,
            "projectName": self.PROJECT_NAME,
            "version": self.APP_VERSION,
            "apiPrefix": self.API_PREFIX,
            "dbUrlSet": "yes" if bool(self.DATABASE_URL) else "no",
            "dbSchema": self.DB_SCHEMA or "-",
            "drawTimezone": self.DRAW_TIMEZONE,
            "drawLockTimeoutMs": str(self.DRAW_LOCK_TIMEOUT_MS),
            "outboxEnabled": str(self.WINNER_EMAIL_OUTBOX_ENABLED),
            "adminTokenSet": "yes" if bool(self.ADMIN_API_TOKEN) else "no",
            "corsCount": str(len(self.effective_cors_origins())),
        }

    # ---- Инициализация рантайма ----
    def ensure_local_artifacts(self) -> None:
        """Создаёт каталог .local_artifacts для local-режима (логи/временные файлы)."""
        if self.env_normalized == "local":
            Path(".local_artifacts").mkdir(exist_ok=True)

    def initialize_runtime(self) -> None:
        """
        Единая точка инициализации конфигурации при старте приложения:
          • Приведение DSN БД к async-формату.
          • Создание локальных артефактов для local.
          • Мягкая самодиагностика секретов.
        """
        if self.DATABASE_URL:
            _ = self.database_url_async()

        self.ensure_local_artifacts()
        self.assert_required_secrets()


# =============================================================================
# Синглтон настроек для всего приложения
# =============================================================================


@lru_cache()
def get_settings() -> Settings:
    """Создаёт и кэширует объект Settings, выполняя initialize_runtime()."""
    settings_obj = Settings()
    settings_obj.initialize_runtime()
    return settings_obj


# Удобный глобальный экспорт:
# from luckydraw.core.config_core import settings
settings: Settings = get_settings()

__all__ = ["Settings", "get_settings", "settings"]
