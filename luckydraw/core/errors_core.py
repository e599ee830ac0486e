# -*- coding: utf-8 -*-
# luckydraw/core/errors_core.py
# =============================================================================
# Назначение кода:
#   • Единый слой ошибок/исключений Lucky Draw.
#   • Канонические коды ошибок розыгрыша для фронтенда/логов.
#   • Унифицированные JSON-ответы для FastAPI.
#
# Канон / инварианты:
#   • Сервис розыгрыша бросает ТОЛЬКО доменные исключения из этого модуля;
#     вызывающий различает их по классу/коду, а не по тексту сообщения.
#   • Клиенту никогда не утекают технические детали (stack trace, DSN).
#   • Для всех известных исключений есть стабильные code и http_status.
#   • DrawAlreadyDecidedError несёт supporter_id победителя и путь
#     «посмотреть победителя», это не ошибка UX, а перенаправление.
#
# Запреты:
#   • Не включать сюда бизнес-логику (проверки дат, выбор билета и т.п.).
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, cast

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from luckydraw.core.logging_core import get_logger

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Базовая доменная ошибка
# -----------------------------------------------------------------------------
@dataclass(eq=False)
class DrawError(Exception):
    """
    Базовое доменное исключение Lucky Draw.

    Поля:
      • code         - стабильный машинный код ошибки (snake_case).
      • message      - короткое безопасное сообщение для клиента.
      • http_status  - HTTP код по умолчанию.
      • details      - безопасные детали (без секретов), опционально.
    """

    code: str
    message: str
    http_status: int = status.HTTP_400_BAD_REQUEST
    details: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """Готовит JSON-ответ для клиента."""
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


# -----------------------------------------------------------------------------
# Таксономия отказов выбора победителя
# -----------------------------------------------------------------------------
class DrawNotFoundError(DrawError):
    """Розыгрыш с таким id не существует."""

    def __init__(self, draw_id: int) -> None:
        super().__init__(
            code="draw_not_found",
            message="Draw not found.",
            http_status=status.HTTP_404_NOT_FOUND,
            details={"draw_id": draw_id},
        )
        self.draw_id = draw_id


class DrawTooEarlyError(DrawError):
    """Дата розыгрыша ещё не наступила (draw_date > сегодня)."""

    def __init__(self, draw_id: int, draw_date: str, today: str) -> None:
        super().__init__(
            code="draw_too_early",
            message="Draw can only be processed on or after its scheduled date.",
            http_status=status.HTTP_409_CONFLICT,
            details={"draw_id": draw_id, "draw_date": draw_date, "today": today},
        )
        self.draw_id = draw_id


class DrawAlreadyDecidedError(DrawError):
    """Победитель уже выбран; вызывающему стоит показать существующего."""

    def __init__(self, draw_id: int, supporter_id: int, winner_path: Optional[str] = None) -> None:
        details: Dict[str, Any] = {"draw_id": draw_id, "supporter_id": supporter_id}
        if winner_path:
            details["winner_path"] = winner_path
        super().__init__(
            code="draw_already_decided",
            message="Winner already selected for this draw.",
            http_status=status.HTTP_409_CONFLICT,
            details=details,
        )
        self.draw_id = draw_id
        self.supporter_id = supporter_id


class NoTicketsSoldError(DrawError):
    """У сбора нет ни одного оплаченного билета."""

    def __init__(self, draw_id: int, fundraiser_id: int) -> None:
        super().__init__(
            code="no_tickets_sold",
            message="No tickets sold for this fundraiser.",
            http_status=status.HTTP_409_CONFLICT,
            details={"draw_id": draw_id, "fundraiser_id": fundraiser_id},
        )
        self.draw_id = draw_id
        self.fundraiser_id = fundraiser_id


class TransientFailureError(DrawError):
    """Таймаут блокировки, обрыв соединения и т.п. Безопасно повторить."""

    def __init__(self, message: str = "Temporary failure, please retry.", *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            code="transient_failure",
            message=message,
            http_status=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details or {},
        )


# -----------------------------------------------------------------------------
# Прочие доменные ошибки API
# -----------------------------------------------------------------------------
class FundraiserNotFoundError(DrawError):
    """Сбор средств не найден."""

    def __init__(self, fundraiser_id: int) -> None:
        super().__init__(
            code="fundraiser_not_found",
            message="Fundraiser not found.",
            http_status=status.HTTP_404_NOT_FOUND,
            details={"fundraiser_id": fundraiser_id},
        )


class WinnerNotSelectedError(DrawError):
    """Розыгрыш существует, но победитель ещё не выбран."""

    def __init__(self, draw_id: int) -> None:
        super().__init__(
            code="winner_not_selected",
            message="No winner has been selected for this draw yet.",
            http_status=status.HTTP_404_NOT_FOUND,
            details={"draw_id": draw_id},
        )


class ValidationError(DrawError):
    """Некорректные входные данные/состояние."""

    def __init__(
        self,
        message: str = "Invalid data.",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            code="validation_error",
            message=message,
            http_status=422,
            details=details or {},
        )


class ForbiddenError(DrawError):
    """Нет прав на админ-операцию."""

    def __init__(self, message: str = "Admin access required.") -> None:
        super().__init__(
            code="forbidden",
            message=message,
            http_status=status.HTTP_403_FORBIDDEN,
        )


# -----------------------------------------------------------------------------
# Нормализация исключений → (status_code, payload)
# -----------------------------------------------------------------------------
def normalize_exception(
    exc: BaseException,
) -> Tuple[int, Dict[str, Any]]:
    """
    Приводит произвольное исключение к каноническому HTTP-ответу.

    Правила:
      • DrawError        → свой http_status + to_payload().
      • HTTPException    → status_code + {"error": "http_error", "message", ...}.
      • Любая другая     → 500 + {"error": "internal_error"} (без деталей).
    """
    if isinstance(exc, DrawError):
        return exc.http_status, exc.to_payload()

    if isinstance(exc, StarletteHTTPException):
        msg: str
        details: Dict[str, Any]
        if isinstance(exc.detail, str):
            msg = exc.detail
            details = {}
        elif isinstance(exc.detail, dict):
            details = cast(Dict[str, Any], exc.detail)
            msg = details.get("message") or details.get("detail") or "HTTP error."
        else:
            msg = "HTTP error."
            details = {}

        payload: Dict[str, Any] = {
            "error": "http_error",
            "message": msg,
        }
        if details:
            payload["details"] = details
        return exc.status_code, payload

    logger.error("Unhandled exception", exc_info=exc, extra={"error_type": type(exc).__name__})
    return (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {
            "error": "internal_error",
            "message": "Internal server error.",
        },
    )


# -----------------------------------------------------------------------------
# FastAPI-хендлеры исключений
# -----------------------------------------------------------------------------
async def draw_error_handler(request: Request, exc: DrawError) -> JSONResponse:
    """Обработчик DrawError: структурированный JSON с кодом ошибки."""
    status_code, payload = normalize_exception(exc)
    logger.warning(
        "DrawError handled",
        extra={
            "path": request.url.path,
            "error": exc.code,
            "status": status_code,
        },
    )
    headers = {"Retry-After": "1"} if isinstance(exc, TransientFailureError) else None
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status_code, payload = normalize_exception(exc)
    return JSONResponse(status_code=status_code, content=payload, headers=exc.headers)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Обработчик «на всё остальное».

    Логируем stack trace и тип исключения, клиенту отдаём только internal_error.
    """
    status_code, payload = normalize_exception(exc)
    logger.error(
        "Unhandled exception handled by generic handler",
        extra={
            "path": request.url.path,
            "status": status_code,
            "exc_type": type(exc).__name__,
        },
    )
    return JSONResponse(status_code=status_code, content=payload)


# -----------------------------------------------------------------------------
# Регистрация хендлеров в приложении FastAPI
# -----------------------------------------------------------------------------
def setup_exception_handlers(app: FastAPI) -> None:
    """
    Подключает все необходимые обработчики исключений.

    Вызывать один раз при создании приложения:
        app = FastAPI(...)
        setup_exception_handlers(app)
    """
    app.add_exception_handler(DrawError, draw_error_handler)
    # базовый класс Starlette: сюда же попадают 404/405 роутинга
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered for DrawError/HTTPException/Exception")


# =============================================================================
# Пояснения «для чайника»:
#   • Если в сервисе что-то пошло не так по бизнес-логике, бросайте DrawError
#     (или его наследника), а не голый HTTPException: тогда фронт увидит
#     стабильный code и message.
#   • draw_already_decided: фронт должен уйти на GET /draws/{id}/winner
#     (путь лежит в details.winner_path), а не показывать «ошибку».
#   • transient_failure (503 + Retry-After): можно нажать «выбрать» ещё раз.
# =============================================================================

__all__ = [
    "DrawError",
    "DrawNotFoundError",
    "DrawTooEarlyError",
    "DrawAlreadyDecidedError",
    "NoTicketsSoldError",
    "TransientFailureError",
    "FundraiserNotFoundError",
    "WinnerNotSelectedError",
    "ValidationError",
    "ForbiddenError",
    "normalize_exception",
    "setup_exception_handlers",
]
