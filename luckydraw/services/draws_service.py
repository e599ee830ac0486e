# -*- coding: utf-8 -*-
# luckydraw/services/draws_service.py
# =============================================================================
# Назначение кода:
#   Сервис розыгрышей Lucky Draw: транзакционный выбор победителя,
#   просмотр победителя, создание, правка и удаление pending-розыгрышей,
#   выборки.
#
# Канон/инварианты:
#   • Победитель выбирается РОВНО один раз: строка розыгрыша берётся
#     SELECT ... FOR UPDATE, и под блокировкой проверяется, что
#     supporter_id ещё пуст. Никаких in-process мьютексов: вызовы из разных
#     процессов/хостов сериализуются на строке БД.
#   • Разные розыгрыши друг друга не блокируют.
#   • Выбор равновероятен по НОМЕРАМ БИЛЕТОВ: индекс из [0, len(pool)) берёт
#     внедряемый источник случайности (по умолчанию SystemRandom).
#   • Порядок: блокировка → существование → дата → нет победителя →
#     пул → пул не пуст → выбор → запись (+updated_at, +outbox) → commit.
#     Любой отказ до commit откатывает транзакцию, розыгрыш остаётся pending.
#   • Возвращаем личность и номер из той же записи пула, по которой выбирали
#     (без повторного запроса).
#   • Дата: розыгрыш допускается в день проведения и позже
#     (draw_date <= сегодня в DRAW_TIMEZONE).
#   • Временные сбои БД (lock_timeout, обрыв соединения, дедлок) →
#     TransientFailureError, их безопасно повторить.
#
# Запреты:
#   • Никаких писем отсюда: только запись в outbox pending_emails.
#   • Никакого API «назначить/сменить победителя вручную».
#   • Решённый розыгрыш не правится и не удаляется.
# =============================================================================

from __future__ import annotations

import asyncio
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from luckydraw.core.config_core import get_settings
from luckydraw.core.database_core import is_transient_db_error
from luckydraw.core.errors_core import (
    DrawAlreadyDecidedError,
    DrawError,
    DrawNotFoundError,
    DrawTooEarlyError,
    FundraiserNotFoundError,
    NoTicketsSoldError,
    TransientFailureError,
    ValidationError,
    WinnerNotSelectedError,
)
from luckydraw.core.logging_core import get_logger, set_request_context
from luckydraw.core.utils_core import today_in_timezone, utcnow
from luckydraw.crud.draws_crud import DrawsCRUD
from luckydraw.models import EMAIL_TYPE_DRAW_WINNER, Draw, Fundraiser
from luckydraw.services.ticket_pool_service import PoolTicket, svc_resolve_ticket_pool

logger = get_logger(__name__)
settings = get_settings()


# -----------------------------------------------------------------------------
# Источник случайности
# -----------------------------------------------------------------------------
class RandomSource(Protocol):
    """Всё, что умеет randrange(n) → int из [0, n). Подходит random.Random."""

    def randrange(self, stop: int) -> int: ...


_SYSTEM_RANDOM: RandomSource = random.SystemRandom()


def pick_uniform(pool: Sequence[PoolTicket], rng: RandomSource) -> PoolTicket:
    """Равновероятно выбирает один билет пула."""
    if not pool:
        raise ValueError("pick_uniform() requires a non-empty pool")
    index = rng.randrange(len(pool))
    if not 0 <= index < len(pool):
        raise ValueError(f"random source returned index {index} outside [0, {len(pool)})")
    return pool[index]


# -----------------------------------------------------------------------------
# DTO
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class WinnerResult:
    supporter_id: int
    first_name: str
    last_name: str
    email: str
    ticket_number: Optional[int]


def winner_path(draw_id: int) -> str:
    """Путь «посмотреть победителя» для уже решённого розыгрыша."""
    return f"{settings.API_PREFIX.rstrip('/')}/draws/{int(draw_id)}/winner"


# -----------------------------------------------------------------------------
# Транзакция с маппингом временных сбоев
# -----------------------------------------------------------------------------
@asynccontextmanager
async def _transaction(db: AsyncSession, *, operation: str, draw_id: Optional[int] = None) -> AsyncIterator[None]:
    """
    db.begin() с переводом временных ошибок БД в TransientFailureError.
    Доменные ошибки (DrawError) пробрасываются как есть, после rollback.

    Сессия после чтений (autobegin) допустима: её неявная транзакция без
    изменений закрывается перед begin(). Несохранённые изменения вызывающего
    чужой транзакцией не коммитим → ValidationError.
    """
    if db.new or db.dirty or db.deleted:
        raise ValidationError(
            "Session has uncommitted changes.",
            details={"operation": operation},
        )
    try:
        if db.in_transaction():
            await db.commit()
        async with db.begin():
            yield
    except DrawError:
        raise
    except (SQLAlchemyError, TimeoutError, asyncio.TimeoutError) as exc:
        if not is_transient_db_error(exc):
            raise
        logger.warning(
            "Transient DB failure, transaction rolled back",
            extra={"operation": operation, "draw_id": draw_id, "exc_type": type(exc).__name__},
        )
        raise TransientFailureError(details={"operation": operation}) from exc


async def _apply_lock_timeout(db: AsyncSession) -> None:
    # SET LOCAL действует только до конца текущей транзакции
    if db.get_bind().dialect.name != "postgresql":
        return
    timeout_ms = int(settings.DRAW_LOCK_TIMEOUT_MS)
    await db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


def _winner_email_data(draw: Draw, fundraiser: Optional[Fundraiser], ticket: PoolTicket) -> Dict[str, Any]:
    return {
        "type": EMAIL_TYPE_DRAW_WINNER,
        "supporter_email": ticket.email,
        "supporter_name": f"{ticket.first_name} {ticket.last_name}".strip(),
        "fundraiser_title": fundraiser.title if fundraiser is not None else None,
        "prize": draw.prize,
        "draw_id": draw.id,
        "ticket_number": ticket.ticket_number,
    }


# -----------------------------------------------------------------------------
# Выбор победителя
# -----------------------------------------------------------------------------
async def svc_select_winner(
    db: AsyncSession,
    draw_id: int,
    *,
    rng: Optional[RandomSource] = None,
    today: Optional[date] = None,
) -> WinnerResult:
    """
    Выбирает победителя розыгрыша в одной транзакции и возвращает его
    личность вместе с выигравшим номером.

    Транзакцию сервис открывает сам и коммитит при успехе. Неявная
    транзакция чтения на той же сессии закрывается до блокировки.

    Исключения:
      • DrawNotFoundError       - розыгрыша нет;
      • DrawTooEarlyError       - draw_date позже «сегодня»;
      • DrawAlreadyDecidedError - победитель уже выбран (supporter_id в ошибке);
      • NoTicketsSoldError      - в пуле нет ни одного билета;
      • TransientFailureError   - таймаут блокировки/обрыв соединения.
    """
    draw_id = int(draw_id)
    rng = rng or _SYSTEM_RANDOM
    today = today or today_in_timezone(settings.draw_zone)
    set_request_context(draw_id=draw_id)
    logger.info("Winner selection started", extra={"draw_id": draw_id, "today": today.isoformat()})

    crud = DrawsCRUD(db)
    async with _transaction(db, operation="select_winner", draw_id=draw_id):
        await _apply_lock_timeout(db)

        draw = await crud.lock_draw(draw_id)
        if draw is None:
            logger.warning("Winner selection rejected: draw not found", extra={"draw_id": draw_id})
            raise DrawNotFoundError(draw_id)

        if draw.draw_date > today:
            logger.warning(
                "Winner selection rejected: draw date not reached",
                extra={"draw_id": draw_id, "draw_date": draw.draw_date.isoformat()},
            )
            raise DrawTooEarlyError(draw_id, draw.draw_date.isoformat(), today.isoformat())

        if draw.supporter_id is not None:
            logger.warning(
                "Winner selection rejected: already decided",
                extra={"draw_id": draw_id, "supporter_id": draw.supporter_id},
            )
            raise DrawAlreadyDecidedError(draw_id, draw.supporter_id, winner_path(draw_id))

        pool = await svc_resolve_ticket_pool(db, draw.fundraiser_id)
        if not pool:
            logger.warning(
                "Winner selection rejected: no tickets sold",
                extra={"draw_id": draw_id, "fundraiser_id": draw.fundraiser_id},
            )
            raise NoTicketsSoldError(draw_id, draw.fundraiser_id)

        fundraiser = await crud.get_fundraiser(draw.fundraiser_id)
        if fundraiser is not None and fundraiser.tickets_sold != len(pool):
            logger.warning(
                "Fundraiser tickets_sold differs from resolved pool size",
                extra={
                    "draw_id": draw_id,
                    "fundraiser_id": draw.fundraiser_id,
                    "tickets_sold": fundraiser.tickets_sold,
                    "pool_size": len(pool),
                },
            )

        ticket = pick_uniform(pool, rng)
        await crud.set_winner(
            draw,
            supporter_id=ticket.supporter_id,
            ticket_number=ticket.ticket_number,
            now=utcnow(),
        )
        if settings.WINNER_EMAIL_OUTBOX_ENABLED:
            await crud.add_pending_email(_winner_email_data(draw, fundraiser, ticket))

    logger.info(
        "Winner selected",
        extra={
            "draw_id": draw_id,
            "fundraiser_id": draw.fundraiser_id,
            "ticket_number": ticket.ticket_number,
            "supporter_id": ticket.supporter_id,
            "order_id": ticket.order_id,
            "pool_size": len(pool),
        },
    )
    return WinnerResult(
        supporter_id=ticket.supporter_id,
        first_name=ticket.first_name,
        last_name=ticket.last_name,
        email=ticket.email,
        ticket_number=ticket.ticket_number,
    )


# -----------------------------------------------------------------------------
# Просмотр победителя / розыгрыша
# -----------------------------------------------------------------------------
async def svc_get_winner(db: AsyncSession, draw_id: int) -> WinnerResult:
    """Победитель уже решённого розыгрыша (WinnerNotSelectedError, если pending)."""
    crud = DrawsCRUD(db)
    draw = await crud.get_draw(draw_id)
    if draw is None:
        raise DrawNotFoundError(int(draw_id))
    if draw.supporter_id is None:
        raise WinnerNotSelectedError(int(draw_id))

    supporter = await crud.get_supporter(draw.supporter_id)
    if supporter is None:
        # FK не даёт удалить участника-победителя; сюда попадать не должны
        raise DrawNotFoundError(int(draw_id))
    return WinnerResult(
        supporter_id=supporter.id,
        first_name=supporter.first_name,
        last_name=supporter.last_name,
        email=supporter.email,
        ticket_number=draw.winning_ticket_number,
    )


async def svc_get_draw(db: AsyncSession, draw_id: int) -> Draw:
    draw = await DrawsCRUD(db).get_draw(draw_id)
    if draw is None:
        raise DrawNotFoundError(int(draw_id))
    return draw


async def svc_list_draws(db: AsyncSession, *, fundraiser_id: Optional[int] = None) -> List[Draw]:
    return await DrawsCRUD(db).list_draws(fundraiser_id=fundraiser_id)


# -----------------------------------------------------------------------------
# Создание розыгрыша (организатор)
# -----------------------------------------------------------------------------
async def svc_create_draw(
    db: AsyncSession,
    *,
    fundraiser_id: int,
    draw_date: date,
    prize: str,
    today: Optional[date] = None,
) -> Draw:
    """
    Создаёт розыгрыш в состоянии pending.

    Правила:
      • сбор должен существовать (FundraiserNotFoundError);
      • дата не может быть в прошлом (ValidationError);
      • приз - непустая строка (ValidationError).
    Победителя при создании задать нельзя.
    """
    today = today or today_in_timezone(settings.draw_zone)
    prize = (prize or "").strip()
    if not prize:
        raise ValidationError("Prize must not be empty.", details={"field": "prize"})
    if draw_date < today:
        raise ValidationError(
            "Draw date must be today or in the future.",
            details={"field": "draw_date", "draw_date": draw_date.isoformat(), "today": today.isoformat()},
        )

    crud = DrawsCRUD(db)
    async with _transaction(db, operation="create_draw"):
        if await crud.get_fundraiser(fundraiser_id) is None:
            raise FundraiserNotFoundError(int(fundraiser_id))
        draw = await crud.create_draw(fundraiser_id=fundraiser_id, draw_date=draw_date, prize=prize)

    logger.info(
        "Draw created",
        extra={"draw_id": draw.id, "fundraiser_id": draw.fundraiser_id, "draw_date": draw.draw_date.isoformat()},
    )
    return draw


# -----------------------------------------------------------------------------
# Правка / удаление розыгрыша (только pending)
# -----------------------------------------------------------------------------
async def _lock_pending_draw(db: AsyncSession, crud: DrawsCRUD, draw_id: int) -> Draw:
    await _apply_lock_timeout(db)
    draw = await crud.lock_draw(draw_id)
    if draw is None:
        raise DrawNotFoundError(draw_id)
    if draw.supporter_id is not None:
        raise DrawAlreadyDecidedError(draw_id, draw.supporter_id, winner_path(draw_id))
    return draw


async def svc_update_draw(
    db: AsyncSession,
    draw_id: int,
    *,
    draw_date: Optional[date] = None,
    prize: Optional[str] = None,
    today: Optional[date] = None,
) -> Draw:
    """
    Меняет дату и/или приз розыгрыша, пока победитель не выбран.

    Правила те же, что при создании: дата не в прошлом, приз не пустой.
    Решённый розыгрыш неизменяем (DrawAlreadyDecidedError). Строка берётся
    под ту же блокировку, что и при выборе победителя, поэтому правка не
    пересекается с выбором.
    """
    draw_id = int(draw_id)
    if draw_date is None and prize is None:
        raise ValidationError("Nothing to update.", details={"fields": ["drawDate", "prize"]})
    if prize is not None:
        prize = prize.strip()
        if not prize:
            raise ValidationError("Prize must not be empty.", details={"field": "prize"})
    if draw_date is not None:
        today = today or today_in_timezone(settings.draw_zone)
        if draw_date < today:
            raise ValidationError(
                "Draw date must be today or in the future.",
                details={"field": "draw_date", "draw_date": draw_date.isoformat(), "today": today.isoformat()},
            )

    crud = DrawsCRUD(db)
    async with _transaction(db, operation="update_draw", draw_id=draw_id):
        draw = await _lock_pending_draw(db, crud, draw_id)
        await crud.update_draw(draw, now=utcnow(), draw_date=draw_date, prize=prize)

    logger.info(
        "Draw updated",
        extra={"draw_id": draw_id, "draw_date": draw.draw_date.isoformat(), "prize": draw.prize},
    )
    return draw


async def svc_delete_draw(db: AsyncSession, draw_id: int) -> None:
    """Удаляет pending-розыгрыш. Решённый удалить нельзя: победитель зафиксирован."""
    draw_id = int(draw_id)
    crud = DrawsCRUD(db)
    async with _transaction(db, operation="delete_draw", draw_id=draw_id):
        draw = await _lock_pending_draw(db, crud, draw_id)
        fundraiser_id = draw.fundraiser_id
        await crud.delete_draw(draw)

    logger.info("Draw deleted", extra={"draw_id": draw_id, "fundraiser_id": fundraiser_id})


__all__ = [
    "RandomSource",
    "WinnerResult",
    "pick_uniform",
    "winner_path",
    "svc_select_winner",
    "svc_get_winner",
    "svc_get_draw",
    "svc_list_draws",
    "svc_create_draw",
    "svc_update_draw",
    "svc_delete_draw",
]
