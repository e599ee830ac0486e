# -*- coding: utf-8 -*-
# luckydraw/routes/draws_routes.py
# =============================================================================
# Назначение кода:
#   HTTP-ручки розыгрышей: выбор победителя (админ), просмотр победителя,
#   создание, правка и удаление розыгрыша организатором, список и карточка.
#
# Канон/инварианты:
#   • Роуты тонкие: вся логика в services/draws_service.py.
#   • Ошибки отдаются через DrawError → {"error", "message", "details"}.
#     draw_already_decided несёт details.winner_path для перехода к победителю.
#   • Ручки «назначить победителя вручную» нет и быть не должно.
#
# Запреты:
#   • Никаких прямых SQL/commit в роутерах.
# =============================================================================

from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from luckydraw.core.logging_core import get_logger
from luckydraw.deps import get_db, get_rng, get_today, make_etag, require_admin
from luckydraw.models import Draw
from luckydraw.schemas.draws_schemas import DrawCreateIn, DrawListOut, DrawOut, DrawUpdateIn, WinnerOut
from luckydraw.services.draws_service import (
    RandomSource,
    WinnerResult,
    svc_create_draw,
    svc_delete_draw,
    svc_get_draw,
    svc_get_winner,
    svc_list_draws,
    svc_select_winner,
    svc_update_draw,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/draws", tags=["draws"])


def _winner_out(result: WinnerResult) -> WinnerOut:
    return WinnerOut(
        supporter_id=result.supporter_id,
        first_name=result.first_name,
        last_name=result.last_name,
        email=result.email,
        ticket_number=result.ticket_number,
    )


def _draw_out(draw: Draw) -> DrawOut:
    return DrawOut(
        id=draw.id,
        fundraiser_id=draw.fundraiser_id,
        draw_date=draw.draw_date,
        prize=draw.prize,
        state=draw.state,
        supporter_id=draw.supporter_id,
        winning_ticket_number=draw.winning_ticket_number,
        created_at=draw.created_at,
        updated_at=draw.updated_at,
    )


# -----------------------------------------------------------------------------
# Победитель
# -----------------------------------------------------------------------------
@router.post(
    "/{draw_id}/winner",
    response_model=WinnerOut,
    summary="Выбрать победителя розыгрыша",
    dependencies=[Depends(require_admin)],
)
async def select_winner(
    draw_id: int,
    db: AsyncSession = Depends(get_db),
    rng: Optional[RandomSource] = Depends(get_rng),
    today: Optional[date] = Depends(get_today),
) -> WinnerOut:
    result = await svc_select_winner(db, draw_id, rng=rng, today=today)
    return _winner_out(result)


@router.get("/{draw_id}/winner", response_model=WinnerOut, summary="Победитель розыгрыша")
async def get_winner(draw_id: int, db: AsyncSession = Depends(get_db)) -> WinnerOut:
    result = await svc_get_winner(db, draw_id)
    return _winner_out(result)


# -----------------------------------------------------------------------------
# Розыгрыши
# -----------------------------------------------------------------------------
@router.post("", response_model=DrawOut, status_code=status.HTTP_201_CREATED, summary="Создать розыгрыш")
async def create_draw(
    payload: DrawCreateIn,
    db: AsyncSession = Depends(get_db),
    today: Optional[date] = Depends(get_today),
) -> DrawOut:
    draw = await svc_create_draw(
        db,
        fundraiser_id=payload.fundraiser_id,
        draw_date=payload.draw_date,
        prize=payload.prize,
        today=today,
    )
    return _draw_out(draw)


@router.get("", response_model=DrawListOut, summary="Список розыгрышей (ETag)")
async def list_draws(
    response: Response,
    fundraiser_id: Optional[int] = Query(None, gt=0, description="Только розыгрыши этого сбора"),
    if_none_match: Optional[str] = Header(None, alias="If-None-Match"),
    db: AsyncSession = Depends(get_db),
):
    draws = await svc_list_draws(db, fundraiser_id=fundraiser_id)
    items: List[DrawOut] = [_draw_out(d) for d in draws]

    # ETag: по составу и состоянию розыгрышей
    etag = make_etag({
        "fundraiser_id": fundraiser_id,
        "items": [[d.id, d.supporter_id, d.draw_date.isoformat(), d.prize] for d in draws],
    })
    if if_none_match and if_none_match == etag:
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers={"ETag": etag})

    response.headers["ETag"] = etag
    return DrawListOut(items=items, etag=etag)


@router.get("/{draw_id}", response_model=DrawOut, summary="Карточка розыгрыша")
async def get_draw(draw_id: int, db: AsyncSession = Depends(get_db)) -> DrawOut:
    draw = await svc_get_draw(db, draw_id)
    return _draw_out(draw)


@router.put("/{draw_id}", response_model=DrawOut, summary="Изменить дату/приз pending-розыгрыша")
async def update_draw(
    draw_id: int,
    payload: DrawUpdateIn,
    db: AsyncSession = Depends(get_db),
    today: Optional[date] = Depends(get_today),
) -> DrawOut:
    draw = await svc_update_draw(
        db,
        draw_id,
        draw_date=payload.draw_date,
        prize=payload.prize,
        today=today,
    )
    return _draw_out(draw)


@router.delete("/{draw_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Удалить pending-розыгрыш")
async def delete_draw(draw_id: int, db: AsyncSession = Depends(get_db)) -> Response:
    await svc_delete_draw(db, draw_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Пояснения «для чайника»:
#   • POST /draws/{id}/winner - единственный способ выбрать победителя.
#     Повторный вызов вернёт 409 draw_already_decided, а не нового победителя.
#   • PUT/DELETE /draws/{id} работают только с pending-розыгрышем; у решённого
#     ответ 409 draw_already_decided.
#   • 503 transient_failure можно безопасно повторить.
# =============================================================================

__all__ = ["router"]
