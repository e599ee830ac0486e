# -*- coding: utf-8 -*-
# luckydraw/routes/fundraisers_routes.py
# =============================================================================
# Назначение кода:
#   Админ-ручка аудита: пул билетов сбора в том виде, в каком его видит
#   выбор победителя (после дедупликации и сортировки).
#
# Запреты:
#   • Только чтение.
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from luckydraw.core.errors_core import FundraiserNotFoundError
from luckydraw.crud.draws_crud import DrawsCRUD
from luckydraw.deps import get_db, require_admin
from luckydraw.schemas.draws_schemas import PoolTicketOut, TicketPoolOut
from luckydraw.services.ticket_pool_service import svc_resolve_ticket_pool

router = APIRouter(prefix="/fundraisers", tags=["fundraisers"])


@router.get(
    "/{fundraiser_id}/ticket-pool",
    response_model=TicketPoolOut,
    summary="Пул билетов сбора (аудит)",
    dependencies=[Depends(require_admin)],
)
async def get_ticket_pool(fundraiser_id: int, db: AsyncSession = Depends(get_db)) -> TicketPoolOut:
    if await DrawsCRUD(db).get_fundraiser(fundraiser_id) is None:
        raise FundraiserNotFoundError(fundraiser_id)
    pool = await svc_resolve_ticket_pool(db, fundraiser_id)
    return TicketPoolOut(
        fundraiser_id=fundraiser_id,
        size=len(pool),
        tickets=[
            PoolTicketOut(
                ticket_number=t.ticket_number,
                supporter_id=t.supporter_id,
                first_name=t.first_name,
                last_name=t.last_name,
                email=t.email,
                order_id=t.order_id,
            )
            for t in pool
        ],
    )


__all__ = ["router"]
