# -*- coding: utf-8 -*-
# luckydraw/services/ticket_pool_service.py
# =============================================================================
# Назначение кода:
#   Резолвер пула билетов: fundraiser_id → полный, без дублей, упорядоченный
#   по номеру список оплаченных билетов сбора, каждый со своим владельцем.
#
# Канон/инварианты:
#   • Единица честности - НОМЕР БИЛЕТА, а не заказ и не участник:
#     участник с 10 билетами имеет 10 шансов.
#   • Участвуют только заказы со статусом "succeeded".
#   • Дубль номера (нарушение инварианта выпуска билетов) не роняет розыгрыш:
#     номер остаётся один раз за заказом с МЕНЬШИМ id, пишем WARNING.
#   • Невалидные номера (не положительные целые) пропускаются с WARNING.
#   • Нет оплаченных заказов → пустой список (не ошибка).
#
# Запреты:
#   • Только чтение: никаких записей и блокировок.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from luckydraw.core.logging_core import get_logger
from luckydraw.crud.draws_crud import DrawsCRUD, PaidOrderRow

logger = get_logger(__name__)


@dataclass(frozen=True)
class PoolTicket:
    """Билет пула: номер + личность владельца (+ заказ для аудита)."""

    ticket_number: int
    supporter_id: int
    first_name: str
    last_name: str
    email: str
    order_id: int


def _is_valid_ticket(value: object) -> bool:
    # bool - подкласс int, но номером билета не является
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def build_ticket_pool(rows: List[PaidOrderRow], *, fundraiser_id: int) -> List[PoolTicket]:
    """
    Собирает пул из строк оплаченных заказов (ожидаются в порядке order_id ASC).

    Возвращает список PoolTicket по возрастанию ticket_number.
    """
    pool: Dict[int, PoolTicket] = {}
    for row in sorted(rows, key=lambda r: r.order_id):
        for raw in row.ticket_numbers:
            if not _is_valid_ticket(raw):
                logger.warning(
                    "Skipping invalid ticket number",
                    extra={
                        "fundraiser_id": fundraiser_id,
                        "order_id": row.order_id,
                        "ticket_value": repr(raw),
                    },
                )
                continue

            ticket_number = int(raw)
            existing = pool.get(ticket_number)
            if existing is not None:
                logger.warning(
                    "Duplicate ticket number, keeping lowest order id",
                    extra={
                        "fundraiser_id": fundraiser_id,
                        "ticket_number": ticket_number,
                        "kept_order_id": existing.order_id,
                        "dropped_order_id": row.order_id,
                    },
                )
                continue

            pool[ticket_number] = PoolTicket(
                ticket_number=ticket_number,
                supporter_id=row.supporter_id,
                first_name=row.first_name,
                last_name=row.last_name,
                email=row.email,
                order_id=row.order_id,
            )

    return [pool[number] for number in sorted(pool)]


async def svc_resolve_ticket_pool(db: AsyncSession, fundraiser_id: int) -> List[PoolTicket]:
    """
    Пул билетов сбора: читает оплаченные заказы и нормализует их в список
    PoolTicket (по возрастанию номера). Пустой список, если продаж нет.
    """
    rows = await DrawsCRUD(db).list_paid_order_rows(int(fundraiser_id))
    pool = build_ticket_pool(rows, fundraiser_id=int(fundraiser_id))
    logger.debug(
        "Ticket pool resolved",
        extra={"fundraiser_id": fundraiser_id, "orders": len(rows), "pool_size": len(pool)},
    )
    return pool


__all__ = ["PoolTicket", "build_ticket_pool", "svc_resolve_ticket_pool"]
