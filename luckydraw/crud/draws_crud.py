# -*- coding: utf-8 -*-
# luckydraw/crud/draws_crud.py
# =============================================================================
# Назначение:
#   • CRUD-операции контура розыгрышей: блокировка строки розыгрыша, чтение
#     оплаченных заказов сбора вместе с владельцами, запись победителя,
#     создание, правка и удаление розыгрышей, outbox-записи.
#   • Id вне диапазона INTEGER-ключа считаются несуществующими (None / []),
#     до драйвера такой запрос не доходит.
#   • Выбор победителя (проверки, случайный выбор) делает сервис; CRUD лишь
#     читает/пишет строки.
#
# Канон/инварианты:
#   • lock_draw() берёт SELECT ... FOR UPDATE и перечитывает строку
#     (populate_existing), даже если она уже есть в identity map сессии.
#   • Заказы отдаются в порядке id ASC: при дубле номера билета выигрывает
#     заказ с меньшим id.
#   • Только заказы со статусом "succeeded".
#
# Запреты:
#   • CRUD не коммитит: транзакцией владеет сервис.
#   • Никакого API «назначить победителя» вне сервиса выбора.
# =============================================================================
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from luckydraw.core.database_core import id_in_range
from luckydraw.models import (
    ORDER_STATUS_SUCCEEDED,
    Draw,
    Fundraiser,
    Order,
    PendingEmail,
    Supporter,
)


class PaidOrderRow(NamedTuple):
    """Оплаченный заказ + данные владельца (одна строка выборки)."""

    order_id: int
    ticket_numbers: List[int]
    supporter_id: int
    first_name: str
    last_name: str
    email: str


class DrawsCRUD:
    """CRUD-обёртка для розыгрышей/заказов без логики выбора."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ---- Розыгрыши ----
    async def get_draw(self, draw_id: int) -> Draw | None:
        """Получить розыгрыш по id (без блокировки)."""

        if not id_in_range(draw_id):
            return None
        return await self.session.get(Draw, int(draw_id))

    async def lock_draw(self, draw_id: int) -> Draw | None:
        """Взять строку розыгрыша под эксклюзивную блокировку (FOR UPDATE)."""

        if not id_in_range(draw_id):
            return None
        stmt: Select[Any] = (
            select(Draw)
            .where(Draw.id == int(draw_id))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def list_draws(self, *, fundraiser_id: Optional[int] = None) -> list[Draw]:
        """Розыгрыши (опционально одного сбора) по дате и id."""

        stmt: Select[Any] = select(Draw).order_by(Draw.draw_date.asc(), Draw.id.asc())
        if fundraiser_id is not None:
            if not id_in_range(fundraiser_id):
                return []
            stmt = stmt.where(Draw.fundraiser_id == int(fundraiser_id))
        rows: Iterable[Draw] = await self.session.scalars(stmt)
        return list(rows)

    async def create_draw(self, *, fundraiser_id: int, draw_date: date, prize: str) -> Draw:
        """Создать розыгрыш в состоянии pending."""

        draw = Draw(
            fundraiser_id=int(fundraiser_id),
            draw_date=draw_date,
            prize=prize,
            supporter_id=None,
        )
        self.session.add(draw)
        await self.session.flush()
        await self.session.refresh(draw)
        return draw

    async def set_winner(
        self, draw: Draw, *, supporter_id: int, ticket_number: int, now: datetime
    ) -> Draw:
        """Записать победителя и выигравший номер в заблокированную строку розыгрыша."""

        draw.supporter_id = int(supporter_id)
        draw.winning_ticket_number = int(ticket_number)
        draw.updated_at = now
        await self.session.flush()
        return draw

    async def update_draw(
        self,
        draw: Draw,
        *,
        now: datetime,
        draw_date: Optional[date] = None,
        prize: Optional[str] = None,
    ) -> Draw:
        """Поменять дату/приз pending-розыгрыша (строка уже заблокирована)."""

        if draw_date is not None:
            draw.draw_date = draw_date
        if prize is not None:
            draw.prize = prize
        draw.updated_at = now
        await self.session.flush()
        return draw

    async def delete_draw(self, draw: Draw) -> None:
        await self.session.delete(draw)
        await self.session.flush()

    # ---- Сборы / участники ----
    async def get_fundraiser(self, fundraiser_id: int) -> Fundraiser | None:
        if not id_in_range(fundraiser_id):
            return None
        return await self.session.get(Fundraiser, int(fundraiser_id))

    async def get_supporter(self, supporter_id: int) -> Supporter | None:
        if not id_in_range(supporter_id):
            return None
        return await self.session.get(Supporter, int(supporter_id))

    # ---- Заказы (реестр билетов) ----
    async def list_paid_order_rows(self, fundraiser_id: int) -> list[PaidOrderRow]:
        """
        Оплаченные заказы сбора вместе с владельцем, order.id ASC.
        Чистое чтение (read committed), без блокировок.
        """

        if not id_in_range(fundraiser_id):
            return []
        stmt = (
            select(
                Order.id,
                Order.ticket_numbers,
                Supporter.id,
                Supporter.first_name,
                Supporter.last_name,
                Supporter.email,
            )
            .join(Supporter, Supporter.id == Order.supporter_id)
            .where(
                Order.fundraiser_id == int(fundraiser_id),
                Order.stripe_payment_status == ORDER_STATUS_SUCCEEDED,
            )
            .order_by(Order.id.asc())
        )
        result = await self.session.execute(stmt)
        return [
            PaidOrderRow(
                order_id=row[0],
                ticket_numbers=list(row[1] or []),
                supporter_id=row[2],
                first_name=row[3],
                last_name=row[4],
                email=row[5],
            )
            for row in result.all()
        ]

    # ---- Outbox ----
    async def add_pending_email(self, email_data: Dict[str, Any]) -> PendingEmail:
        """Добавить запись в outbox писем (status=pending)."""

        row = PendingEmail(email_data=dict(email_data), status="pending")
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_pending_emails(self) -> list[PendingEmail]:
        stmt: Select[Any] = (
            select(PendingEmail)
            .where(PendingEmail.status == "pending")
            .order_by(PendingEmail.id.asc())
        )
        rows: Iterable[PendingEmail] = await self.session.scalars(stmt)
        return list(rows)


__all__ = ["DrawsCRUD", "PaidOrderRow"]
