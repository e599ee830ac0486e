# -*- coding: utf-8 -*-
# luckydraw/models/orders_models.py
# =============================================================================
# Назначение кода:
#   SQLAlchemy-модель заказа (order): покупка одного или нескольких
#   пронумерованных билетов сбора одним участником через платёжный контур.
#
# Канон/инварианты:
#   • В розыгрыше участвуют ТОЛЬКО заказы со статусом "succeeded".
#   • ticket_numbers: массив различных положительных целых. Уникальность
#     номера в пределах сбора обеспечивает выпуск билетов, а не БД.
#   • stripe_payment_intent_id уникален (идемпотентность вебхука оплаты).
#
# Запреты:
#   • Сервис розыгрыша заказы не создаёт и не меняет.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import List

from sqlalchemy import JSON, TIMESTAMP, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database_core import SCHEMA, Base, qualified

# Статус платежа, при котором билеты заказа попадают в пул
ORDER_STATUS_SUCCEEDED = "succeeded"

# INTEGER[] в PostgreSQL; в SQLite (тесты) хранится JSON-массивом
TicketNumbersType = ARRAY(Integer).with_variant(JSON(), "sqlite")


class Order(Base):
    """Заказ билетов сбора."""
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_order_fundraiser_status", "fundraiser_id", "stripe_payment_status"),
        Index("ix_order_supporter", "supporter_id"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    ticket_numbers: Mapped[List[int]] = mapped_column(TicketNumbersType, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    stripe_payment_intent_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    stripe_payment_status: Mapped[str] = mapped_column(String(50), nullable=False)

    fundraiser_id: Mapped[int] = mapped_column(
        Integer, ForeignKey(qualified("fundraisers.id")), nullable=False
    )
    supporter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey(qualified("supporters.id")), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Order id={self.id} fundraiser={self.fundraiser_id} "
            f"status={self.stripe_payment_status} tickets={len(self.ticket_numbers or [])}>"
        )


__all__ = ["Order", "ORDER_STATUS_SUCCEEDED"]
