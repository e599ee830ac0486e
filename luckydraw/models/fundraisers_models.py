# -*- coding: utf-8 -*-
# luckydraw/models/fundraisers_models.py
# =============================================================================
# Назначение кода:
#   SQLAlchemy-модель сбора средств (fundraiser). Розыгрыши привязаны к сбору,
#   пул билетов розыгрыша = все оплаченные билеты этого сбора.
#
# Канон/инварианты:
#   • tickets_sold и fund_raised - агрегаты, которые ведёт платёжный контур.
#     Выбор победителя их только читает (сверка с размером пула для логов).
#
# Запреты:
#   • Никакой бизнес-логики: модели только описывают структуру данных.
# =============================================================================

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import TIMESTAMP, CheckConstraint, Date, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database_core import SCHEMA, Base


class Fundraiser(Base):
    """
    Сбор средств: карточка кампании и агрегаты продаж билетов.
    """
    __tablename__ = "fundraisers"
    __table_args__ = (
        CheckConstraint("tickets_sold >= 0", name="fundraiser_tickets_sold_nonneg"),
        CheckConstraint("fund_raised >= 0", name="fundraiser_fund_raised_nonneg"),
        Index("ix_fundraiser_dates", "start_date", "end_date"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Агрегаты (ведёт платёжный контур)
    tickets_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    fund_raised: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Fundraiser id={self.id} title={self.title!r} sold={self.tickets_sold}>"


__all__ = ["Fundraiser"]
