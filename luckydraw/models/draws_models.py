# -*- coding: utf-8 -*-
# luckydraw/models/draws_models.py
# =============================================================================
# Назначение кода:
#   SQLAlchemy-модель розыгрыша (draw): приз сбора с датой проведения и
#   ссылкой на победителя.
#
# Канон/инварианты:
#   • Состояния: pending (supporter_id IS NULL) → decided (supporter_id задан).
#     Переход ровно один раз, decided терминально.
#   • Ставит победителя ТОЛЬКО сервис выбора (services/draws_service.py)
#     под блокировкой строки. Прямого API «назначить победителя» нет.
#
# Запреты:
#   • Никакой логики выбора в модели.
# =============================================================================

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import TIMESTAMP, Date, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database_core import SCHEMA, Base, qualified

DRAW_STATE_PENDING = "pending"
DRAW_STATE_DECIDED = "decided"


class Draw(Base):
    """
    Розыгрыш приза сбора. supporter_id - победитель (NULL, пока не выбран).
    """
    __tablename__ = "draws"
    __table_args__ = (
        Index("ix_draw_fundraiser", "fundraiser_id"),
        Index("ix_draw_date", "draw_date"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    draw_date: Mapped[date] = mapped_column(Date, nullable=False)
    prize: Mapped[str] = mapped_column(String(255), nullable=False)

    fundraiser_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey(qualified("fundraisers.id"), ondelete="CASCADE"),
        nullable=False,
    )
    supporter_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey(qualified("supporters.id")), nullable=True
    )
    # Выигравший номер (пишется вместе с supporter_id, для аудита и «посмотреть победителя»)
    winning_ticket_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    @property
    def is_decided(self) -> bool:
        return self.supporter_id is not None

    @property
    def state(self) -> str:
        return DRAW_STATE_DECIDED if self.is_decided else DRAW_STATE_PENDING

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Draw id={self.id} fundraiser={self.fundraiser_id} date={self.draw_date} state={self.state}>"


__all__ = ["Draw", "DRAW_STATE_PENDING", "DRAW_STATE_DECIDED"]
