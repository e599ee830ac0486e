# -*- coding: utf-8 -*-
# luckydraw/models/emails_models.py
# =============================================================================
# Назначение кода:
#   Outbox исходящих писем (pending_emails). Сервис розыгрыша кладёт сюда
#   запись «победитель выбран» в той же транзакции, что и победителя;
#   внешний диспетчер (at-least-once) забирает записи и шлёт письма.
#
# Канон/инварианты:
#   • status: pending → sent/failed меняет только диспетчер.
#   • email_data - JSON-документ, формат задаёт поле "type".
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, TIMESTAMP, CheckConstraint, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database_core import SCHEMA, Base

EMAIL_STATUS_ENUM = ("pending", "sent", "failed")
EMAIL_TYPE_DRAW_WINNER = "draw_winner"


class PendingEmail(Base):
    """Запись outbox: данные письма и статус отправки."""
    __tablename__ = "pending_emails"
    __table_args__ = (
        CheckConstraint(f"status IN {EMAIL_STATUS_ENUM}", name="pending_email_status_check"),
        Index("ix_pending_email_status", "status"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    email_data: Mapped[Dict[str, Any]] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="pending", server_default=text("'pending'")
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<PendingEmail id={self.id} type={self.email_data.get('type')} status={self.status}>"


__all__ = ["PendingEmail", "EMAIL_STATUS_ENUM", "EMAIL_TYPE_DRAW_WINNER"]
