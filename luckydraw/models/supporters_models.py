# -*- coding: utf-8 -*-
# luckydraw/models/supporters_models.py
# =============================================================================
# Назначение кода:
#   SQLAlchemy-модель участника (supporter), покупателя билетов. Для выбора
#   победителя это непрозрачная личность: id, имя, фамилия, email.
#
# Запреты:
#   • Персональные данные не логируем (в логах только supporter_id).
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import TIMESTAMP, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database_core import SCHEMA, Base


class Supporter(Base):
    """Участник сбора (покупатель билетов)."""
    __tablename__ = "supporters"
    __table_args__ = (
        Index("ix_supporter_email", "email"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    first_name: Mapped[str] = mapped_column(String(256), nullable=False)
    last_name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)

    # Контакты для вручения приза
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    street: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Supporter id={self.id}>"


__all__ = ["Supporter"]
