# -*- coding: utf-8 -*-
# luckydraw/schemas/draws_schemas.py
# =============================================================================
# Назначение кода:
# Pydantic-схемы раздела «Розыгрыши»: победитель розыгрыша, карточка
# розыгрыша, создание розыгрыша организатором, пул билетов для аудита.
#
# Канон / инварианты:
# • Ответ «победитель» наружу в camelCase:
#   {supporterId, firstName, lastName, email, ticketNumber}.
# • Создание и правка розыгрыша не принимают победителя (лишние поля
#   запрещены).
#
# Запреты:
# • В схемах нет бизнес-логики, только форма данных.
# =============================================================================

from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Победитель
# -----------------------------------------------------------------------------
class WinnerOut(BaseModel):
    """Личность победителя и выигравший номер билета."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    supporter_id: int = Field(..., alias="supporterId", description="ID участника-победителя")
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    email: str = Field(..., alias="email")
    ticket_number: Optional[int] = Field(None, alias="ticketNumber", description="Выигравший номер билета")


# =============================================================================
# Розыгрыш
# -----------------------------------------------------------------------------
class DrawCreateIn(BaseModel):
    """Запрос организатора на создание розыгрыша (всегда pending)."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    fundraiser_id: int = Field(..., gt=0, alias="fundraiserId")
    draw_date: date = Field(..., alias="drawDate", description="Дата проведения (сегодня или позже)")
    prize: str = Field(..., min_length=1, max_length=255)

    @field_validator("prize")
    @classmethod
    def _strip_prize(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("prize must not be blank")
        return value


class DrawUpdateIn(BaseModel):
    """Правка pending-розыгрыша: дата и/или приз. Победителя не принимает."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    draw_date: Optional[date] = Field(None, alias="drawDate", description="Новая дата (сегодня или позже)")
    prize: Optional[str] = Field(None, min_length=1, max_length=255)

    @field_validator("prize")
    @classmethod
    def _strip_prize(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("prize must not be blank")
        return value


class DrawOut(BaseModel):
    """Карточка розыгрыша."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    fundraiser_id: int = Field(..., alias="fundraiserId")
    draw_date: date = Field(..., alias="drawDate")
    prize: str
    state: Literal["pending", "decided"]
    supporter_id: Optional[int] = Field(None, alias="supporterId")
    winning_ticket_number: Optional[int] = Field(None, alias="winningTicketNumber")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class DrawListOut(BaseModel):
    items: List[DrawOut] = Field(default_factory=list)
    etag: Optional[str] = Field(None, description="ETag снимка для кэширования")


# =============================================================================
# Пул билетов (аудит)
# -----------------------------------------------------------------------------
class PoolTicketOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    ticket_number: int = Field(..., alias="ticketNumber")
    supporter_id: int = Field(..., alias="supporterId")
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    email: str
    order_id: int = Field(..., alias="orderId")


class TicketPoolOut(BaseModel):
    fundraiser_id: int = Field(..., alias="fundraiserId")
    size: int = Field(..., ge=0)
    tickets: List[PoolTicketOut] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


__all__ = [
    "WinnerOut",
    "DrawCreateIn",
    "DrawUpdateIn",
    "DrawOut",
    "DrawListOut",
    "PoolTicketOut",
    "TicketPoolOut",
]
