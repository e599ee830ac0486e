# -*- coding: utf-8 -*-
# luckydraw/schemas/__init__.py
# Pydantic-схемы API (только форма данных, без бизнес-логики).
from .draws_schemas import (
    DrawCreateIn,
    DrawListOut,
    DrawOut,
    PoolTicketOut,
    TicketPoolOut,
    WinnerOut,
)

__all__ = [
    "WinnerOut",
    "DrawCreateIn",
    "DrawOut",
    "DrawListOut",
    "PoolTicketOut",
    "TicketPoolOut",
]
