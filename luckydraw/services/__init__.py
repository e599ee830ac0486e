# -*- coding: utf-8 -*-
# luckydraw/services/__init__.py
# Сервисный слой: бизнес-правила розыгрышей. Роуты вызывают только svc_* функции.
from .draws_service import (
    RandomSource,
    WinnerResult,
    pick_uniform,
    svc_create_draw,
    svc_get_draw,
    svc_get_winner,
    svc_list_draws,
    svc_select_winner,
)
from .ticket_pool_service import PoolTicket, svc_resolve_ticket_pool

__all__ = [
    "RandomSource",
    "WinnerResult",
    "PoolTicket",
    "pick_uniform",
    "svc_resolve_ticket_pool",
    "svc_select_winner",
    "svc_get_winner",
    "svc_get_draw",
    "svc_list_draws",
    "svc_create_draw",
]
