# -*- coding: utf-8 -*-
# luckydraw/models/__init__.py
# =============================================================================
# Назначение кода:
# Единая точка входа слоя моделей Lucky Draw. Импорт пакета регистрирует все
# таблицы в Base.metadata (нужно Alembic и тестовому create_all) и даёт
# реестр MODEL_REGISTRY для диагностики.
#
# Запреты:
#  • Не размещать в __init__ бизнес-операции, DDL/DML и «create_all()».
# =============================================================================

from __future__ import annotations

from typing import Dict, Type

from ..core.database_core import SCHEMA, Base
from .draws_models import DRAW_STATE_DECIDED, DRAW_STATE_PENDING, Draw
from .emails_models import EMAIL_TYPE_DRAW_WINNER, PendingEmail
from .fundraisers_models import Fundraiser
from .orders_models import ORDER_STATUS_SUCCEEDED, Order
from .supporters_models import Supporter

MODEL_REGISTRY: Dict[str, Type[Base]] = {
    cls.__name__: cls for cls in (Fundraiser, Supporter, Order, Draw, PendingEmail)
}


__all__ = [
    "Base",
    "SCHEMA",
    "MODEL_REGISTRY",
    "Fundraiser",
    "Supporter",
    "Order",
    "ORDER_STATUS_SUCCEEDED",
    "Draw",
    "DRAW_STATE_PENDING",
    "DRAW_STATE_DECIDED",
    "PendingEmail",
    "EMAIL_TYPE_DRAW_WINNER",
]
