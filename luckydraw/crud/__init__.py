# -*- coding: utf-8 -*-
# luckydraw/crud/__init__.py
# Слой CRUD: тонкие обёртки над AsyncSession без бизнес-логики и без commit().
from .draws_crud import DrawsCRUD, PaidOrderRow

__all__ = ["DrawsCRUD", "PaidOrderRow"]
