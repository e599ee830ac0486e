# -*- coding: utf-8 -*-
# luckydraw/routes/__init__.py
# =============================================================================
# Сборка всех роутеров API в один api_router (подключается в create_app
# под settings.API_PREFIX).
# =============================================================================
from __future__ import annotations

from fastapi import APIRouter

from .draws_routes import router as draws_router
from .fundraisers_routes import router as fundraisers_router

api_router = APIRouter()
api_router.include_router(draws_router)
api_router.include_router(fundraisers_router)

__all__ = ["api_router"]
