# -*- coding: utf-8 -*-
# tests/conftest.py
# =============================================================================
# Общие фикстуры тестов: SQLite-файл на тест (aiosqlite), схема из моделей,
# фабрика сессий и помощник для наполнения данными.
#
# Переменные окружения ставим ДО импорта luckydraw: настройки и схема таблиц
# читаются один раз при импорте.
# =============================================================================
from __future__ import annotations

import itertools
import os
from datetime import date
from typing import AsyncIterator, Iterable, Optional

os.environ["ENV"] = "test"
os.environ["DB_SCHEMA"] = ""
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./.pytest-luckydraw.db"
os.environ["ADMIN_API_TOKEN"] = ""
os.environ["WINNER_EMAIL_OUTBOX_ENABLED"] = "true"
os.environ["DRAW_TIMEZONE"] = "UTC"
os.environ["LOG_JSON"] = "false"
os.environ["CORS_ORIGINS"] = ""

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402

from luckydraw.core.database_core import build_engine, build_session_factory  # noqa: E402
from luckydraw.models import Base, Draw, Fundraiser, Order, Supporter  # noqa: E402

TODAY = date(2026, 10, 19)


class SequenceRandom:
    """Детерминированный источник случайности: отдаёт заранее заданные индексы."""

    def __init__(self, indexes: Iterable[int]) -> None:
        self._indexes = iter(indexes)
        self.calls: list[int] = []

    def randrange(self, stop: int) -> int:
        self.calls.append(stop)
        return next(self._indexes)


class Seeder:
    """Наполнение тестовой БД: каждый вызов в своей закоммиченной транзакции."""

    _pi_counter = itertools.count(1)

    def __init__(self, factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = factory

    async def _add(self, obj):
        async with self._factory() as session:
            async with session.begin():
                session.add(obj)
                await session.flush()
                return obj.id

    async def fundraiser(self, title: str = "Spring Raffle", *, tickets_sold: int = 0) -> int:
        return await self._add(Fundraiser(title=title, tickets_sold=tickets_sold, fund_raised=0))

    async def supporter(self, first_name: str, last_name: str, email: Optional[str] = None) -> int:
        email = email or f"{first_name.lower()}.{last_name.lower()}@example.org"
        return await self._add(Supporter(first_name=first_name, last_name=last_name, email=email))

    async def order(
        self,
        fundraiser_id: int,
        supporter_id: int,
        tickets: list,
        *,
        status: str = "succeeded",
    ) -> int:
        return await self._add(
            Order(
                fundraiser_id=fundraiser_id,
                supporter_id=supporter_id,
                ticket_numbers=list(tickets),
                amount=5 * len(tickets),
                stripe_payment_intent_id=f"pi_test_{next(self._pi_counter)}",
                stripe_payment_status=status,
            )
        )

    async def draw(
        self,
        fundraiser_id: int,
        *,
        draw_date: date = TODAY,
        prize: str = "Mountain bike",
        supporter_id: Optional[int] = None,
    ) -> int:
        return await self._add(
            Draw(fundraiser_id=fundraiser_id, draw_date=draw_date, prize=prize, supporter_id=supporter_id)
        )

    async def three_order_fundraiser(self) -> dict:
        """Сбор F: A(S1: 1,2,3), B(S2: 4,5), C(S3: 6) и розыгрыш D на сегодня."""
        fid = await self.fundraiser(tickets_sold=6)
        s1 = await self.supporter("Ada", "Lovelace")
        s2 = await self.supporter("Alan", "Turing")
        s3 = await self.supporter("Grace", "Hopper")
        await self.order(fid, s1, [1, 2, 3])
        await self.order(fid, s2, [4, 5])
        await self.order(fid, s3, [6])
        did = await self.draw(fid)
        return {
            "fundraiser_id": fid,
            "draw_id": did,
            "owners": {1: s1, 2: s1, 3: s1, 4: s2, 5: s2, 6: s3},
            "supporters": (s1, s2, s3),
        }


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'luckydraw.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)
