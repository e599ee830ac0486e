# -*- coding: utf-8 -*-
# tests/test_select_winner.py
from __future__ import annotations

import asyncio
import logging
import random
from collections import Counter
from datetime import timedelta

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from luckydraw.core.database_core import is_transient_db_error
from luckydraw.core.errors_core import (
    DrawAlreadyDecidedError,
    DrawNotFoundError,
    DrawTooEarlyError,
    NoTicketsSoldError,
    TransientFailureError,
    ValidationError,
)
from luckydraw.crud.draws_crud import DrawsCRUD
from luckydraw.models import Draw, PendingEmail
from luckydraw.services import draws_service
from luckydraw.services.draws_service import (
    pick_uniform,
    svc_get_draw,
    svc_get_winner,
    svc_select_winner,
)
from luckydraw.services.ticket_pool_service import PoolTicket
from tests.conftest import TODAY, SequenceRandom


async def _load_draw(session_factory, draw_id: int) -> Draw:
    async with session_factory() as session:
        return await session.get(Draw, draw_id)


async def _outbox(session_factory) -> list:
    async with session_factory() as session:
        return await DrawsCRUD(session).list_pending_emails()


# -----------------------------------------------------------------------------
# Основной сценарий
# -----------------------------------------------------------------------------
async def test_three_order_scenario(db, seed, session_factory):
    data = await seed.three_order_fundraiser()
    _, s2, _ = data["supporters"]
    rng = SequenceRandom([3])

    result = await svc_select_winner(db, data["draw_id"], rng=rng, today=TODAY)

    # пул [1..6], индекс 3 → билет 4 (заказ B, участник S2)
    assert rng.calls == [6]
    assert result.ticket_number == 4
    assert result.supporter_id == s2
    assert (result.first_name, result.last_name) == ("Alan", "Turing")
    assert result.email == "alan.turing@example.org"

    draw = await _load_draw(session_factory, data["draw_id"])
    assert draw.supporter_id == s2
    assert draw.winning_ticket_number == 4
    assert draw.state == "decided"

    async with session_factory() as second:
        with pytest.raises(DrawAlreadyDecidedError) as exc_info:
            await svc_select_winner(second, data["draw_id"], rng=SequenceRandom([0]), today=TODAY)
    assert exc_info.value.supporter_id == s2
    assert exc_info.value.details["winner_path"] == f"/api/draws/{data['draw_id']}/winner"

    draw = await _load_draw(session_factory, data["draw_id"])
    assert draw.supporter_id == s2
    assert draw.winning_ticket_number == 4


async def test_default_random_source_picks_ticket_consistent_with_owner(db, seed):
    data = await seed.three_order_fundraiser()

    result = await svc_select_winner(db, data["draw_id"], today=TODAY)

    assert result.ticket_number in data["owners"]
    assert data["owners"][result.ticket_number] == result.supporter_id


async def test_winner_can_be_read_back(db, seed, session_factory):
    data = await seed.three_order_fundraiser()
    picked = await svc_select_winner(db, data["draw_id"], rng=SequenceRandom([5]), today=TODAY)

    async with session_factory() as session:
        seen = await svc_get_winner(session, data["draw_id"])

    assert seen == picked
    assert seen.ticket_number == 6


# -----------------------------------------------------------------------------
# Отказы
# -----------------------------------------------------------------------------
async def test_missing_draw_is_not_found(db):
    with pytest.raises(DrawNotFoundError) as exc_info:
        await svc_select_winner(db, 4040, today=TODAY)
    assert exc_info.value.code == "draw_not_found"
    assert exc_info.value.http_status == 404


@pytest.mark.parametrize("draw_id", [0, -3, 2**31, 2**64])
async def test_out_of_range_draw_id_is_not_found(db, draw_id):
    with pytest.raises(DrawNotFoundError):
        await svc_select_winner(db, draw_id, today=TODAY)


async def test_future_draw_is_too_early_and_stays_pending(db, seed, session_factory):
    data = await seed.three_order_fundraiser()
    fid = data["fundraiser_id"]
    future = await seed.draw(fid, draw_date=TODAY + timedelta(days=1))

    with pytest.raises(DrawTooEarlyError):
        await svc_select_winner(db, future, rng=SequenceRandom([0]), today=TODAY)

    draw = await _load_draw(session_factory, future)
    assert draw.supporter_id is None
    assert await _outbox(session_factory) == []


async def test_past_draw_date_is_allowed(db, seed):
    data = await seed.three_order_fundraiser()
    past = await seed.draw(data["fundraiser_id"], draw_date=TODAY - timedelta(days=30))

    result = await svc_select_winner(db, past, rng=SequenceRandom([0]), today=TODAY)

    assert result.ticket_number == 1


async def test_today_defaults_to_draw_timezone_date(db, seed):
    fid = await seed.fundraiser(tickets_sold=1)
    s1 = await seed.supporter("Ada", "Lovelace")
    await seed.order(fid, s1, [1])
    far_future = await seed.draw(fid, draw_date=TODAY.replace(year=2999))
    long_ago = await seed.draw(fid, draw_date=TODAY.replace(year=2000))

    with pytest.raises(DrawTooEarlyError):
        await svc_select_winner(db, far_future)
    result = await svc_select_winner(db, long_ago)

    assert result.supporter_id == s1


async def test_empty_pool_rejected_and_draw_stays_pending(db, seed, session_factory):
    fid = await seed.fundraiser()
    s1 = await seed.supporter("Ada", "Lovelace")
    await seed.order(fid, s1, [1, 2], status="processing")
    did = await seed.draw(fid)

    with pytest.raises(NoTicketsSoldError) as exc_info:
        await svc_select_winner(db, did, today=TODAY)

    assert exc_info.value.fundraiser_id == fid
    draw = await _load_draw(session_factory, did)
    assert draw.supporter_id is None
    assert await _outbox(session_factory) == []


async def test_bad_random_source_rolls_back(db, seed, session_factory):
    data = await seed.three_order_fundraiser()

    with pytest.raises(ValueError):
        await svc_select_winner(db, data["draw_id"], rng=SequenceRandom([6]), today=TODAY)

    draw = await _load_draw(session_factory, data["draw_id"])
    assert draw.supporter_id is None


# -----------------------------------------------------------------------------
# Outbox
# -----------------------------------------------------------------------------
async def test_winner_email_is_queued_in_outbox(db, seed, session_factory):
    data = await seed.three_order_fundraiser()

    await svc_select_winner(db, data["draw_id"], rng=SequenceRandom([0]), today=TODAY)

    rows = await _outbox(session_factory)
    assert len(rows) == 1
    assert isinstance(rows[0], PendingEmail)
    assert rows[0].status == "pending"
    assert rows[0].email_data == {
        "type": "draw_winner",
        "supporter_email": "ada.lovelace@example.org",
        "supporter_name": "Ada Lovelace",
        "fundraiser_title": "Spring Raffle",
        "prize": "Mountain bike",
        "draw_id": data["draw_id"],
        "ticket_number": 1,
    }


async def test_outbox_can_be_disabled(db, seed, session_factory, monkeypatch):
    monkeypatch.setattr(draws_service.settings, "WINNER_EMAIL_OUTBOX_ENABLED", False)
    data = await seed.three_order_fundraiser()

    await svc_select_winner(db, data["draw_id"], rng=SequenceRandom([0]), today=TODAY)

    assert await _outbox(session_factory) == []


async def test_tickets_sold_mismatch_is_logged(db, seed, caplog):
    fid = await seed.fundraiser(tickets_sold=10)
    s1 = await seed.supporter("Ada", "Lovelace")
    await seed.order(fid, s1, [1, 2])
    did = await seed.draw(fid)

    with caplog.at_level(logging.WARNING, logger="luckydraw.services.draws_service"):
        await svc_select_winner(db, did, rng=SequenceRandom([1]), today=TODAY)

    mismatch = [r for r in caplog.records if "tickets_sold differs" in r.getMessage()]
    assert len(mismatch) == 1
    assert mismatch[0].tickets_sold == 10
    assert mismatch[0].pool_size == 2


# -----------------------------------------------------------------------------
# Конкурентность
# -----------------------------------------------------------------------------
async def test_concurrent_selection_yields_single_winner(seed, session_factory):
    data = await seed.three_order_fundraiser()

    async def attempt(index: int):
        async with session_factory() as session:
            return await svc_select_winner(
                session, data["draw_id"], rng=SequenceRandom([index]), today=TODAY
            )

    outcomes = await asyncio.gather(attempt(0), attempt(5), return_exceptions=True)

    winners = [o for o in outcomes if not isinstance(o, BaseException)]
    rejected = [o for o in outcomes if isinstance(o, DrawAlreadyDecidedError)]
    assert len(winners) == 1
    assert len(rejected) == 1
    assert rejected[0].supporter_id == winners[0].supporter_id

    draw = await _load_draw(session_factory, data["draw_id"])
    assert draw.supporter_id == winners[0].supporter_id
    assert draw.winning_ticket_number == winners[0].ticket_number
    assert len(await _outbox(session_factory)) == 1


async def test_different_draws_are_independent(seed, session_factory):
    data = await seed.three_order_fundraiser()
    other = await seed.draw(data["fundraiser_id"], prize="Tent")

    async def attempt(draw_id: int):
        async with session_factory() as session:
            return await svc_select_winner(session, draw_id, rng=SequenceRandom([2]), today=TODAY)

    first, second = await asyncio.gather(attempt(data["draw_id"]), attempt(other))

    assert first.ticket_number == second.ticket_number == 3


# -----------------------------------------------------------------------------
# Временные сбои
# -----------------------------------------------------------------------------
async def test_lock_failure_maps_to_transient(db, seed, session_factory, monkeypatch):
    data = await seed.three_order_fundraiser()

    async def locked(self, draw_id):
        raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("database is locked"))

    monkeypatch.setattr(DrawsCRUD, "lock_draw", locked)

    with pytest.raises(TransientFailureError) as exc_info:
        await svc_select_winner(db, data["draw_id"], today=TODAY)

    assert exc_info.value.http_status == 503
    assert isinstance(exc_info.value.__cause__, OperationalError)
    draw = await _load_draw(session_factory, data["draw_id"])
    assert draw.supporter_id is None


async def test_non_transient_db_error_propagates(db, seed, monkeypatch):
    data = await seed.three_order_fundraiser()

    async def broken(self, email_data):
        raise IntegrityError("INSERT INTO pending_emails", {}, Exception("constraint failed"))

    monkeypatch.setattr(DrawsCRUD, "add_pending_email", broken)

    with pytest.raises(IntegrityError):
        await svc_select_winner(db, data["draw_id"], rng=SequenceRandom([0]), today=TODAY)


class _PgError(Exception):
    def __init__(self, sqlstate: str) -> None:
        super().__init__(sqlstate)
        self.sqlstate = sqlstate


@pytest.mark.parametrize(
    ("sqlstate", "expected"),
    [("55P03", True), ("40001", True), ("40P01", True), ("57014", True), ("23505", False)],
)
def test_transient_classification_by_sqlstate(sqlstate, expected):
    exc = DBAPIError("UPDATE draws", {}, _PgError(sqlstate))

    assert is_transient_db_error(exc) is expected


def test_timeouts_are_transient():
    assert is_transient_db_error(asyncio.TimeoutError())
    assert not is_transient_db_error(ValueError("nope"))


# -----------------------------------------------------------------------------
# Равномерность выбора
# -----------------------------------------------------------------------------
def _pool(n: int) -> list:
    return [
        PoolTicket(ticket_number=i + 1, supporter_id=100 + i, first_name="F", last_name="L",
                   email=f"s{i}@example.org", order_id=i + 1)
        for i in range(n)
    ]


def test_pick_uniform_frequencies_approach_one_over_n():
    pool = _pool(5)
    rng = random.Random(20261019)
    trials = 50_000

    counts = Counter(pick_uniform(pool, rng).ticket_number for _ in range(trials))

    assert set(counts) == {1, 2, 3, 4, 5}
    for ticket in counts:
        assert abs(counts[ticket] / trials - 0.2) < 0.01


def test_pick_uniform_weights_supporters_by_ticket_count():
    # участник 1 держит 3 билета из 4
    pool = [
        PoolTicket(ticket_number=n, supporter_id=1 if n < 4 else 2, first_name="F", last_name="L",
                   email="x@example.org", order_id=1)
        for n in (1, 2, 3, 4)
    ]
    rng = random.Random(7)
    trials = 40_000

    counts = Counter(pick_uniform(pool, rng).supporter_id for _ in range(trials))

    assert abs(counts[1] / trials - 0.75) < 0.01


def test_pick_uniform_rejects_empty_pool():
    with pytest.raises(ValueError):
        pick_uniform([], random.Random(1))


# -----------------------------------------------------------------------------
# Сессия вызывающего
# -----------------------------------------------------------------------------
async def test_selection_after_read_on_same_session(db, seed):
    data = await seed.three_order_fundraiser()
    draw = await svc_get_draw(db, data["draw_id"])
    assert db.in_transaction()

    result = await svc_select_winner(db, data["draw_id"], rng=SequenceRandom([5]), today=TODAY)

    assert result.ticket_number == 6
    assert draw.supporter_id == result.supporter_id
    assert not db.in_transaction()


async def test_selection_refuses_session_with_pending_changes(db, seed, session_factory):
    data = await seed.three_order_fundraiser()
    db.add(Draw(fundraiser_id=data["fundraiser_id"], draw_date=TODAY, prize="Stray"))

    with pytest.raises(ValidationError):
        await svc_select_winner(db, data["draw_id"], today=TODAY)

    db.expunge_all()
    draw = await _load_draw(session_factory, data["draw_id"])
    assert draw.supporter_id is None
