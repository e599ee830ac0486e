# -*- coding: utf-8 -*-
# tests/test_draw_edits.py
from __future__ import annotations

from datetime import timedelta

import pytest

from luckydraw.core.errors_core import DrawAlreadyDecidedError, DrawNotFoundError, ValidationError
from luckydraw.models import Draw
from luckydraw.services.draws_service import (
    svc_delete_draw,
    svc_select_winner,
    svc_update_draw,
)
from tests.conftest import TODAY, SequenceRandom


async def _load_draw(session_factory, draw_id: int):
    async with session_factory() as session:
        return await session.get(Draw, draw_id)


# -----------------------------------------------------------------------------
# Правка
# -----------------------------------------------------------------------------
async def test_update_pending_draw(db, seed, session_factory):
    fid = await seed.fundraiser()
    did = await seed.draw(fid, prize="Bike")
    new_date = TODAY + timedelta(days=10)

    draw = await svc_update_draw(db, did, draw_date=new_date, prize="  Tandem ", today=TODAY)

    assert draw.draw_date == new_date
    assert draw.prize == "Tandem"
    stored = await _load_draw(session_factory, did)
    assert (stored.draw_date, stored.prize) == (new_date, "Tandem")
    assert stored.supporter_id is None


async def test_update_only_prize_keeps_date(db, seed, session_factory):
    fid = await seed.fundraiser()
    did = await seed.draw(fid, draw_date=TODAY - timedelta(days=2), prize="Bike")

    await svc_update_draw(db, did, prize="Kayak", today=TODAY)

    stored = await _load_draw(session_factory, did)
    assert stored.prize == "Kayak"
    assert stored.draw_date == TODAY - timedelta(days=2)


@pytest.mark.parametrize(
    "changes",
    [
        {},
        {"prize": "   "},
        {"draw_date": TODAY - timedelta(days=1)},
    ],
)
async def test_update_rejects_invalid_changes(db, seed, session_factory, changes):
    fid = await seed.fundraiser()
    did = await seed.draw(fid, prize="Bike")

    with pytest.raises(ValidationError):
        await svc_update_draw(db, did, today=TODAY, **changes)

    stored = await _load_draw(session_factory, did)
    assert (stored.draw_date, stored.prize) == (TODAY, "Bike")


async def test_decided_draw_cannot_be_updated(db, seed, session_factory):
    data = await seed.three_order_fundraiser()
    winner = await svc_select_winner(db, data["draw_id"], rng=SequenceRandom([0]), today=TODAY)

    with pytest.raises(DrawAlreadyDecidedError) as exc_info:
        await svc_update_draw(db, data["draw_id"], prize="Something else", today=TODAY)

    assert exc_info.value.supporter_id == winner.supporter_id
    stored = await _load_draw(session_factory, data["draw_id"])
    assert stored.prize == "Mountain bike"


async def test_update_missing_draw(db):
    with pytest.raises(DrawNotFoundError):
        await svc_update_draw(db, 2**40, prize="Kayak", today=TODAY)


# -----------------------------------------------------------------------------
# Удаление
# -----------------------------------------------------------------------------
async def test_delete_pending_draw(db, seed, session_factory):
    fid = await seed.fundraiser()
    did = await seed.draw(fid)

    await svc_delete_draw(db, did)

    assert await _load_draw(session_factory, did) is None


async def test_decided_draw_cannot_be_deleted(db, seed, session_factory):
    data = await seed.three_order_fundraiser()
    await svc_select_winner(db, data["draw_id"], rng=SequenceRandom([2]), today=TODAY)

    with pytest.raises(DrawAlreadyDecidedError):
        await svc_delete_draw(db, data["draw_id"])

    stored = await _load_draw(session_factory, data["draw_id"])
    assert stored is not None
    assert stored.winning_ticket_number == 3


async def test_delete_missing_draw(db):
    with pytest.raises(DrawNotFoundError):
        await svc_delete_draw(db, 999)
