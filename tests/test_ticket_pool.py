# -*- coding: utf-8 -*-
# tests/test_ticket_pool.py
from __future__ import annotations

import logging

from luckydraw.crud.draws_crud import PaidOrderRow
from luckydraw.services.ticket_pool_service import build_ticket_pool, svc_resolve_ticket_pool


async def test_pool_is_flattened_and_sorted_by_ticket(db, seed):
    fid = await seed.fundraiser()
    s1 = await seed.supporter("Ada", "Lovelace")
    s2 = await seed.supporter("Alan", "Turing")
    await seed.order(fid, s2, [9, 4])
    await seed.order(fid, s1, [2, 7, 1])

    pool = await svc_resolve_ticket_pool(db, fid)

    assert [t.ticket_number for t in pool] == [1, 2, 4, 7, 9]
    owners = {t.ticket_number: t.supporter_id for t in pool}
    assert owners == {1: s1, 2: s1, 7: s1, 4: s2, 9: s2}
    ada = next(t for t in pool if t.ticket_number == 1)
    assert (ada.first_name, ada.last_name, ada.email) == ("Ada", "Lovelace", "ada.lovelace@example.org")


async def test_only_succeeded_orders_contribute(db, seed):
    fid = await seed.fundraiser()
    s1 = await seed.supporter("Ada", "Lovelace")
    await seed.order(fid, s1, [1, 2])
    await seed.order(fid, s1, [3], status="requires_payment_method")
    await seed.order(fid, s1, [4], status="canceled")

    pool = await svc_resolve_ticket_pool(db, fid)

    assert [t.ticket_number for t in pool] == [1, 2]


async def test_other_fundraisers_are_ignored(db, seed):
    fid = await seed.fundraiser("A")
    other = await seed.fundraiser("B")
    s1 = await seed.supporter("Ada", "Lovelace")
    await seed.order(fid, s1, [1])
    await seed.order(other, s1, [2, 3])

    pool = await svc_resolve_ticket_pool(db, fid)

    assert [t.ticket_number for t in pool] == [1]


async def test_no_orders_gives_empty_pool(db, seed):
    fid = await seed.fundraiser()

    assert await svc_resolve_ticket_pool(db, fid) == []


async def test_duplicate_ticket_kept_by_lowest_order_and_logged(db, seed, caplog):
    fid = await seed.fundraiser()
    s1 = await seed.supporter("Ada", "Lovelace")
    s2 = await seed.supporter("Alan", "Turing")
    first = await seed.order(fid, s1, [1, 2])
    second = await seed.order(fid, s2, [2, 3])

    with caplog.at_level(logging.WARNING, logger="luckydraw.services.ticket_pool_service"):
        pool = await svc_resolve_ticket_pool(db, fid)

    assert [t.ticket_number for t in pool] == [1, 2, 3]
    two = next(t for t in pool if t.ticket_number == 2)
    assert two.supporter_id == s1
    assert two.order_id == first

    dup = [r for r in caplog.records if "Duplicate ticket" in r.getMessage()]
    assert len(dup) == 1
    assert dup[0].kept_order_id == first
    assert dup[0].dropped_order_id == second


def test_invalid_ticket_values_are_skipped(caplog):
    rows = [
        PaidOrderRow(order_id=1, ticket_numbers=[0, -3, 5, "7", True, 2], supporter_id=10,
                     first_name="Ada", last_name="Lovelace", email="ada@example.org"),
    ]

    with caplog.at_level(logging.WARNING, logger="luckydraw.services.ticket_pool_service"):
        pool = build_ticket_pool(rows, fundraiser_id=1)

    assert [t.ticket_number for t in pool] == [2, 5]
    skipped = [r for r in caplog.records if "invalid ticket" in r.getMessage()]
    assert len(skipped) == 4


def test_rows_out_of_order_still_prefer_lowest_order_id():
    rows = [
        PaidOrderRow(order_id=8, ticket_numbers=[3], supporter_id=2,
                     first_name="Alan", last_name="Turing", email="alan@example.org"),
        PaidOrderRow(order_id=5, ticket_numbers=[3], supporter_id=1,
                     first_name="Ada", last_name="Lovelace", email="ada@example.org"),
    ]

    pool = build_ticket_pool(rows, fundraiser_id=1)

    assert len(pool) == 1
    assert pool[0].supporter_id == 1
    assert pool[0].order_id == 5
