from __future__ import annotations

import asyncio

from posh_notifier.database import queries
from posh_notifier.database.seen_store import SeenStore

URL = "https://poshmark.com/listing/DryVent-Jacket-abc123"


def test_add_then_has(tmp_path):
    async def scenario():
        store = SeenStore.from_path(str(tmp_path / "data" / "seen.db"))
        await store.ensure_schema()
        try:
            assert not await store.has(URL)
            await store.add(URL, "DryVent Jacket", "101")
            assert await store.has(URL)
            return await queries.get_seen(store.db, URL)
        finally:
            await store.close()

    row = asyncio.run(scenario())
    assert row["title"] == "DryVent Jacket"
    assert row["telegram_message_id"] == "101"
    assert row["notified_at"]


def test_schema_and_add_are_idempotent(tmp_path):
    async def scenario():
        store = SeenStore.from_path(str(tmp_path / "seen.db"))
        await store.ensure_schema()
        await store.ensure_schema()
        try:
            await store.add(URL, "first", "1")
            await store.add(URL, "second", "2")
            return await store.count(), await queries.get_seen(store.db, URL)
        finally:
            await store.close()

    count, row = asyncio.run(scenario())
    assert count == 1
    assert row["telegram_message_id"] == "1"


def test_ledger_survives_reopen(tmp_path):
    path = str(tmp_path / "seen.db")

    async def write():
        async with SeenStore.from_path(path) as store:
            await store.add(URL)

    async def read():
        async with SeenStore.from_path(path) as store:
            return await store.has(URL), await store.has(URL + "-other")

    asyncio.run(write())
    assert asyncio.run(read()) == (True, False)
