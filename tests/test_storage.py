import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from billing_gateway.storage import MemoryStore
from billing_gateway.storage.postgres import PostgresStore, encode_fields


@pytest.mark.asyncio
async def test_upsert_merges_fields():
    store = MemoryStore()

    await store.upsert("subscriptions", "sub_1", {"status": "authenticated", "plan_id": "plan_monthly"})
    await store.upsert("subscriptions", "sub_1", {"status": "active"})

    assert await store.get("subscriptions", "sub_1") == {"status": "active", "plan_id": "plan_monthly"}


@pytest.mark.asyncio
async def test_upsert_is_repeatable():
    store = MemoryStore()
    fields = {"status": "paused"}

    await store.upsert("subscriptions", "sub_1", fields)
    await store.upsert("subscriptions", "sub_1", fields)

    assert store.count("subscriptions") == 1
    assert await store.get("subscriptions", "sub_1") == fields


@pytest.mark.asyncio
async def test_insert_once_only_inserts_first_time():
    store = MemoryStore()

    assert await store.insert_once("payments", "pay_1", {"amount": 49}) is True
    assert await store.insert_once("payments", "pay_1", {"amount": 99}) is False
    assert await store.get("payments", "pay_1") == {"amount": 49}


@pytest.mark.asyncio
async def test_event_ledger():
    store = MemoryStore()

    assert await store.has_processed("id:evt_1") is False
    await store.mark_processed("id:evt_1", "subscription.charged")
    assert await store.has_processed("id:evt_1") is True


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error():
    store = MemoryStore()
    await store.upsert("subscriptions", "sub_1", {"status": "active"})

    with pytest.raises(RuntimeError):
        async with store.transaction():
            await store.upsert("subscriptions", "sub_1", {"status": "halted"})
            await store.insert_once("payments", "pay_1", {"amount": 49})
            await store.mark_processed("id:evt_1", "subscription.halted")
            raise RuntimeError("fail midway")

    assert await store.get("subscriptions", "sub_1") == {"status": "active"}
    assert await store.get("payments", "pay_1") is None
    assert await store.has_processed("id:evt_1") is False


@pytest.mark.asyncio
async def test_transaction_commits_on_success():
    store = MemoryStore()

    async with store.transaction():
        await store.upsert("users", "cus_1", {"subscription_status": "active"})

    assert await store.get("users", "cus_1") == {"subscription_status": "active"}


@pytest.mark.asyncio
async def test_get_returns_copy():
    store = MemoryStore()
    await store.upsert("users", "cus_1", {"subscription_status": "active"})

    record = await store.get("users", "cus_1")
    record["subscription_status"] = "tampered"

    assert (await store.get("users", "cus_1"))["subscription_status"] == "active"


def test_encode_fields_serialises_datetimes_and_decimals():
    encoded = encode_fields({
        "paid_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "amount": Decimal("49.00"),
        "paused_at": None,
    })

    assert json.loads(encoded) == {"paid_at": "2024-01-01T00:00:00+00:00", "amount": 49.0, "paused_at": None}


def test_encode_fields_rejects_unknown_types():
    with pytest.raises(TypeError):
        encode_fields({"bad": object()})


def test_postgres_store_normalises_sqlalchemy_dsn():
    store = PostgresStore("postgresql+asyncpg://user:pw@db/billing")

    assert store._dsn == "postgresql://user:pw@db/billing"


@pytest.mark.asyncio
async def test_rollback_keeps_writes_made_by_other_tasks():
    store = MemoryStore()
    await store.upsert("subscriptions", "sub_1", {"status": "active"})
    go = asyncio.Event()

    async def record_payment():
        await go.wait()
        await store.insert_once("payments", "pay_other", {"amount": 10})

    writer = asyncio.create_task(record_payment())

    with pytest.raises(RuntimeError):
        async with store.transaction():
            await store.upsert("subscriptions", "sub_1", {"status": "halted"})
            go.set()
            await writer
            raise RuntimeError("fail midway")

    assert await store.get("subscriptions", "sub_1") == {"status": "active"}
    assert await store.get("payments", "pay_other") == {"amount": 10}


@pytest.mark.asyncio
async def test_transactions_are_serialised():
    store = MemoryStore()
    order = []

    async def work(name):
        async with store.transaction():
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(work("a"), work("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]
