import json
import os
import sys
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.append(ROOT_DIR)
sys.path.append(os.path.join(ROOT_DIR, "app"))

from adapters.exceptions import DuplicateSessionError  # noqa: E402
from deposit_store import DepositStore  # noqa: E402
from models import Deposit, DepositStatus  # noqa: E402


async def count_deposits(sessionmaker) -> int:
    async with sessionmaker() as session:
        return await session.scalar(select(func.count()).select_from(Deposit))


@pytest.mark.asyncio
async def test_create_persists_pending_deposit(store, sessionmaker):
    deposit_id = await store.create(
        amount=Decimal("50.00"),
        session_id="cs_test_create",
        currency="gbp",
        product_name="Test Product",
    )

    async with sessionmaker() as session:
        deposit = await session.get(Deposit, deposit_id)

    assert deposit.session_id == "cs_test_create"
    assert deposit.amount == Decimal("50.00")
    assert deposit.status == DepositStatus.PENDING.value
    assert deposit.completed_at is None


@pytest.mark.asyncio
async def test_duplicate_session_id_is_rejected(store, sessionmaker):
    await store.create(Decimal("10.00"), "cs_dup", "gbp", "Test Product")

    with pytest.raises(DuplicateSessionError):
        await store.create(Decimal("20.00"), "cs_dup", "gbp", "Test Product")

    assert await count_deposits(sessionmaker) == 1


@pytest.mark.asyncio
async def test_find_by_session_id(store):
    deposit_id = await store.create(Decimal("12.34"), "cs_find", "gbp", "Test Product")

    found = await store.find_by_session_id("cs_find")
    missing = await store.find_by_session_id("cs_unknown")

    assert found.id == deposit_id
    assert missing is None


@pytest.mark.asyncio
async def test_mark_completed_is_idempotent(store):
    deposit_id = await store.create(Decimal("50.00"), "cs_complete", "gbp", "Test Product")

    assert await store.mark_completed(deposit_id) is True
    first = await store.find_by_session_id("cs_complete")

    assert await store.mark_completed(deposit_id) is False
    second = await store.find_by_session_id("cs_complete")

    assert first.status == DepositStatus.COMPLETED.value
    assert second.status == DepositStatus.COMPLETED.value
    assert second.completed_at == first.completed_at


@pytest.mark.asyncio
async def test_mark_completed_unknown_id_is_noop(store, sessionmaker):
    assert await store.mark_completed(9999) is False
    assert await count_deposits(sessionmaker) == 0


class DictRedis:
    """Minimal in-memory stand-in for the redis.asyncio get/setex calls."""

    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value
        return True


@pytest.mark.asyncio
async def test_get_status_does_not_cache_pending(sessionmaker, mock_redis):
    store = DepositStore(sessionmaker, mock_redis)
    await store.create(Decimal("50.00"), "cs_pending", "gbp", "Test Product")

    status = await store.get_status("cs_pending")

    assert status["session_id"] == "cs_pending"
    assert status["status"] == "Pending"
    assert Decimal(status["amount"]) == Decimal("50.00")
    mock_redis.get.assert_awaited_once_with(store._cache_key("cs_pending"))
    mock_redis.setex.assert_not_called()


@pytest.mark.asyncio
async def test_get_status_reads_completed_through_cache(sessionmaker):
    redis = DictRedis()
    store = DepositStore(sessionmaker, redis)
    deposit_id = await store.create(Decimal("50.00"), "cs_cached", "gbp", "Test Product")
    await store.mark_completed(deposit_id)
    redis.data.clear()

    status = await store.get_status("cs_cached")

    assert status["status"] == "Completed"
    assert json.loads(redis.data["deposit:cs_cached"]) == status

    store.find_by_session_id = AsyncMock()
    cached = await store.get_status("cs_cached")

    assert cached == status
    store.find_by_session_id.assert_not_called()


@pytest.mark.asyncio
async def test_completion_during_status_read_is_not_overwritten(sessionmaker):
    redis = DictRedis()
    store = DepositStore(sessionmaker, redis)
    deposit_id = await store.create(Decimal("50.00"), "cs_racing", "gbp", "Test Product")
    read_deposit = store.find_by_session_id

    async def read_then_complete(session_id):
        deposit = await read_deposit(session_id)
        # webhook commits after the status read but before the cache write
        await store.mark_completed(deposit_id)
        return deposit

    store.find_by_session_id = read_then_complete
    stale = await store.get_status("cs_racing")
    store.find_by_session_id = read_deposit

    assert stale["status"] == "Pending"
    current = await store.get_status("cs_racing")
    assert current["status"] == "Completed"
    assert json.loads(redis.data["deposit:cs_racing"])["status"] == "Completed"


@pytest.mark.asyncio
async def test_mark_completed_refreshes_cache(sessionmaker, mock_redis):
    store = DepositStore(sessionmaker, mock_redis)
    deposit_id = await store.create(Decimal("50.00"), "cs_refresh", "gbp", "Test Product")

    await store.mark_completed(deposit_id)

    mock_redis.setex.assert_awaited_once()
    cached_payload = json.loads(mock_redis.setex.await_args.args[2])
    assert cached_payload["status"] == "Completed"
    assert cached_payload["completed_at"] is not None


@pytest.mark.asyncio
async def test_get_status_unknown_session(store):
    assert await store.get_status("cs_nope") is None
