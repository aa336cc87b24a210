"""Fusion Engine — end-to-end attempts against the store.

Invariants:
    - Success removes both entries, records the attempt and issues the earned reward
    - Failure records the attempt and keeps both entries
    - Self-fusion and identical pieces write nothing
    - Any error inside the attempt rolls everything back
    - Concurrent attempts sharing an entry consume it at most once
"""

import asyncio

import pytest
from sqlalchemy import func, select
from uuid import uuid4

from kinstone.core.errors import (
    ConflictError, ImmutableRecordError, InvalidInputError, LockTimeoutError,
)
from kinstone.db.base import Base
from kinstone.db.session import create_session_factory
from kinstone.infrastructure.database import unit_of_work
from kinstone.infrastructure.entry_locks import entry_locks
from kinstone.models.fusion import FusionRecord
from kinstone.models.inventory import Inventory, InventoryEntry
from kinstone.models.reward import Reward
from kinstone.services.catalog import CatalogService
from kinstone.services.concurrency_control import ConcurrencyControl
from kinstone.services.fusion_engine import FusionEngine
from kinstone.services.inventory_ledger import InventoryLedger
from kinstone.services.reward_issuer import RewardIssuer


async def _count(factory, model, **filters):
    async with factory() as db:
        query = select(func.count()).select_from(model)
        for column, value in filters.items():
            query = query.where(getattr(model, column) == value)
        return await db.scalar(query)


async def _usage(factory, user_id):
    async with factory() as db:
        return await db.scalar(
            select(Inventory.current_usage).where(Inventory.user_id == user_id)
        )


@pytest.fixture
def fuse(test_session_factory):
    async def _fuse(user_id, entry_id_1, entry_id_2, **engine_kwargs):
        async with test_session_factory() as db:
            return await FusionEngine(db, **engine_kwargs).attempt_fusion(
                user_id, entry_id_1, entry_id_2,
            )
    return _fuse


async def test_common_pair_succeeds_without_reward(
    test_session_factory, make_user, make_piece, grant, fuse,
):
    user_id = await make_user()
    a = await grant(user_id, await make_piece("star", "A"))
    b = await grant(user_id, await make_piece("star", "B"))

    attempt = await fuse(user_id, a, b)

    assert attempt.record.is_success is True
    assert attempt.record.score_value == 20
    assert attempt.reward is None
    assert attempt.consumed_entry_ids == [a, b]
    assert await _count(test_session_factory, InventoryEntry, owner_id=user_id) == 0
    assert await _usage(test_session_factory, user_id) == 0
    assert await _count(test_session_factory, Reward) == 0


async def test_legendary_pair_issues_pending_coins(
    test_session_factory, make_user, make_piece, grant, fuse,
):
    user_id = await make_user()
    a = await grant(user_id, await make_piece("moon", "A", "legendary"))
    b = await grant(user_id, await make_piece("moon", "B", "legendary"))

    attempt = await fuse(user_id, a, b)

    assert attempt.record.score_value == 500
    assert attempt.reward is not None
    assert attempt.reward.status == "pending"
    assert attempt.reward.reward_type == "coins"
    assert attempt.reward.reward_value["value"] == 1000
    assert attempt.reward.fusion_id == attempt.record.id
    assert await _count(test_session_factory, Reward, user_id=user_id) == 1


async def test_mismatched_shapes_fail_and_keep_entries(
    test_session_factory, make_user, make_piece, grant, fuse,
):
    user_id = await make_user()
    a = await grant(user_id, await make_piece("star", "A"))
    b = await grant(user_id, await make_piece("heart", "A", "uncommon"))

    attempt = await fuse(user_id, a, b)

    assert attempt.record.is_success is False
    assert attempt.record.score_value == 0
    assert attempt.consumed_entry_ids == []
    assert await _count(test_session_factory, FusionRecord, user_id=user_id) == 1
    assert await _count(test_session_factory, InventoryEntry, owner_id=user_id) == 2
    assert await _usage(test_session_factory, user_id) == 2


async def test_snapshots_keep_caller_order(make_user, make_piece, grant, fuse):
    user_id = await make_user()
    a = await grant(user_id, await make_piece("star", "A", "rare"))
    b = await grant(user_id, await make_piece("star", "B"))

    attempt = await fuse(user_id, b, a)

    assert attempt.input_piece_1.entry_id == b
    assert attempt.input_piece_1.half == "B"
    assert attempt.input_piece_2.rarity == "rare"
    assert attempt.record.input_entry_1_id == b


async def test_self_fusion_rejected_without_writes(
    test_session_factory, make_user, make_piece, grant, fuse,
):
    user_id = await make_user()
    a = await grant(user_id, await make_piece("star", "A"))

    with pytest.raises(InvalidInputError, match="with itself"):
        await fuse(user_id, a, a)

    assert await _count(test_session_factory, FusionRecord) == 0
    assert await _usage(test_session_factory, user_id) == 1


async def test_identical_pieces_rejected(
    test_session_factory, make_user, make_piece, grant, fuse,
):
    user_id = await make_user()
    piece_id = await make_piece("star", "A")
    a = await grant(user_id, piece_id)
    b = await grant(user_id, piece_id)

    with pytest.raises(InvalidInputError, match="identical pieces"):
        await fuse(user_id, a, b)

    assert await _count(test_session_factory, FusionRecord) == 0
    assert await _count(test_session_factory, InventoryEntry, owner_id=user_id) == 2


async def test_missing_or_foreign_entry_conflicts(make_user, make_piece, grant, fuse):
    owner = await make_user()
    thief = await make_user()
    a = await grant(owner, await make_piece("star", "A"))
    b = await grant(owner, await make_piece("star", "B"))

    with pytest.raises(ConflictError, match="not owned by user"):
        await fuse(thief, a, b)
    with pytest.raises(ConflictError):
        await fuse(owner, a, uuid4())


async def test_locked_entry_cannot_be_fused(
    test_session_factory, make_user, make_piece, grant, fuse,
):
    user_id = await make_user()
    a = await grant(user_id, await make_piece("star", "A"))
    b = await grant(user_id, await make_piece("star", "B"))
    async with test_session_factory() as db:
        async with unit_of_work(db):
            await InventoryLedger(db).set_lock_status(user_id, [b], True)

    with pytest.raises(ConflictError, match="are locked"):
        await fuse(user_id, a, b)


async def test_failure_after_writes_rolls_back_everything(
    test_session_factory, make_user, make_piece, grant, fuse, monkeypatch,
):
    user_id = await make_user()
    a = await grant(user_id, await make_piece("moon", "A", "epic"))
    b = await grant(user_id, await make_piece("moon", "B"))

    async def _broken_issue(self, fusion, payload):
        raise RuntimeError("reward store unavailable")

    monkeypatch.setattr(RewardIssuer, "issue", _broken_issue)

    with pytest.raises(RuntimeError):
        await fuse(user_id, a, b)

    assert await _count(test_session_factory, FusionRecord) == 0
    assert await _count(test_session_factory, InventoryEntry, owner_id=user_id) == 2
    assert await _usage(test_session_factory, user_id) == 2


async def test_lock_wait_is_bounded(make_user, make_piece, grant, fuse):
    user_id = await make_user()
    a = await grant(user_id, await make_piece("star", "A"))
    b = await grant(user_id, await make_piece("star", "B"))

    async with entry_locks.hold([a]):
        with pytest.raises(LockTimeoutError):
            await fuse(
                user_id, a, b,
                concurrency=ConcurrencyControl(lock_timeout_ms=20),
            )


async def test_fusion_records_are_immutable(
    test_session_factory, make_user, make_piece, grant, fuse,
):
    user_id = await make_user()
    a = await grant(user_id, await make_piece("star", "A"))
    b = await grant(user_id, await make_piece("star", "B"))
    attempt = await fuse(user_id, a, b)

    async with test_session_factory() as db:
        record = await FusionEngine(db).get(attempt.record.id, user_id)
        record.score_value = 9999
        with pytest.raises(ImmutableRecordError):
            await db.flush()
        await db.rollback()


async def test_history_and_stats(make_user, make_piece, grant, fuse, test_session_factory):
    user_id = await make_user()
    star_a = await make_piece("star", "A")
    star_b = await make_piece("star", "B", "epic")
    heart_a = await make_piece("heart", "A")

    await fuse(user_id, await grant(user_id, star_a), await grant(user_id, star_b))
    await fuse(user_id, await grant(user_id, star_a), await grant(user_id, heart_a))

    async with test_session_factory() as db:
        engine = FusionEngine(db)
        everything = await engine.history(user_id)
        wins = await engine.history(user_id, success_only=True)
        stats = await engine.stats(user_id)

    assert len(everything) == 2
    assert [r.score_value for r in wins] == [110]
    assert stats["total_attempts"] == 2
    assert stats["successful_fusions"] == 1
    assert stats["total_score"] == 110
    assert stats["success_rate"] == 0.5


async def test_concurrent_fusions_share_entry_once(tmp_path):
    """Two racing attempts on a shared entry: one wins, the other conflicts."""
    factory = create_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    engine = factory.kw["bind"]
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        async with factory() as db:
            catalog = CatalogService(db)
            user_id = (await catalog.create_user()).id
            star_a = (await catalog.create_piece("Star A", "star", "A")).id
            star_b = (await catalog.create_piece("Star B", "star", "B")).id
        async with factory() as db:
            async with unit_of_work(db):
                ledger = InventoryLedger(db)
                x = (await ledger.add_entry(user_id, star_a)).id
                y = (await ledger.add_entry(user_id, star_b)).id
                z = (await ledger.add_entry(user_id, star_b)).id

        async def attempt(first, second):
            async with factory() as db:
                return await FusionEngine(db).attempt_fusion(user_id, first, second)

        results = await asyncio.gather(
            attempt(x, y), attempt(x, z), return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, BaseException)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(successes) == 1
        assert len(conflicts) == 1
        assert await _count(factory, FusionRecord) == 1
        assert await _count(factory, InventoryEntry, owner_id=user_id) == 1
        assert await _usage(factory, user_id) == 1
        assert len(entry_locks) == 0
    finally:
        await engine.dispose()
