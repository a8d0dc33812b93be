from __future__ import annotations

import asyncio

import pytest

from ammpool.core.errors import IncompleteCallback
from ammpool.integration.aux_data import encode_auxiliary_data
from ammpool.integration.callbacks import BlockCallbackEntry, BlockCallbackRegistry, block_callback_for
from ammpool.state.transactions import PoolJoin


POOL = "0x" + "aa" * 20
OTHER_POOL = "0x" + "bb" * 20
OWNER = "0x" + "11" * 20


def _join(pool: str = POOL) -> PoolJoin:
    return PoolJoin(pool_address=pool, owner=OWNER, join_amounts=(1, 2), join_fees=(0, 0), auth_method=0)


def test_pending_callbacks_are_tracked_per_pool() -> None:
    registry = BlockCallbackRegistry()
    first = registry.add(POOL)
    second = registry.add("0x" + "BB" * 20)

    assert registry.pending(POOL) == [first]
    assert registry.pending(OTHER_POOL) == [second]
    assert registry.pending() == [first, second]


def test_listeners_see_new_callbacks() -> None:
    registry = BlockCallbackRegistry()
    seen = []
    registry.subscribe(seen.append)

    callback = registry.add(POOL)
    assert seen == [callback]


def test_seal_rejects_incomplete_callbacks_and_keeps_them() -> None:
    registry = BlockCallbackRegistry()
    callback = registry.add(POOL)
    registry.assign_tx_index(callback, 4)

    with pytest.raises(IncompleteCallback):
        registry.seal()
    assert registry.pending() == [callback]


def test_seal_orders_entries_by_block_index() -> None:
    registry = BlockCallbackRegistry()
    late = registry.add(POOL)
    early = registry.add(OTHER_POOL)
    late_tx, early_tx = _join(POOL), _join(OTHER_POOL)

    registry.attach(late, late_tx, encode_auxiliary_data(late_tx))
    registry.attach(early, early_tx, encode_auxiliary_data(early_tx))
    registry.assign_tx_index(late, 9)
    registry.assign_tx_index(early, 2)

    entries = registry.seal()
    assert entries == [
        BlockCallbackEntry(target=OTHER_POOL, tx_idx=2, auxiliary_data=encode_auxiliary_data(early_tx)),
        BlockCallbackEntry(target=POOL, tx_idx=9, auxiliary_data=encode_auxiliary_data(late_tx)),
    ]
    assert registry.pending() == []
    assert late.tx.tx_idx == 9


def test_attach_after_index_stamps_the_transaction() -> None:
    registry = BlockCallbackRegistry()
    callback = registry.add(POOL)
    registry.assign_tx_index(callback, 3)
    registry.attach(callback, _join(), b"\x01")

    assert callback.complete
    assert callback.tx.tx_idx == 3


def test_assign_tx_index_rejects_negative_index() -> None:
    registry = BlockCallbackRegistry()
    callback = registry.add(POOL)
    with pytest.raises(ValueError):
        registry.assign_tx_index(callback, -1)


def test_block_callback_for_known_index() -> None:
    join = PoolJoin(
        pool_address=POOL, owner=OWNER, join_amounts=(1, 2), join_fees=(0, 0), auth_method=0, tx_idx=11
    )
    callback = block_callback_for(join)

    assert callback.complete
    assert callback.target == POOL
    assert callback.tx_idx == 11
    assert callback.auxiliary_data == encode_auxiliary_data(join)


def test_sealing_waits_for_open_pool_transactions() -> None:
    registry = BlockCallbackRegistry()
    events = []

    async def pool_transaction():
        async with registry.transaction():
            events.append("started")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            events.append("finished")

    async def settle():
        await asyncio.sleep(0)
        async with registry.sealing():
            events.append("sealed")

    async def scenario():
        await asyncio.gather(pool_transaction(), settle())

    asyncio.run(scenario())
    assert events == ["started", "finished", "sealed"]
