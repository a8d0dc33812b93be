"""
Block callbacks: link an in-flight pool transaction to its position in a sealed block.

The processor registers a pending callback when it starts a transaction and
attaches the encoded auxiliary data when it finishes. The block-sealing
process assigns the transaction index and collects the finished entries.

Every pool settling against the same ledger shares one registry. Pool
transactions hold the block open while they run; sealing waits until no
transaction is open, so a block never carries a half-applied transaction.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import AsyncIterator, Callable, Dict, List, Optional

from ..core.errors import IncompleteCallback
from ..state.canonical import Address, normalize_address
from ..state.transactions import PoolTransaction
from .aux_data import encode_auxiliary_data


@dataclass
class BlockCallback:
    target: Address
    tx_idx: Optional[int] = None
    auxiliary_data: Optional[bytes] = None
    tx: Optional[PoolTransaction] = None

    @property
    def complete(self) -> bool:
        return self.tx_idx is not None and self.auxiliary_data is not None


@dataclass(frozen=True)
class BlockCallbackEntry:
    """What the sealed block carries for one pool transaction."""
    target: Address
    tx_idx: int
    auxiliary_data: bytes


def block_callback_for(tx: PoolTransaction) -> BlockCallback:
    """Build a callback directly from a transaction whose block index is already known."""
    return BlockCallback(
        target=tx.pool_address,
        tx_idx=tx.tx_idx,
        auxiliary_data=encode_auxiliary_data(tx),
        tx=tx,
    )


Listener = Callable[[BlockCallback], None]


class BlockCallbackRegistry:
    """
    Pending block callbacks keyed by pool address.

    A pool holds at most one in-flight transaction at a time, so at most one
    incomplete callback per target is expected while a transaction runs.
    """

    def __init__(self) -> None:
        self._pending: Dict[Address, List[BlockCallback]] = {}
        self._listeners: List[Listener] = []
        self._open_transactions = 0
        self._sealing = False
        self._gate = asyncio.Condition()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Hold the pending block open for one pool transaction."""
        async with self._gate:
            await self._gate.wait_for(lambda: not self._sealing)
            self._open_transactions += 1
        try:
            yield
        finally:
            async with self._gate:
                self._open_transactions -= 1
                self._gate.notify_all()

    @asynccontextmanager
    async def sealing(self) -> AsyncIterator[None]:
        """
        Exclusive access for settling the ledger.

        Waits until every open pool transaction has finished; new transactions
        wait until the block is sealed.
        """
        async with self._gate:
            await self._gate.wait_for(lambda: not self._sealing and self._open_transactions == 0)
            self._sealing = True
        try:
            yield
        finally:
            async with self._gate:
                self._sealing = False
                self._gate.notify_all()

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def add(self, target: Address) -> BlockCallback:
        callback = BlockCallback(target=normalize_address(target, name="target"))
        self._pending.setdefault(callback.target, []).append(callback)
        for listener in self._listeners:
            listener(callback)
        return callback

    def pending(self, target: Optional[Address] = None) -> List[BlockCallback]:
        if target is not None:
            return list(self._pending.get(normalize_address(target, name="target"), []))
        return [cb for callbacks in self._pending.values() for cb in callbacks]

    def assign_tx_index(self, callback: BlockCallback, tx_idx: int) -> None:
        if not isinstance(tx_idx, int) or isinstance(tx_idx, bool) or tx_idx < 0:
            raise ValueError(f"tx_idx must be a non-negative int: {tx_idx!r}")
        callback.tx_idx = tx_idx
        if callback.tx is not None:
            callback.tx = replace(callback.tx, tx_idx=tx_idx)

    def attach(self, callback: BlockCallback, tx: PoolTransaction, auxiliary_data: bytes) -> None:
        if callback.tx_idx is not None:
            tx = replace(tx, tx_idx=callback.tx_idx)
        callback.auxiliary_data = auxiliary_data
        callback.tx = tx

    def seal(self) -> List[BlockCallbackEntry]:
        """
        Drain every pending callback into block entries, ordered by tx index.

        Raises:
            IncompleteCallback: If any callback lacks an index or auxiliary data;
                nothing is drained in that case
        """
        callbacks = self.pending()
        for cb in callbacks:
            if not cb.complete:
                raise IncompleteCallback(
                    f"callback for {cb.target} is incomplete (tx_idx={cb.tx_idx}, "
                    f"auxiliary_data={'set' if cb.auxiliary_data is not None else 'missing'})"
                )
        self._pending.clear()
        return [
            BlockCallbackEntry(target=cb.target, tx_idx=cb.tx_idx, auxiliary_data=cb.auxiliary_data)
            for cb in sorted(callbacks, key=lambda cb: cb.tx_idx)
        ]
