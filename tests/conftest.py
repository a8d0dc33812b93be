from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from ammpool.agents.keyring import Keyring
from ammpool.core.accounting import AccountingPolicy
from ammpool.integration.callbacks import BlockCallback, BlockCallbackEntry, BlockCallbackRegistry
from ammpool.integration.config import ProcessorConfig
from ammpool.integration.ledger import DepositOptions, RebalanceOptions, TransferOptions
from ammpool.integration.processor import AmmPool
from ammpool.state.pool import PoolConfig


POOL_ADDRESS = "0x" + "aa" * 20
OPERATOR = "0x" + "0f" * 20

ALICE_KEY = b"\x01" * 32
BOB_KEY = b"\x02" * 32


class LedgerUnavailable(Exception):
    pass


@dataclass
class LedgerTx:
    kind: str
    args: Tuple[Any, ...]


class FakeLedger:
    """
    In-memory settlement ledger.

    Deposits and transfers are queued in the pending block and only become
    visible to `get_balance` once `settle()` seals the block. Sealing also
    assigns block positions to the pool's block callbacks.
    """

    def __init__(self, callbacks: BlockCallbackRegistry) -> None:
        self._callbacks = callbacks
        self._balances: Dict[Tuple[str, str], int] = defaultdict(int)
        self._next_storage_id: Dict[str, int] = defaultdict(int)
        self._consumed_storage_ids: set = set()
        self._callback_positions: List[Tuple[BlockCallback, int]] = []
        self.pending: List[LedgerTx] = []
        self.blocks: List[Dict[str, Any]] = []
        self.weights: Dict[Tuple[str, str], int] = {}
        self.weight_history: List[Tuple[str, int]] = []
        self.calls: List[str] = []
        self.transfers: List[Tuple[str, str, str, int, str, int, TransferOptions]] = []
        self.operator = OPERATOR
        self.fail_at_transfer: Optional[int] = None
        # Suspend on every call so concurrent tasks can interleave.
        self.yield_control = False
        callbacks.subscribe(self._on_callback)

    def _on_callback(self, callback: BlockCallback) -> None:
        self._callback_positions.append((callback, len(self.pending)))

    def balance(self, owner: str, token: str) -> int:
        return self._balances[(owner, token)]

    async def _io(self) -> None:
        if self.yield_control:
            await asyncio.sleep(0)

    async def deposit(self, from_: str, to: str, token: str, amount: int, options: DepositOptions) -> int:
        self.calls.append("deposit")
        await self._io()
        self.pending.append(LedgerTx("deposit", (from_, to, token, amount)))
        return len(self.pending) - 1

    async def transfer(
        self,
        from_: str,
        to: str,
        token: str,
        amount: int,
        fee_token: str,
        fee: int,
        options: TransferOptions,
    ) -> None:
        self.calls.append("transfer")
        await self._io()
        if self.fail_at_transfer is not None and len(self.transfers) == self.fail_at_transfer:
            raise LedgerUnavailable("ledger unavailable")
        if options.storage_id is not None:
            key = (from_, options.storage_id)
            if key in self._consumed_storage_ids:
                raise ValueError(f"storage ID reused: {key}")
            self._consumed_storage_ids.add(key)
        self.transfers.append((from_, to, token, amount, fee_token, fee, options))
        self.pending.append(LedgerTx("transfer", (from_, to, token, amount, fee_token, fee)))

    async def reserve_storage_id(self, owner: str) -> int:
        self.calls.append("reserve_storage_id")
        await self._io()
        storage_id = self._next_storage_id[owner]
        self._next_storage_id[owner] = storage_id + 1
        return storage_id

    async def request_rebalance_update(
        self, owner: str, token: str, fee_bips: int, weight: int, options: RebalanceOptions
    ) -> None:
        self.calls.append("request_rebalance_update")
        await self._io()
        self.weight_history.append((token, weight))
        self.pending.append(LedgerTx("amm_update", (owner, token, fee_bips, weight)))

    async def get_balance(self, owner: str, token: str) -> int:
        self.calls.append("get_balance")
        await self._io()
        return self._balances[(owner, token)]

    async def settle(self) -> None:
        self.calls.append("settle")
        await self._io()
        # Sealing fails on incomplete callbacks; nothing is applied in that case.
        for callback, position in self._callback_positions:
            self._callbacks.assign_tx_index(callback, position)
        entries: List[BlockCallbackEntry] = self._callbacks.seal()
        self._callback_positions.clear()

        for tx in self.pending:
            if tx.kind == "deposit":
                _, to, token, amount = tx.args
                self._balances[(to, token)] += amount
            elif tx.kind == "transfer":
                from_, to, token, amount, fee_token, fee = tx.args
                self._debit(from_, token, amount)
                self._balances[(to, token)] += amount
                if fee:
                    self._debit(from_, fee_token, fee)
                    self._balances[(self.operator, fee_token)] += fee
            elif tx.kind == "amm_update":
                owner, token, _, weight = tx.args
                self.weights[(owner, token)] = weight

        if self.pending or entries:
            self.blocks.append({"transactions": list(self.pending), "callbacks": entries})
        self.pending.clear()

    def _debit(self, owner: str, token: str, amount: int) -> None:
        if self._balances[(owner, token)] < amount:
            raise ValueError(f"insufficient balance: {owner} {token} {self._balances[(owner, token)]} < {amount}")
        self._balances[(owner, token)] -= amount


class FakePoolContract:
    def __init__(self, address: str, *, fee: int = 10**15, valid_until: int = 1_700_000_000) -> None:
        self.address = address
        self.fee = fee
        self.valid_until = valid_until
        self.requests: List[Tuple[str, int, List[int], int]] = []

    async def forced_exit_fee(self) -> int:
        return self.fee

    async def request_forced_exit(self, owner: str, burn_amount: int, exit_min_amounts: Sequence[int], fee: int) -> int:
        self.requests.append((owner, burn_amount, list(exit_min_amounts), fee))
        return self.valid_until


@dataclass
class PoolEnv:
    pool: AmmPool
    ledger: FakeLedger
    callbacks: BlockCallbackRegistry
    keyring: Keyring
    contract: FakePoolContract
    alice: str
    bob: str

    async def fund(self, owner: str, amounts: Dict[str, int]) -> None:
        for token, amount in amounts.items():
            await self.ledger.deposit(owner, owner, token, amount, DepositOptions())
        await self.ledger.settle()


def make_env(
    *,
    tokens: Sequence[str] = ("ETH", "LRC"),
    weights: Sequence[int] = (1_000_000, 1_000_000),
    fee_bips: int = 0,
    policy: AccountingPolicy = AccountingPolicy.STRICT,
) -> PoolEnv:
    callbacks = BlockCallbackRegistry()
    ledger = FakeLedger(callbacks)
    keyring = Keyring()
    alice = keyring.add_key(ALICE_KEY)
    bob = keyring.add_key(BOB_KEY)
    contract = FakePoolContract(POOL_ADDRESS)
    pool = AmmPool(
        PoolConfig(pool_address=POOL_ADDRESS, tokens=tuple(tokens), weights=tuple(weights), fee_bips=fee_bips),
        ledger,
        keyring,
        callbacks,
        contract=contract,
        config=ProcessorConfig(accounting_policy=policy),
    )
    return PoolEnv(
        pool=pool,
        ledger=ledger,
        callbacks=callbacks,
        keyring=keyring,
        contract=contract,
        alice=alice,
        bob=bob,
    )


@pytest.fixture
def env() -> PoolEnv:
    return make_env()


@pytest.fixture
def advisory_env() -> PoolEnv:
    return make_env(policy=AccountingPolicy.ADVISORY)


@pytest.fixture
def make_pool_env():
    return make_env
