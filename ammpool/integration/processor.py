"""
Pool transaction processor (imperative shell around the accounting kernel).

One `AmmPool` mirrors one pool account on the settlement ledger. Each join or
exit runs through a fixed sequence:

    snapshot balances -> accounting (pure) -> zero rebalancing weights
    -> ledger transfers -> restore weights -> attach block callback

The whole sequence holds the pool's lock: the snapshot taken at the start
of a transaction must match the mirrored state left by the previous one.
Pools sharing a ledger run concurrently; the ledger is only settled through
the shared callback registry's sealing gate, between pool transactions.
Ledger and signing failures propagate and abort the remaining steps; ledger
writes already issued are not rolled back, so callers must refresh the
balances before processing further transactions against the pool.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Sequence, Set, Tuple, Union

from ..agents.typed_data_signer import SigningCollaborator, TypedDataSigner
from ..core.accounting import (
    ExitComputation,
    JoinComputation,
    apply_exit,
    apply_join,
    compute_exit,
    compute_join,
    enforce_policy,
)
from ..core.errors import SignatureInvalid, StorageIDReused, UnsupportedAuthMethod
from ..state.canonical import Address, normalize_address
from ..state.pool import PoolConfig, PoolState
from ..state.transactions import AuthMethod, PoolExit, PoolJoin, PoolTransaction
from .aux_data import encode_auxiliary_data
from .callbacks import BlockCallback, BlockCallbackRegistry
from .config import ProcessorConfig
from .ledger import DepositOptions, Ledger, PoolContract, RebalanceOptions, TransferOptions


logger = logging.getLogger(__name__)

_JOIN_AUTH_METHODS = (AuthMethod.ECDSA, AuthMethod.NONE)
_EXIT_AUTH_METHODS = (AuthMethod.ECDSA, AuthMethod.FORCE, AuthMethod.NONE)


class ProcessingStage(Enum):
    STARTED = "STARTED"
    WEIGHTS_DISABLED = "WEIGHTS_DISABLED"
    PAYLOAD_APPLIED = "PAYLOAD_APPLIED"
    WEIGHTS_RESTORED = "WEIGHTS_RESTORED"
    CALLBACK_ATTACHED = "CALLBACK_ATTACHED"


@dataclass(frozen=True)
class ProcessedTransaction:
    tx: PoolTransaction
    computation: Union[JoinComputation, ExitComputation]
    state: PoolState
    callback: BlockCallback
    stage: ProcessingStage


class AmmPool:
    """
    Off-chain mirror of one AMM pool.

    Collaborators are injected: the settlement `ledger`, the signing
    collaborator, the block callback registry, and (for forced exits only)
    the deployed pool `contract`.
    """

    def __init__(
        self,
        pool: PoolConfig,
        ledger: Ledger,
        signer: SigningCollaborator,
        callbacks: BlockCallbackRegistry,
        *,
        contract: Optional[PoolContract] = None,
        config: ProcessorConfig = ProcessorConfig(),
    ) -> None:
        if contract is not None and normalize_address(contract.address, name="contract.address") != pool.pool_address:
            raise ValueError("contract address does not match the pool address")
        self.pool = pool
        self.config = config
        self.typed_data = TypedDataSigner(signer, chain_id=config.chain_id, signature_type=config.signature_type)
        self._ledger = ledger
        self._callbacks = callbacks
        self._contract = contract
        self._state = PoolState.empty(pool.num_tokens)
        # Storage IDs are per account: (owner, storage_id).
        self._used_storage_ids: Set[Tuple[Address, int]] = set()
        self._lock = asyncio.Lock()
        self.stage: Optional[ProcessingStage] = None

    @property
    def address(self) -> Address:
        return self.pool.pool_address

    @property
    def state(self) -> PoolState:
        return self._state

    # ------------------------------------------------------------------
    # Setup and snapshots
    # ------------------------------------------------------------------

    async def setup(self, *, deposit_minted_supply: bool = True) -> None:
        """Reset the mirror and fund the pool account with the minted pool-token supply."""
        async with self._lock:
            self._state = PoolState.empty(self.pool.num_tokens)
            self._used_storage_ids.clear()
            if deposit_minted_supply:
                await self._ledger.deposit(
                    self.address,
                    self.address,
                    self.pool.pool_token,
                    self.pool.pool_token_minted_supply,
                    DepositOptions(),
                )

    async def refresh_balances(self) -> PoolState:
        """Settle the ledger, then re-read the pool account's token balances into the mirrored state."""
        await self._settle()
        return await self._read_balances()

    async def _settle(self) -> None:
        if self.config.settle_before_snapshot:
            # Other pools share the ledger: wait until none of them is mid-transaction.
            async with self._callbacks.sealing():
                await self._ledger.settle()

    async def _read_balances(self) -> PoolState:
        balances: List[int] = []
        for token in self.pool.tokens:
            balances.append(await self._ledger.get_balance(self.address, token))
        if tuple(balances) != self._state.balances:
            logger.warning(
                "pool %s: ledger balances %s diverge from mirrored balances %s",
                self.address,
                balances,
                list(self._state.balances),
            )
        self._state = self._state.with_balances(balances)
        return self._state

    # ------------------------------------------------------------------
    # Request builders
    # ------------------------------------------------------------------

    async def join(
        self,
        owner: Address,
        mint_min_amount: int,
        join_amounts: Sequence[int],
        join_fees: Sequence[int],
        *,
        auth_method: AuthMethod = AuthMethod.ECDSA,
        valid_until: Optional[int] = None,
    ) -> ProcessedTransaction:
        """Build, sign (ECDSA) and process a join."""
        auth_method = AuthMethod(auth_method)
        if auth_method not in _JOIN_AUTH_METHODS:
            raise UnsupportedAuthMethod(f"join with {auth_method.name} is not supported")

        join = PoolJoin(
            pool_address=self.address,
            owner=owner,
            join_amounts=tuple(join_amounts),
            join_fees=tuple(join_fees),
            mint_min_amount=mint_min_amount,
            valid_until=self.config.default_valid_until if valid_until is None else valid_until,
            auth_method=auth_method,
        )
        if auth_method == AuthMethod.ECDSA:
            storage_ids = []
            for _ in self.pool.tokens:
                storage_ids.append(await self._ledger.reserve_storage_id(normalize_address(owner, name="owner")))
            join = await self.typed_data.sign_transaction(replace(join, join_storage_ids=tuple(storage_ids)))

        return await self.process(join)

    async def exit(
        self,
        owner: Address,
        burn_amount: int,
        exit_min_amounts: Sequence[int],
        *,
        auth_method: AuthMethod = AuthMethod.ECDSA,
        valid_until: Optional[int] = None,
    ) -> ProcessedTransaction:
        """Build and process an exit: signed (ECDSA) or requested on-chain (FORCE)."""
        auth_method = AuthMethod(auth_method)
        if auth_method not in _EXIT_AUTH_METHODS:
            raise UnsupportedAuthMethod(f"exit with {auth_method.name} is not supported")

        valid_until = self.config.default_valid_until if valid_until is None else valid_until
        burn_storage_id = 0
        if auth_method == AuthMethod.FORCE:
            if self._contract is None:
                raise UnsupportedAuthMethod("forced exits need the pool contract")
            fee = await self._contract.forced_exit_fee()
            valid_until = await self._contract.request_forced_exit(
                normalize_address(owner, name="owner"), burn_amount, list(exit_min_amounts), fee
            )
        elif auth_method == AuthMethod.ECDSA:
            burn_storage_id = await self._ledger.reserve_storage_id(normalize_address(owner, name="owner"))

        exit_ = PoolExit(
            pool_address=self.address,
            owner=owner,
            burn_amount=burn_amount,
            burn_storage_id=burn_storage_id,
            exit_min_amounts=tuple(exit_min_amounts),
            valid_until=valid_until,
            auth_method=auth_method,
        )
        if auth_method == AuthMethod.ECDSA:
            exit_ = await self.typed_data.sign_transaction(exit_)

        return await self.process(exit_)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def process(self, tx: PoolTransaction) -> ProcessedTransaction:
        """
        Process one pool transaction against the ledger.

        Raises:
            SignatureInvalid: ECDSA transaction with a missing or wrong signature
            UnsupportedAuthMethod: Authorization path not implemented
            StorageIDReused: A storage ID was already consumed by this pool
            SlippageNotMet / ZeroMintAmount: Under the strict accounting policy
        """
        self._check_transaction(tx)
        async with self._lock:
            self.stage = ProcessingStage.STARTED
            if tx.auth_method == AuthMethod.ECDSA:
                await self._verify_signature(tx)
            self._check_storage_ids(tx)

            await self._settle()
            async with self._callbacks.transaction():
                return await self._run(tx)

    async def _run(self, tx: PoolTransaction) -> ProcessedTransaction:
        # Accounting is pure, so policy rejections happen before any ledger write.
        snapshot = await self._read_balances()
        join_computation: Optional[JoinComputation] = None
        exit_computation: Optional[ExitComputation] = None
        if isinstance(tx, PoolJoin):
            join_computation = compute_join(
                tx.join_amounts,
                snapshot,
                mint_min_amount=tx.mint_min_amount,
                pool_token_base=self.pool.pool_token_base,
                encoding=self.config.float_encoding,
            )
            enforce_policy(join_computation.violations, self.config.accounting_policy)
        else:
            exit_computation = compute_exit(
                tx.burn_amount,
                tx.exit_min_amounts,
                snapshot,
                pool_token_base=self.pool.pool_token_base,
                encoding=self.config.float_encoding,
            )
            if not exit_computation.valid:
                logger.debug("Exit min amounts not reached!")
            # The forced-exit request already committed the slippage bounds on-chain.
            if tx.auth_method != AuthMethod.FORCE:
                enforce_policy(exit_computation.violations, self.config.accounting_policy)

        self._used_storage_ids.update(self._storage_keys(tx))
        callback = self._callbacks.add(self.address)

        await self._set_weights([0] * self.pool.num_tokens)
        self.stage = ProcessingStage.WEIGHTS_DISABLED

        computation: Union[JoinComputation, ExitComputation]
        if join_computation is not None:
            computation = join_computation
            self._state = await self._apply_join(tx, join_computation, snapshot)
        else:
            computation = exit_computation
            self._state = await self._apply_exit(tx, exit_computation, snapshot)
        self.stage = ProcessingStage.PAYLOAD_APPLIED

        await self._set_weights(self.pool.weights)
        self.stage = ProcessingStage.WEIGHTS_RESTORED

        self._callbacks.attach(callback, tx, encode_auxiliary_data(tx))
        self.stage = ProcessingStage.CALLBACK_ATTACHED

        return ProcessedTransaction(
            tx=callback.tx if callback.tx is not None else tx,
            computation=computation,
            state=self._state,
            callback=callback,
            stage=self.stage,
        )

    def _check_transaction(self, tx: PoolTransaction) -> None:
        if not isinstance(tx, (PoolJoin, PoolExit)):
            raise TypeError(f"not a pool transaction: {type(tx).__name__}")
        if tx.pool_address != self.address:
            raise ValueError(f"transaction targets pool {tx.pool_address}, not {self.address}")

        n = self.pool.num_tokens
        if isinstance(tx, PoolJoin):
            if tx.auth_method not in _JOIN_AUTH_METHODS:
                raise UnsupportedAuthMethod(f"join with {tx.auth_method.name} is not supported")
            if len(tx.join_amounts) != n:
                raise ValueError(f"join_amounts must have {n} entries, got {len(tx.join_amounts)}")
            if tx.auth_method == AuthMethod.ECDSA and len(tx.join_storage_ids) != n:
                raise ValueError("ECDSA joins need one storage ID per token")
        else:
            if tx.auth_method not in _EXIT_AUTH_METHODS:
                raise UnsupportedAuthMethod(f"exit with {tx.auth_method.name} is not supported")
            if len(tx.exit_min_amounts) != n:
                raise ValueError(f"exit_min_amounts must have {n} entries, got {len(tx.exit_min_amounts)}")

    async def _verify_signature(self, tx: PoolTransaction) -> None:
        if not tx.signature:
            raise SignatureInvalid("ECDSA transaction carries no signature")
        await self.typed_data.verify(tx.owner, self.typed_data.hash(tx), tx.signature)

    @staticmethod
    def _storage_keys(tx: PoolTransaction) -> List[Tuple[Address, int]]:
        owner = normalize_address(tx.owner, name="owner")
        return [(owner, storage_id) for storage_id in tx.storage_ids]

    def _check_storage_ids(self, tx: PoolTransaction) -> None:
        for owner, storage_id in self._storage_keys(tx):
            if (owner, storage_id) in self._used_storage_ids:
                raise StorageIDReused(f"storage ID {storage_id} of {owner} already used against pool {self.address}")

    async def _set_weights(self, weights: Sequence[int]) -> None:
        for token, weight in zip(self.pool.tokens, weights):
            await self._ledger.request_rebalance_update(
                self.address,
                token,
                self.pool.fee_bips,
                weight,
                RebalanceOptions(auth_method=AuthMethod.NONE),
            )

    async def _apply_join(self, join: PoolJoin, computation: JoinComputation, snapshot: PoolState) -> PoolState:
        owner = normalize_address(join.owner, name="owner")

        # Deposit
        for i, token in enumerate(self.pool.tokens):
            amount = computation.deposit_amounts[i]
            storage_id = join.join_storage_ids[i] if join.join_storage_ids else None
            await self._ledger.transfer(
                owner,
                self.address,
                token,
                amount,
                token,
                join.join_fees[i],
                TransferOptions(auth_method=AuthMethod.NONE, storage_id=storage_id),
            )
            logger.debug("pool join: %d", amount)

        # Mint
        await self._ledger.transfer(
            self.address,
            owner,
            self.pool.pool_token,
            computation.pool_amount_out,
            self.config.fee_token,
            0,
            TransferOptions(auth_method=AuthMethod.NONE),
        )
        logger.debug("pool mint: %d", computation.pool_amount_out)
        return apply_join(snapshot, computation)

    async def _apply_exit(self, exit_: PoolExit, computation: ExitComputation, snapshot: PoolState) -> PoolState:
        owner = normalize_address(exit_.owner, name="owner")

        if computation.valid:
            if exit_.auth_method != AuthMethod.FORCE:
                # Burn
                await self._ledger.transfer(
                    owner,
                    self.address,
                    self.pool.pool_token,
                    exit_.burn_amount,
                    self.config.fee_token,
                    0,
                    TransferOptions(auth_method=AuthMethod.NONE, storage_id=exit_.burn_storage_id),
                )

            # Withdraw
            for i, token in enumerate(self.pool.tokens):
                amount = computation.exit_amounts[i]
                await self._ledger.transfer(
                    self.address,
                    owner,
                    token,
                    amount,
                    self.config.fee_token,
                    0,
                    TransferOptions(auth_method=AuthMethod.NONE, transfer_to_new=True),
                )
                logger.debug("pool exit: %d", amount)

        return apply_exit(snapshot, computation)
