"""
Interfaces of the external collaborators consumed by the pool processor.

The settlement ledger and the deployed pool contract are not implemented
here; the processor receives objects satisfying these protocols at
construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

from ..state.canonical import Address
from ..state.transactions import AuthMethod


@dataclass(frozen=True)
class DepositOptions:
    """Deposits into the pool account carry no options today."""


@dataclass(frozen=True)
class TransferOptions:
    auth_method: AuthMethod = AuthMethod.NONE
    amount_to_deposit: int = 0
    fee_to_deposit: int = 0
    storage_id: Optional[int] = None
    transfer_to_new: bool = False


@dataclass(frozen=True)
class RebalanceOptions:
    auth_method: AuthMethod = AuthMethod.NONE


class Ledger(Protocol):
    async def deposit(
        self, from_: Address, to: Address, token: str, amount: int, options: DepositOptions
    ) -> Any: ...

    async def transfer(
        self,
        from_: Address,
        to: Address,
        token: str,
        amount: int,
        fee_token: str,
        fee: int,
        options: TransferOptions,
    ) -> None: ...

    async def reserve_storage_id(self, owner: Address) -> int: ...

    async def request_rebalance_update(
        self, owner: Address, token: str, fee_bips: int, weight: int, options: RebalanceOptions
    ) -> None: ...

    async def get_balance(self, owner: Address, token: str) -> int: ...

    async def settle(self) -> None: ...


class PoolContract(Protocol):
    """The deployed pool contract; only the forced-exit path needs it."""

    address: Address

    async def forced_exit_fee(self) -> int: ...

    async def request_forced_exit(
        self, owner: Address, burn_amount: int, exit_min_amounts: Sequence[int], fee: int
    ) -> int:
        """Submit the on-chain exit request and return its `valid_until`."""
        ...
