"""
Pool configuration and mirrored pool state.

`PoolState` is a value: accounting functions take one and return a new one,
so every ledger-facing update can be checked in isolation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Tuple

from .canonical import UINT96_MAX, Address, normalize_address, require_uint


# Pool-share supply minted by the first liquidity provider.
POOL_TOKEN_BASE = 10_000_000_000
# Pool tokens deposited to the pool account at setup (uint96 max).
POOL_TOKEN_MINTED_SUPPLY = UINT96_MAX

BPS_DENOM = 10_000

Amount = int
TokenId = str


@dataclass(frozen=True)
class PoolConfig:
    """
    Immutable pool setup.

    `tokens` and `weights` are parallel; the pool-share token is identified by
    the pool address itself.
    """

    pool_address: Address
    tokens: Tuple[TokenId, ...]
    weights: Tuple[int, ...]
    fee_bips: int
    pool_token_base: int = POOL_TOKEN_BASE
    pool_token_minted_supply: int = POOL_TOKEN_MINTED_SUPPLY

    def __post_init__(self) -> None:
        object.__setattr__(self, "pool_address", normalize_address(self.pool_address, name="pool_address"))
        object.__setattr__(self, "tokens", tuple(self.tokens))
        object.__setattr__(self, "weights", tuple(self.weights))

        if not self.tokens:
            raise ValueError("pool must have at least one token")
        for i, token in enumerate(self.tokens):
            if not isinstance(token, str) or not token:
                raise TypeError(f"tokens[{i}] must be a non-empty string")
        if len(set(self.tokens)) != len(self.tokens):
            raise ValueError(f"tokens must be unique: {self.tokens}")
        if len(self.weights) != len(self.tokens):
            raise ValueError(
                f"weights must have one entry per token: {len(self.weights)} != {len(self.tokens)}"
            )
        for i, w in enumerate(self.weights):
            require_uint(f"weights[{i}]", w, bits=96)
        require_uint("fee_bips", self.fee_bips, bits=16)
        if self.fee_bips > BPS_DENOM:
            raise ValueError(f"fee_bips must be in [0, {BPS_DENOM}]: {self.fee_bips}")
        if self.pool_token_base <= 0:
            raise ValueError("pool_token_base must be positive")

    @property
    def pool_token(self) -> TokenId:
        return self.pool_address

    @property
    def num_tokens(self) -> int:
        return len(self.tokens)


@dataclass(frozen=True)
class PoolState:
    """Total pool-share supply plus the mirrored per-token balances of the pool account."""

    total_supply: Amount = 0
    balances: Tuple[Amount, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "balances", tuple(self.balances))
        require_uint("total_supply", self.total_supply, bits=256)
        for i, b in enumerate(self.balances):
            require_uint(f"balances[{i}]", b, bits=256)

    @classmethod
    def empty(cls, num_tokens: int) -> "PoolState":
        return cls(total_supply=0, balances=(0,) * num_tokens)

    def with_balances(self, balances: Sequence[Amount]) -> "PoolState":
        if len(balances) != len(self.balances):
            raise ValueError(f"expected {len(self.balances)} balances, got {len(balances)}")
        return PoolState(total_supply=self.total_supply, balances=tuple(balances))
