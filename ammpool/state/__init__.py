"""
State and request models for the AMM pool mirror
"""

from .pool import POOL_TOKEN_BASE, POOL_TOKEN_MINTED_SUPPLY, PoolConfig, PoolState
from .transactions import AuthMethod, PoolExit, PoolJoin, PoolTransaction, PoolTransactionType

__all__ = [
    "POOL_TOKEN_BASE",
    "POOL_TOKEN_MINTED_SUPPLY",
    "PoolConfig",
    "PoolState",
    "AuthMethod",
    "PoolExit",
    "PoolJoin",
    "PoolTransaction",
    "PoolTransactionType",
]
