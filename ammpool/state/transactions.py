"""
Pool transaction data models.

A pool transaction is a tagged union of two variants, `PoolJoin` and
`PoolExit`. Each variant carries its wire tag (`PoolTransactionType`) as a
class attribute; dispatch on the variant type, never on a string field.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Optional, Tuple, Union

from .canonical import UINT32_MAX, Address, normalize_address, require_uint


DEFAULT_VALID_UNTIL = UINT32_MAX


class PoolTransactionType(IntEnum):
    """Transaction kind tag of the auxiliary data wrapper."""
    NOOP = 0
    JOIN = 1
    EXIT = 2


class AuthMethod(IntEnum):
    """Authorization method of a layer-2 transaction."""
    NONE = 0
    EDDSA = 1
    ECDSA = 2
    APPROVE = 3
    FORCE = 4


def _require_uint_tuple(name: str, values, *, bits: int) -> Tuple[int, ...]:
    if isinstance(values, (str, bytes)):
        raise TypeError(f"{name} must be a sequence of ints")
    return tuple(require_uint(f"{name}[{i}]", v, bits=bits) for i, v in enumerate(values))


def _require_signature(signature: Optional[bytes]) -> Optional[bytes]:
    if signature is None:
        return None
    if not isinstance(signature, (bytes, bytearray)):
        raise TypeError("signature must be bytes")
    return bytes(signature)


@dataclass(frozen=True)
class PoolJoin:
    """
    Liquidity deposit request.

    Attributes:
        pool_address: Pool the request targets (EIP-712 verifying contract)
        owner: Requester address; may arrive as a decimal string after JSON round-trips
        join_amounts: Maximum amount of each pool token to deposit
        join_fees: Layer-2 fee paid per token transfer
        join_storage_ids: One storage ID per token for ECDSA joins, empty otherwise
        mint_min_amount: Minimum acceptable amount of pool tokens minted
        valid_until: Expiry timestamp
        signature: EIP-712 signature (ECDSA joins only)
        tx_idx: Index within the sealed block, once known
    """

    tx_type: ClassVar[PoolTransactionType] = PoolTransactionType.JOIN

    pool_address: Address
    owner: Address
    join_amounts: Tuple[int, ...]
    join_fees: Tuple[int, ...]
    join_storage_ids: Tuple[int, ...] = ()
    mint_min_amount: int = 0
    valid_until: int = DEFAULT_VALID_UNTIL
    signature: Optional[bytes] = None
    auth_method: AuthMethod = AuthMethod.ECDSA
    tx_idx: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pool_address", normalize_address(self.pool_address, name="pool_address"))
        # Validated only: the owner keeps its wire form until it is encoded.
        normalize_address(self.owner, name="owner")
        object.__setattr__(self, "join_amounts", _require_uint_tuple("join_amounts", self.join_amounts, bits=96))
        object.__setattr__(self, "join_fees", _require_uint_tuple("join_fees", self.join_fees, bits=96))
        object.__setattr__(
            self, "join_storage_ids", _require_uint_tuple("join_storage_ids", self.join_storage_ids, bits=32)
        )
        object.__setattr__(self, "signature", _require_signature(self.signature))
        object.__setattr__(self, "auth_method", AuthMethod(self.auth_method))
        require_uint("mint_min_amount", self.mint_min_amount, bits=96)
        require_uint("valid_until", self.valid_until, bits=32)

        if len(self.join_fees) != len(self.join_amounts):
            raise ValueError(
                f"join_fees must match join_amounts: {len(self.join_fees)} != {len(self.join_amounts)}"
            )
        if self.join_storage_ids:
            if len(self.join_storage_ids) != len(self.join_amounts):
                raise ValueError("join_storage_ids must be empty or have one entry per token")
            if len(set(self.join_storage_ids)) != len(self.join_storage_ids):
                raise ValueError(f"join_storage_ids must be unique: {self.join_storage_ids}")

    @property
    def storage_ids(self) -> Tuple[int, ...]:
        return self.join_storage_ids


@dataclass(frozen=True)
class PoolExit:
    """
    Liquidity withdrawal request.

    Attributes:
        pool_address: Pool the request targets
        owner: Requester address
        burn_amount: Pool tokens to burn
        burn_storage_id: Storage ID consumed by the burn transfer (0 for forced exits)
        exit_min_amounts: Minimum acceptable withdrawal per token
        valid_until: Expiry timestamp
        auth_method: ECDSA (signed) or FORCE (requested on-chain)
        signature: EIP-712 signature (ECDSA exits only)
        tx_idx: Index within the sealed block, once known
    """

    tx_type: ClassVar[PoolTransactionType] = PoolTransactionType.EXIT

    pool_address: Address
    owner: Address
    burn_amount: int
    exit_min_amounts: Tuple[int, ...]
    burn_storage_id: int = 0
    valid_until: int = DEFAULT_VALID_UNTIL
    auth_method: AuthMethod = AuthMethod.ECDSA
    signature: Optional[bytes] = None
    tx_idx: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pool_address", normalize_address(self.pool_address, name="pool_address"))
        normalize_address(self.owner, name="owner")
        object.__setattr__(
            self, "exit_min_amounts", _require_uint_tuple("exit_min_amounts", self.exit_min_amounts, bits=96)
        )
        object.__setattr__(self, "signature", _require_signature(self.signature))
        object.__setattr__(self, "auth_method", AuthMethod(self.auth_method))
        require_uint("burn_amount", self.burn_amount, bits=96)
        require_uint("burn_storage_id", self.burn_storage_id, bits=32)
        require_uint("valid_until", self.valid_until, bits=32)

    @property
    def storage_ids(self) -> Tuple[int, ...]:
        # Forced exits burn on-chain and consume no layer-2 storage slot.
        if self.auth_method == AuthMethod.FORCE:
            return ()
        return (self.burn_storage_id,)


PoolTransaction = Union[PoolJoin, PoolExit]
