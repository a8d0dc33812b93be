"""
EIP-712 typed data for pool joins and exits.

Domain:
    {name: "AMM Pool", version: "1.0.0", chainId, verifyingContract: pool}

The digest is keccak256(0x19 0x01 || domainSeparator || hashStruct(message)).
Field order is part of the type hash, so the lists below must not be reordered.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List, Protocol

from eth_account.messages import encode_typed_data
from eth_utils import keccak, to_checksum_address

from ..core.errors import SignatureInvalid
from ..state.canonical import Address, normalize_address
from ..state.transactions import PoolExit, PoolJoin, PoolTransaction
from .keyring import SignatureType


DOMAIN_NAME = "AMM Pool"
DOMAIN_VERSION = "1.0.0"
DEFAULT_CHAIN_ID = 1

EIP712_DOMAIN_FIELDS: List[Dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

POOL_JOIN_FIELDS: List[Dict[str, str]] = [
    {"name": "owner", "type": "address"},
    {"name": "joinAmounts", "type": "uint96[]"},
    {"name": "joinFees", "type": "uint96[]"},
    {"name": "joinStorageIDs", "type": "uint32[]"},
    {"name": "mintMinAmount", "type": "uint96"},
    {"name": "validUntil", "type": "uint32"},
]

POOL_EXIT_FIELDS: List[Dict[str, str]] = [
    {"name": "owner", "type": "address"},
    {"name": "burnAmount", "type": "uint96"},
    {"name": "burnStorageID", "type": "uint32"},
    {"name": "exitMinAmounts", "type": "uint96[]"},
    {"name": "validUntil", "type": "uint32"},
]


class SigningCollaborator(Protocol):
    async def sign(self, address: Address, msg_hash: bytes, scheme: SignatureType) -> bytes: ...

    async def verify(self, address: Address, msg_hash: bytes, signature: bytes) -> None: ...


def _checksum(value: Any, *, name: str) -> str:
    return to_checksum_address(normalize_address(value, name=name))


def to_typed_data(tx: PoolTransaction, *, chain_id: int = DEFAULT_CHAIN_ID) -> Dict[str, Any]:
    """Build the EIP-712 document for a join or exit; the pool is the verifying contract."""
    if isinstance(tx, PoolJoin):
        primary_type = "PoolJoin"
        fields = POOL_JOIN_FIELDS
        message: Dict[str, Any] = {
            "owner": _checksum(tx.owner, name="owner"),
            "joinAmounts": list(tx.join_amounts),
            "joinFees": list(tx.join_fees),
            "joinStorageIDs": list(tx.join_storage_ids),
            "mintMinAmount": tx.mint_min_amount,
            "validUntil": tx.valid_until,
        }
    elif isinstance(tx, PoolExit):
        primary_type = "PoolExit"
        fields = POOL_EXIT_FIELDS
        message = {
            "owner": _checksum(tx.owner, name="owner"),
            "burnAmount": tx.burn_amount,
            "burnStorageID": tx.burn_storage_id,
            "exitMinAmounts": list(tx.exit_min_amounts),
            "validUntil": tx.valid_until,
        }
    else:
        raise TypeError(f"not a pool transaction: {type(tx).__name__}")

    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_FIELDS,
            primary_type: fields,
        },
        "primaryType": primary_type,
        "domain": {
            "name": DOMAIN_NAME,
            "version": DOMAIN_VERSION,
            "chainId": chain_id,
            "verifyingContract": _checksum(tx.pool_address, name="pool_address"),
        },
        "message": message,
    }


def hash_typed_data(typed_data: Dict[str, Any]) -> bytes:
    signable = encode_typed_data(full_message=typed_data)
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def get_hash(tx: PoolTransaction, *, chain_id: int = DEFAULT_CHAIN_ID) -> bytes:
    return hash_typed_data(to_typed_data(tx, chain_id=chain_id))


class TypedDataSigner:
    """
    Hashes, signs and verifies pool transactions through a signing collaborator.

    Only ECDSA-authorized transactions are signed; the processor never calls
    this for FORCE or NONE transactions.
    """

    def __init__(
        self,
        signer: SigningCollaborator,
        *,
        chain_id: int = DEFAULT_CHAIN_ID,
        signature_type: SignatureType = SignatureType.EIP_712,
    ) -> None:
        self._signer = signer
        self.chain_id = chain_id
        self.signature_type = signature_type

    def hash(self, tx: PoolTransaction) -> bytes:
        return get_hash(tx, chain_id=self.chain_id)

    async def sign(self, owner: Address, msg_hash: bytes) -> bytes:
        return await self._signer.sign(normalize_address(owner, name="owner"), msg_hash, self.signature_type)

    async def verify(self, owner: Address, msg_hash: bytes, signature: bytes) -> None:
        """Raises `SignatureInvalid` unless `signature` recovers to `owner`."""
        await self._signer.verify(normalize_address(owner, name="owner"), msg_hash, signature)

    async def sign_transaction(self, tx: PoolTransaction) -> PoolTransaction:
        signature = await self.sign(tx.owner, self.hash(tx))
        return replace(tx, signature=signature)

    async def verify_transaction(self, tx: PoolTransaction) -> None:
        if not tx.signature:
            raise SignatureInvalid("missing signature")
        await self.verify(tx.owner, self.hash(tx), tx.signature)
