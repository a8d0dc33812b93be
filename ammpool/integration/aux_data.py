"""
Auxiliary data encoding for pool transactions.

The verifier decodes these bytes with the Ethereum ABI, so the layout is a
wire contract:

    join payload:  tuple(address, uint96[], uint96[], uint32[], uint96, uint32)
    exit payload:  tuple(address, uint96, uint32, uint96[], uint32)
    wrapper:       tuple(uint256 txType, bytes payload, bytes signature)

Each tuple is encoded as a single ABI parameter (dynamic tuples therefore
start with a 32-byte offset word).
"""

from __future__ import annotations

from dataclasses import dataclass

from eth_abi import decode, encode
from eth_utils import to_checksum_address

from ..state.canonical import normalize_address
from ..state.transactions import AuthMethod, PoolExit, PoolJoin, PoolTransaction, PoolTransactionType


JOIN_PAYLOAD_TYPE = "(address,uint96[],uint96[],uint32[],uint96,uint32)"
EXIT_PAYLOAD_TYPE = "(address,uint96,uint32,uint96[],uint32)"
AUX_DATA_TYPE = "(uint256,bytes,bytes)"


@dataclass(frozen=True)
class AuxiliaryData:
    tx_type: PoolTransactionType
    data: bytes
    signature: bytes = b""

    def encode(self) -> bytes:
        return encode([AUX_DATA_TYPE], [(int(self.tx_type), self.data, self.signature)])


def _owner(tx: PoolTransaction) -> str:
    # Owners deserialized from JSON may be decimal strings.
    return to_checksum_address(normalize_address(tx.owner, name="owner"))


def encode_join_payload(join: PoolJoin) -> bytes:
    return encode(
        [JOIN_PAYLOAD_TYPE],
        [
            (
                _owner(join),
                list(join.join_amounts),
                list(join.join_fees),
                list(join.join_storage_ids),
                join.mint_min_amount,
                join.valid_until,
            )
        ],
    )


def encode_exit_payload(exit_: PoolExit) -> bytes:
    return encode(
        [EXIT_PAYLOAD_TYPE],
        [
            (
                _owner(exit_),
                exit_.burn_amount,
                exit_.burn_storage_id,
                list(exit_.exit_min_amounts),
                exit_.valid_until,
            )
        ],
    )


def to_auxiliary_data(tx: PoolTransaction) -> AuxiliaryData:
    if isinstance(tx, PoolJoin):
        data = encode_join_payload(tx)
    elif isinstance(tx, PoolExit):
        data = encode_exit_payload(tx)
    else:
        raise TypeError(f"not a pool transaction: {type(tx).__name__}")
    return AuxiliaryData(tx_type=tx.tx_type, data=data, signature=tx.signature or b"")


def encode_auxiliary_data(tx: PoolTransaction) -> bytes:
    """Encode a finalized transaction (and its signature, if any) for a block callback."""
    return to_auxiliary_data(tx).encode()


def decode_auxiliary_data(raw: bytes) -> AuxiliaryData:
    (decoded,) = decode([AUX_DATA_TYPE], raw)
    tx_type, data, signature = decoded
    return AuxiliaryData(tx_type=PoolTransactionType(tx_type), data=bytes(data), signature=bytes(signature))


def decode_join_payload(data: bytes, *, pool_address: str, signature: bytes = b"") -> PoolJoin:
    (decoded,) = decode([JOIN_PAYLOAD_TYPE], data)
    owner, amounts, fees, storage_ids, mint_min_amount, valid_until = decoded
    return PoolJoin(
        pool_address=pool_address,
        owner=normalize_address(owner, name="owner"),
        join_amounts=tuple(amounts),
        join_fees=tuple(fees),
        join_storage_ids=tuple(storage_ids),
        mint_min_amount=mint_min_amount,
        valid_until=valid_until,
        signature=signature or None,
        auth_method=AuthMethod.ECDSA if signature else AuthMethod.NONE,
    )


def decode_exit_payload(data: bytes, *, pool_address: str, signature: bytes = b"") -> PoolExit:
    """
    Decode an exit payload.

    Unsigned exits are reported as FORCE: that is the only unsigned exit path.
    """
    (decoded,) = decode([EXIT_PAYLOAD_TYPE], data)
    owner, burn_amount, burn_storage_id, exit_min_amounts, valid_until = decoded
    return PoolExit(
        pool_address=pool_address,
        owner=normalize_address(owner, name="owner"),
        burn_amount=burn_amount,
        burn_storage_id=burn_storage_id,
        exit_min_amounts=tuple(exit_min_amounts),
        valid_until=valid_until,
        auth_method=AuthMethod.ECDSA if signature else AuthMethod.FORCE,
        signature=signature or None,
    )


def decode_pool_transaction(raw: bytes, *, pool_address: str) -> PoolTransaction:
    aux = decode_auxiliary_data(raw)
    if aux.tx_type == PoolTransactionType.JOIN:
        return decode_join_payload(aux.data, pool_address=pool_address, signature=aux.signature)
    if aux.tx_type == PoolTransactionType.EXIT:
        return decode_exit_payload(aux.data, pool_address=pool_address, signature=aux.signature)
    raise ValueError(f"cannot decode pool transaction of type {aux.tx_type.name}")
