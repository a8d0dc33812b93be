# [TESTER] v1

from __future__ import annotations

from dataclasses import replace

import pytest

from ammpool.integration.aux_data import (
    AuxiliaryData,
    decode_auxiliary_data,
    decode_pool_transaction,
    encode_auxiliary_data,
    encode_exit_payload,
    encode_join_payload,
)
from ammpool.state.transactions import AuthMethod, PoolExit, PoolJoin, PoolTransactionType


POOL = "0x" + "aa" * 20
OWNER = "0x" + "11" * 20
SIGNATURE = bytes(range(64)) + b"\x1b\x02"


def _word(value: int) -> bytes:
    return value.to_bytes(32, "big")


def _join(owner: str = OWNER) -> PoolJoin:
    return PoolJoin(
        pool_address=POOL,
        owner=owner,
        join_amounts=(1000, 2000),
        join_fees=(1, 2),
        join_storage_ids=(5, 6),
        mint_min_amount=7,
        valid_until=1_700_000_000,
        signature=SIGNATURE,
    )


def _exit(**overrides) -> PoolExit:
    fields = dict(
        pool_address=POOL,
        owner=OWNER,
        burn_amount=5_000_000_000,
        burn_storage_id=9,
        exit_min_amounts=(100, 200),
        valid_until=1_700_000_000,
        signature=SIGNATURE,
    )
    fields.update(overrides)
    return PoolExit(**fields)


def test_exit_payload_layout() -> None:
    expected = b"".join(
        [
            _word(0x20),  # offset of the (dynamic) tuple
            _word(int("11" * 20, 16)),
            _word(5_000_000_000),
            _word(9),
            _word(5 * 32),  # offset of exitMinAmounts within the tuple
            _word(1_700_000_000),
            _word(2),
            _word(100),
            _word(200),
        ]
    )
    assert encode_exit_payload(_exit()) == expected


def test_join_payload_head() -> None:
    data = encode_join_payload(_join())
    assert data[:32] == _word(0x20)
    assert data[32:64] == _word(int("11" * 20, 16))
    # Three dynamic arrays follow the owner; mintMinAmount and validUntil close the head.
    assert data[32 + 4 * 32 : 32 + 5 * 32] == _word(7)
    assert data[32 + 5 * 32 : 32 + 6 * 32] == _word(1_700_000_000)


def test_encoding_is_deterministic() -> None:
    assert encode_auxiliary_data(_join()) == encode_auxiliary_data(_join())
    assert encode_auxiliary_data(_exit()) == encode_auxiliary_data(_exit())


def test_decimal_owner_encodes_like_hex_owner() -> None:
    decimal_owner = str(int("11" * 20, 16))
    assert encode_join_payload(_join(owner=decimal_owner)) == encode_join_payload(_join())
    assert encode_exit_payload(_exit(owner=decimal_owner)) == encode_exit_payload(_exit())


def test_wrapper_carries_type_payload_and_signature() -> None:
    aux = decode_auxiliary_data(encode_auxiliary_data(_join()))
    assert aux == AuxiliaryData(
        tx_type=PoolTransactionType.JOIN,
        data=encode_join_payload(_join()),
        signature=SIGNATURE,
    )


def test_unsigned_exit_has_empty_signature() -> None:
    forced = _exit(signature=None, burn_storage_id=0, auth_method=AuthMethod.FORCE)
    aux = decode_auxiliary_data(encode_auxiliary_data(forced))
    assert aux.tx_type == PoolTransactionType.EXIT
    assert aux.signature == b""


def test_decode_pool_transaction() -> None:
    join = _join()
    assert decode_pool_transaction(encode_auxiliary_data(join), pool_address=POOL) == join

    exit_ = _exit()
    assert decode_pool_transaction(encode_auxiliary_data(exit_), pool_address=POOL) == exit_

    forced = _exit(signature=None, burn_storage_id=0, auth_method=AuthMethod.FORCE)
    assert decode_pool_transaction(encode_auxiliary_data(forced), pool_address=POOL) == forced


def test_decoded_owner_is_canonical() -> None:
    decoded = decode_pool_transaction(encode_auxiliary_data(_join(owner="0x" + "AB" * 20)), pool_address=POOL)
    assert decoded.owner == "0x" + "ab" * 20


def test_noop_wrapper_cannot_be_decoded_as_pool_transaction() -> None:
    raw = AuxiliaryData(tx_type=PoolTransactionType.NOOP, data=b"").encode()
    with pytest.raises(ValueError):
        decode_pool_transaction(raw, pool_address=POOL)


def test_block_index_is_not_encoded() -> None:
    assert encode_auxiliary_data(replace(_join(), tx_idx=3)) == encode_auxiliary_data(_join())
