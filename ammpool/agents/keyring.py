"""
Local secp256k1 signing collaborator.

Signatures use the settlement engine's layout:

    r (32 bytes) || s (32 bytes) || v (1 byte, 27/28) || signature type (1 byte)

`EIP_712` signs the 32-byte typed-data digest directly; `ETH_SIGN` signs
``keccak("\\x19Ethereum Signed Message:\\n32" || digest)``.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Dict, Union

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import keccak

from ..core.errors import SignatureInvalid, UnknownSigner
from ..state.canonical import Address, hex_to_bytes, normalize_address


SIGNATURE_NBYTES = 66

_ETH_SIGN_PREFIX = b"\x19Ethereum Signed Message:\n32"


class SignatureType(IntEnum):
    ILLEGAL = 0
    INVALID = 1
    EIP_712 = 2
    ETH_SIGN = 3
    WALLET = 4


def _signed_digest(msg_hash: bytes, scheme: SignatureType) -> bytes:
    if not isinstance(msg_hash, (bytes, bytearray)) or len(msg_hash) != 32:
        raise ValueError("msg_hash must be 32 bytes")
    if scheme == SignatureType.EIP_712:
        return bytes(msg_hash)
    if scheme == SignatureType.ETH_SIGN:
        return keccak(_ETH_SIGN_PREFIX + bytes(msg_hash))
    raise ValueError(f"unsupported signature type: {scheme!r}")


def recover_signer(msg_hash: bytes, signature: bytes) -> Address:
    """
    Recover the signing address from a 66-byte signature.

    Raises:
        SignatureInvalid: If the signature is malformed or cannot be recovered
    """
    if not isinstance(signature, (bytes, bytearray)) or len(signature) != SIGNATURE_NBYTES:
        raise SignatureInvalid(f"signature must be {SIGNATURE_NBYTES} bytes")
    try:
        scheme = SignatureType(signature[65])
        digest = _signed_digest(msg_hash, scheme)
    except ValueError as exc:
        raise SignatureInvalid(str(exc)) from exc

    v = signature[64]
    if v not in (27, 28):
        raise SignatureInvalid(f"invalid recovery id: {v}")
    r = int.from_bytes(signature[0:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    try:
        sig = keys.Signature(vrs=(v - 27, r, s))
        public_key = sig.recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError) as exc:
        raise SignatureInvalid(f"signature recovery failed: {exc}") from exc
    return "0x" + public_key.to_canonical_address().hex()


class Keyring:
    """In-process signing collaborator keyed by address."""

    def __init__(self) -> None:
        self._keys: Dict[Address, keys.PrivateKey] = {}

    def add_key(self, private_key: Union[bytes, str]) -> Address:
        """Register a private key and return its address."""
        if isinstance(private_key, str):
            private_key = hex_to_bytes(private_key, name="private_key")
        pk = keys.PrivateKey(bytes(private_key))
        address = "0x" + pk.public_key.to_canonical_address().hex()
        self._keys[address] = pk
        return address

    async def sign(self, address: Address, msg_hash: bytes, scheme: SignatureType = SignatureType.EIP_712) -> bytes:
        owner = normalize_address(address, name="address")
        pk = self._keys.get(owner)
        if pk is None:
            raise UnknownSigner(owner)
        sig = pk.sign_msg_hash(_signed_digest(msg_hash, SignatureType(scheme)))
        return (
            sig.r.to_bytes(32, "big")
            + sig.s.to_bytes(32, "big")
            + bytes([sig.v + 27, int(scheme)])
        )

    async def verify(self, address: Address, msg_hash: bytes, signature: bytes) -> None:
        expected = normalize_address(address, name="address")
        recovered = recover_signer(msg_hash, signature)
        if recovered != expected:
            raise SignatureInvalid(f"signature recovers to {recovered}, expected {expected}")
