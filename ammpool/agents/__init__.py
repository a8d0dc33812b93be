"""
Signing for pool join/exit requests
"""

from .keyring import Keyring, SignatureType, recover_signer
from .typed_data_signer import (
    SigningCollaborator,
    TypedDataSigner,
    get_hash,
    hash_typed_data,
    to_typed_data,
)

__all__ = [
    "Keyring",
    "SignatureType",
    "recover_signer",
    "SigningCollaborator",
    "TypedDataSigner",
    "get_hash",
    "hash_typed_data",
    "to_typed_data",
]
