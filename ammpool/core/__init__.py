"""
Core pool accounting (pure, integer-only)
"""

from .accounting import (
    AccountingPolicy,
    AccountingViolation,
    ExitComputation,
    JoinComputation,
    ViolationKind,
    apply_exit,
    apply_join,
    compute_exit,
    compute_join,
    enforce_policy,
)
from .errors import (
    AmmPoolError,
    SignatureInvalid,
    SlippageNotMet,
    StorageIDReused,
    UnsupportedAuthMethod,
    ZeroMintAmount,
)
from .float_encoding import FLOAT16, FLOAT24, FloatEncoding, from_float, round_to_float_value, to_float

__all__ = [
    "AccountingPolicy",
    "AccountingViolation",
    "ExitComputation",
    "JoinComputation",
    "ViolationKind",
    "apply_exit",
    "apply_join",
    "compute_exit",
    "compute_join",
    "enforce_policy",
    "AmmPoolError",
    "SignatureInvalid",
    "SlippageNotMet",
    "StorageIDReused",
    "UnsupportedAuthMethod",
    "ZeroMintAmount",
    "FLOAT16",
    "FLOAT24",
    "FloatEncoding",
    "from_float",
    "round_to_float_value",
    "to_float",
]
