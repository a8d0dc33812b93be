"""Exception types for the AMM pool mirror.

Signing failures always abort the transaction being processed. Accounting
violations are raised only under ``AccountingPolicy.STRICT``; see
``ammpool.core.accounting.enforce_policy``.
"""

from __future__ import annotations


class AmmPoolError(Exception):
    """Base class for pool processing errors."""


class SignatureInvalid(AmmPoolError):
    """Raised when a signature is missing, malformed or does not recover to the owner."""


class UnsupportedAuthMethod(AmmPoolError):
    """Raised when a transaction uses an authorization path that is not implemented."""


class StorageIDReused(AmmPoolError):
    """Raised when a storage ID is consumed twice against the same pool."""


class UnknownSigner(AmmPoolError, KeyError):
    """Raised when the signing collaborator holds no key for an address."""


class IncompleteCallback(AmmPoolError):
    """Raised when a block is sealed with a callback that is missing its index or payload."""


class FloatOverflowError(ValueError):
    """Raised when an amount exceeds the largest value of a float encoding."""


class AccountingViolationError(AmmPoolError):
    """Base class for accounting violations (hard failures under the strict policy)."""


class SlippageNotMet(AccountingViolationError):
    """Raised when a computed output is below the caller's minimum."""

    def __init__(self, computed: object, minimum: object) -> None:
        self.computed = computed
        self.minimum = minimum
        super().__init__(f"slippage not met: computed {computed} < minimum {minimum}")


class ZeroMintAmount(AccountingViolationError):
    """Raised when a join would mint no pool tokens."""
