"""
Runtime configuration for the pool processor.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..agents.keyring import SignatureType
from ..core.accounting import AccountingPolicy
from ..core.float_encoding import FLOAT24, FloatEncoding
from ..state.transactions import DEFAULT_VALID_UNTIL


@dataclass(frozen=True)
class ProcessorConfig:
    # EIP-712 domain chain id.
    chain_id: int = 1

    # Accounting violations (slippage, zero mint):
    # - STRICT raises before any ledger write, as the pool contract would revert.
    # - ADVISORY logs them and carries on (invalid exits then move nothing).
    accounting_policy: AccountingPolicy = AccountingPolicy.STRICT

    # Lossy rounding applied to every amount written to the ledger.
    float_encoding: FloatEncoding = FLOAT24

    default_valid_until: int = DEFAULT_VALID_UNTIL

    # Fee token of the mint, burn and withdrawal transfers (all fee-free).
    fee_token: str = "ETH"

    # Seal pending ledger transactions before reading the balance snapshot, so
    # the snapshot reflects everything up to the previous transaction.
    settle_before_snapshot: bool = True

    signature_type: SignatureType = SignatureType.EIP_712

    def __post_init__(self) -> None:
        if not isinstance(self.chain_id, int) or isinstance(self.chain_id, bool) or self.chain_id <= 0:
            raise ValueError(f"chain_id must be a positive int: {self.chain_id!r}")
        if not isinstance(self.fee_token, str) or not self.fee_token:
            raise ValueError("fee_token must be a non-empty string")
        if not isinstance(self.accounting_policy, AccountingPolicy):
            raise TypeError("accounting_policy must be an AccountingPolicy")
