"""
Pool accounting kernel: proportional mint/burn with lossy amount rounding.

All functions are pure. They take a `PoolState` snapshot and return
computations (raw and rounded amounts) or a new `PoolState`.

Join (supply > 0):
    candidate_i    = floor(join_i * supply / balance_i)     for balance_i > 0
    pool_out       = min(candidate_i)                       (0 if no balance_i > 0)
    ratio          = floor(pool_out * BASE / supply)
    deposit_i      = floor(balance_i * ratio / BASE)

Join (supply == 0):
    pool_out = BASE, deposit_i = join_i

Exit:
    ratio          = floor(burn * BASE / supply)
    exit_i         = floor(balance_i * ratio / BASE)
    valid          = all(exit_i >= exit_min_i)

Deposits, minted pool tokens and withdrawals are rounded down with
`round_to_float_value` before they reach the ledger, and only rounded amounts
are applied to the mirrored state. The burn transfer carries the requested
amount as signed; only the supply decrement uses the rounded burn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence, Tuple

from ..state.pool import POOL_TOKEN_BASE, PoolState
from .errors import SlippageNotMet, ZeroMintAmount
from .float_encoding import FLOAT24, FloatEncoding, round_to_float_value


logger = logging.getLogger(__name__)


class AccountingPolicy(Enum):
    """What to do with accounting violations."""
    STRICT = "STRICT"  # raise, matching the pool contract's revert semantics
    ADVISORY = "ADVISORY"  # log and continue


class ViolationKind(Enum):
    ZERO_MINT = "ZERO_MINT"
    SLIPPAGE = "SLIPPAGE"


@dataclass(frozen=True)
class AccountingViolation:
    kind: ViolationKind
    message: str
    computed: object = None
    minimum: object = None


@dataclass(frozen=True)
class JoinComputation:
    raw_pool_amount_out: int
    raw_deposit_amounts: Tuple[int, ...]
    pool_amount_out: int
    deposit_amounts: Tuple[int, ...]
    violations: Tuple[AccountingViolation, ...] = ()


@dataclass(frozen=True)
class ExitComputation:
    burn_amount: int
    raw_exit_amounts: Tuple[int, ...]
    exit_amounts: Tuple[int, ...]
    valid: bool
    violations: Tuple[AccountingViolation, ...] = ()


def _require_amounts(name: str, values: Sequence[int], length: int) -> Tuple[int, ...]:
    if len(values) != length:
        raise ValueError(f"{name} must have {length} entries, got {len(values)}")
    out = []
    for i, v in enumerate(values):
        if not isinstance(v, int) or isinstance(v, bool):
            raise TypeError(f"{name}[{i}] must be an int")
        if v < 0:
            raise ValueError(f"{name}[{i}] must be non-negative: {v}")
        out.append(v)
    return tuple(out)


def compute_join(
    join_amounts: Sequence[int],
    state: PoolState,
    *,
    mint_min_amount: int = 0,
    pool_token_base: int = POOL_TOKEN_BASE,
    encoding: FloatEncoding = FLOAT24,
) -> JoinComputation:
    """
    Compute the pool tokens minted and the amounts deposited for a join.

    The tightest token dominates: a provider never mints more than their
    weakest contribution justifies. The first provider (supply == 0) sets the
    initial ratio and receives exactly `pool_token_base` pool tokens.
    """
    join_amounts = _require_amounts("join_amounts", join_amounts, len(state.balances))
    supply = state.total_supply
    balances = state.balances

    violations = []
    if supply == 0:
        pool_amount_out = pool_token_base
        raw_deposits = join_amounts
    else:
        pool_amount_out = 0
        initial_value_set = False
        for amount, balance in zip(join_amounts, balances):
            if balance > 0:
                candidate = amount * supply // balance
                if not initial_value_set or candidate < pool_amount_out:
                    pool_amount_out = candidate
                    initial_value_set = True

        ratio = pool_amount_out * pool_token_base // supply
        raw_deposits = tuple(balance * ratio // pool_token_base for balance in balances)

    if pool_amount_out == 0:
        violations.append(
            AccountingViolation(kind=ViolationKind.ZERO_MINT, message="nothing to mint", computed=0)
        )
    if pool_amount_out < mint_min_amount:
        violations.append(
            AccountingViolation(
                kind=ViolationKind.SLIPPAGE,
                message="min pool amount out not achieved",
                computed=pool_amount_out,
                minimum=mint_min_amount,
            )
        )

    return JoinComputation(
        raw_pool_amount_out=pool_amount_out,
        raw_deposit_amounts=tuple(raw_deposits),
        pool_amount_out=round_to_float_value(pool_amount_out, encoding),
        deposit_amounts=tuple(round_to_float_value(a, encoding) for a in raw_deposits),
        violations=tuple(violations),
    )


def compute_exit(
    burn_amount: int,
    exit_min_amounts: Sequence[int],
    state: PoolState,
    *,
    pool_token_base: int = POOL_TOKEN_BASE,
    encoding: FloatEncoding = FLOAT24,
) -> ExitComputation:
    """
    Compute the per-token withdrawal for burning `burn_amount` pool tokens.

    Slippage is judged on the unrounded amounts.

    Raises:
        ValueError: If the pool has no supply or the burn exceeds it
    """
    if not isinstance(burn_amount, int) or isinstance(burn_amount, bool):
        raise TypeError("burn_amount must be an int")
    if burn_amount < 0:
        raise ValueError(f"burn_amount must be non-negative: {burn_amount}")
    exit_min_amounts = _require_amounts("exit_min_amounts", exit_min_amounts, len(state.balances))
    supply = state.total_supply
    if supply == 0:
        raise ValueError("cannot exit a pool with no supply")
    if burn_amount > supply:
        raise ValueError(f"Cannot burn more pool tokens than supply: {burn_amount} > {supply}")

    ratio = burn_amount * pool_token_base // supply
    raw_exits = tuple(balance * ratio // pool_token_base for balance in state.balances)
    valid = all(amount >= minimum for amount, minimum in zip(raw_exits, exit_min_amounts))

    violations = []
    if not valid:
        violations.append(
            AccountingViolation(
                kind=ViolationKind.SLIPPAGE,
                message="exit min amounts not reached",
                computed=raw_exits,
                minimum=exit_min_amounts,
            )
        )

    return ExitComputation(
        burn_amount=round_to_float_value(burn_amount, encoding),
        raw_exit_amounts=raw_exits,
        exit_amounts=tuple(round_to_float_value(a, encoding) for a in raw_exits),
        valid=valid,
        violations=tuple(violations),
    )


def apply_join(state: PoolState, computation: JoinComputation) -> PoolState:
    """Credit rounded deposits to the pool and the rounded mint to the supply."""
    if len(computation.deposit_amounts) != len(state.balances):
        raise ValueError("computation does not match the pool's token count")
    return PoolState(
        total_supply=state.total_supply + computation.pool_amount_out,
        balances=tuple(b + a for b, a in zip(state.balances, computation.deposit_amounts)),
    )


def apply_exit(state: PoolState, computation: ExitComputation) -> PoolState:
    """
    Debit rounded withdrawals and the rounded burn when the exit is valid.

    An invalid exit moves nothing (zero is subtracted from the supply).
    """
    if len(computation.exit_amounts) != len(state.balances):
        raise ValueError("computation does not match the pool's token count")
    if not computation.valid:
        return state

    balances = []
    for i, (b, a) in enumerate(zip(state.balances, computation.exit_amounts)):
        if a > b:
            raise ValueError(f"exit amount exceeds pool balance for token {i}: {a} > {b}")
        balances.append(b - a)
    if computation.burn_amount > state.total_supply:
        raise ValueError(f"burn exceeds supply: {computation.burn_amount} > {state.total_supply}")
    return PoolState(total_supply=state.total_supply - computation.burn_amount, balances=tuple(balances))


def enforce_policy(violations: Iterable[AccountingViolation], policy: AccountingPolicy) -> None:
    """
    Apply the accounting policy to a computation's violations.

    Under STRICT the first violation raises; under ADVISORY each one is logged.
    """
    for violation in violations:
        if policy == AccountingPolicy.ADVISORY:
            logger.warning("accounting violation ignored (%s): %s", violation.kind.value, violation.message)
            continue
        if violation.kind == ViolationKind.ZERO_MINT:
            raise ZeroMintAmount(violation.message)
        raise SlippageNotMet(violation.computed, violation.minimum)
