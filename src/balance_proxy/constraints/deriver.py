"""
Conversion of simulated balance changes into proxy balance constraints.

All arithmetic is done on integers with exact fractions, rounding every bound in the direction
that keeps the constraint at least as strict as the configured slippage: minimum gains round
down, maximum losses round up in magnitude, and funded amounts round up.
"""

import dataclasses
from decimal import Decimal
from fractions import Fraction

from eth_typing import ChecksumAddress

from balance_proxy.config import settings
from balance_proxy.constraints.types import (
    Approval,
    BalanceConstraint,
    CheckSet,
    Mode,
    TokenMetadata,
)
from balance_proxy.exceptions.simulation import MissingAssetChange
from balance_proxy.functions import scale_ceil, scale_floor, to_fraction
from balance_proxy.logging import logger
from balance_proxy.simulation.types import AssetChange, SimulationResult

MIN_SLIPPAGE = 0.0
MAX_SLIPPAGE = 100.0


def clamp_slippage(slippage: float) -> float:
    return min(MAX_SLIPPAGE, max(MIN_SLIPPAGE, slippage))


def _slippage_fraction(slippage: float | Decimal | Fraction) -> Fraction:
    return to_fraction(slippage) / 100


def received_minimum(diff: int, slippage: float | Decimal | Fraction) -> int:
    """
    The smallest acceptable gain for a simulated gain of `diff`.
    """

    return scale_floor(diff, 1 - _slippage_fraction(slippage))


def spent_limit(diff: int, slippage: float | Decimal | Fraction) -> int:
    """
    The largest acceptable loss for a simulated change of `diff`, as a negative number.
    """

    return -scale_ceil(abs(diff), 1 + _slippage_fraction(slippage))


def approval_amount(diff: int, buffer: float | Decimal | Fraction | None = None) -> int:
    """
    The amount to approve or transfer for a simulated loss of `diff`, with a small buffer against
    rounding loss when amounts are re-derived.
    """

    if buffer is None:
        buffer = settings.pipeline.approval_buffer
    return scale_ceil(abs(diff), to_fraction(buffer))


def funding_amount(
    approximate_spent: int,
    slippage: float | Decimal | Fraction,
    buffer: float | Decimal | Fraction | None = None,
) -> int:
    """
    The amount to fund before the authoritative simulation, from an approximate spent amount.
    """

    if buffer is None:
        buffer = settings.pipeline.approval_buffer
    return scale_ceil(
        abs(approximate_spent), (1 + _slippage_fraction(slippage)) * to_fraction(buffer)
    )


def gas_cost_buffer(
    gas_used: int, gas_price: int, multiplier: float | Decimal | Fraction | None = None
) -> int:
    """
    Estimated native currency paid for gas outside the simulated call.
    """

    if multiplier is None:
        multiplier = settings.pipeline.gas_safety_multiplier
    return scale_ceil(gas_used, to_fraction(multiplier)) * gas_price


def pre_post_floor(
    change: AssetChange,
    slippage: float | Decimal | Fraction,
    *,
    gas_cost: int = 0,
) -> int:
    """
    The minimum final balance of the asset after the call. Gains are reduced by the slippage and
    losses are increased by it. The gas cost is subtracted for native currency legs.
    """

    fraction = _slippage_fraction(slippage)
    factor = 1 - fraction if change.diff > 0 else 1 + fraction
    floor = change.pre + scale_floor(change.diff, factor)
    if change.token.is_native:
        floor -= gas_cost
    return floor


@dataclasses.dataclass(slots=True, frozen=True)
class DerivedConstraints:
    mode: Mode
    spent: AssetChange | None
    received: AssetChange
    approval_amount: int | None  # None when nothing but native currency is spent
    check_set: CheckSet


def derive_constraints(
    result: SimulationResult,
    *,
    user: ChecksumAddress,
    call_target: ChecksumAddress,
    mode: Mode,
    slippage: float,
    gas_price: int = 0,
) -> DerivedConstraints:
    """
    Derive the balance constraints for a proxy call from its authoritative simulation.

    Only the first asset with a negative change and the first with a positive change are modeled.
    Intermediate tokens of a multi-hop route are expected to net to zero for the user.
    """

    slippage = clamp_slippage(slippage)
    spent, received = result.spent, result.received
    if received is None:
        raise MissingAssetChange(direction="positive")

    moved = [change for change in result.asset_changes if change.diff != 0]
    if len(moved) > 2:  # noqa: PLR2004
        logger.warning(
            f"Simulation moved {len(moved)} assets; only {spent.token.symbol if spent else 'none'}"
            f" (spent) and {received.token.symbol} (received) are constrained"
        )

    check_set = CheckSet()
    for change in (spent, received):
        if change is not None:
            check_set.metadata[change.token.address] = TokenMetadata(
                symbol=change.token.symbol, decimals=change.token.decimals
            )

    received_amount = received_minimum(received.diff, slippage)
    check_set.withdrawals.append(
        BalanceConstraint(target=user, token=received.token.address, amount=received_amount)
    )

    approval: int | None = None
    if spent is not None and not spent.token.is_native:
        approval = approval_amount(spent.diff)
        check_set.approvals.append(
            Approval(
                balance=BalanceConstraint(
                    target=call_target, token=spent.token.address, amount=approval
                )
            )
        )

    match mode:
        case Mode.DIFFS:
            check_set.diffs.append(
                BalanceConstraint(target=user, token=received.token.address, amount=received_amount)
            )
            # A native input is bounded by the call value, not by a diff constraint
            if spent is not None and not spent.token.is_native:
                check_set.diffs.append(
                    BalanceConstraint(
                        target=user,
                        token=spent.token.address,
                        amount=spent_limit(spent.diff, slippage),
                    )
                )
        case Mode.PRE_POST:
            gas_cost = gas_cost_buffer(result.gas_used, gas_price)
            for change in (received, spent):
                if change is None:
                    continue
                check_set.post_transfers.append(
                    BalanceConstraint(
                        target=user,
                        token=change.token.address,
                        amount=pre_post_floor(change, slippage, gas_cost=gas_cost),
                    )
                )

    logger.debug(
        f"Derived {mode.value} constraints: {len(check_set.approvals)} approval(s), "
        f"{len(check_set.balances(mode))} balance check(s), "
        f"{len(check_set.withdrawals)} withdrawal(s)"
    )
    return DerivedConstraints(
        mode=mode,
        spent=spent,
        received=received,
        approval_amount=approval,
        check_set=check_set,
    )
