from balance_proxy.constraints.balance_check import BalanceCheck, check_sufficient_balance
from balance_proxy.constraints.deriver import (
    DerivedConstraints,
    approval_amount,
    clamp_slippage,
    derive_constraints,
    funding_amount,
    gas_cost_buffer,
    pre_post_floor,
    received_minimum,
    spent_limit,
)
from balance_proxy.constraints.types import (
    Approval,
    BalanceConstraint,
    CheckSet,
    Mode,
    TokenMetadata,
)

__all__ = (
    "Approval",
    "BalanceCheck",
    "BalanceConstraint",
    "CheckSet",
    "DerivedConstraints",
    "Mode",
    "TokenMetadata",
    "approval_amount",
    "check_sufficient_balance",
    "clamp_slippage",
    "derive_constraints",
    "funding_amount",
    "gas_cost_buffer",
    "pre_post_floor",
    "received_minimum",
    "spent_limit",
)
