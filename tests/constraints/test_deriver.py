from decimal import Decimal
from fractions import Fraction

import pytest
from hypothesis import given, strategies

from balance_proxy.constants import MAX_INT256, NATIVE_CURRENCY_SENTINEL, ZERO_ADDRESS
from balance_proxy.constraints import (
    Mode,
    approval_amount,
    clamp_slippage,
    derive_constraints,
    funding_amount,
    gas_cost_buffer,
    pre_post_floor,
    received_minimum,
    spent_limit,
)
from balance_proxy.exceptions.simulation import MissingAssetChange
from balance_proxy.simulation import AssetChange, CallResult, SimulationResult, TokenInfo
from tests.conftest import UNIVERSAL_ROUTER, USDC, USER, WETH

USDC_INFO = TokenInfo(address=USDC, symbol="USDC", decimals=6)
WETH_INFO = TokenInfo(address=WETH, symbol="WETH", decimals=18)
ETH_INFO = TokenInfo(address=NATIVE_CURRENCY_SENTINEL, symbol="ETH", decimals=18)


def simulation(*changes: AssetChange, gas_used: int = 100_000) -> SimulationResult:
    return SimulationResult(
        asset_changes=changes, results=(CallResult(success=True, gas_used=gas_used),)
    )


def test_spent_limit_rounds_away_from_zero():
    assert spent_limit(-1_000_000, 1) == -1_010_000
    assert spent_limit(-1_000_001, 1) == -1_010_002
    assert spent_limit(-3, 0.001) == -4


def test_received_minimum_rounds_down():
    assert received_minimum(10**18, 0.5) == 995 * 10**15
    assert received_minimum(999, 0.1) == 998
    assert received_minimum(1, 50) == 0


@given(
    diff=strategies.integers(min_value=1, max_value=MAX_INT256),
    slippage=strategies.decimals(min_value=0, max_value=100, places=3),
)
def test_bounds_never_looser_than_slippage(diff: int, slippage: Decimal) -> None:
    fraction = Fraction(slippage) / 100
    assert received_minimum(diff, slippage) <= diff * (1 - fraction)
    assert spent_limit(-diff, slippage) <= -diff * (1 + fraction)


def test_clamp_slippage():
    assert clamp_slippage(-1) == 0
    assert clamp_slippage(150) == 100
    assert clamp_slippage(0.5) == 0.5


def test_approval_and_funding_amounts():
    assert approval_amount(-1_000_000) == 1_001_000
    assert approval_amount(-1_000_000, buffer=1) == 1_000_000
    assert funding_amount(1_000_000, 1, buffer=1) == 1_010_000
    assert funding_amount(-1_000_000, 0, buffer=1.001) == 1_001_000


def test_gas_cost_buffer():
    assert gas_cost_buffer(100_000, 10**9) == 150_000 * 10**9
    assert gas_cost_buffer(100_000, 10**9, multiplier=2) == 200_000 * 10**9


def test_pre_post_floor_native_is_strictly_lower():
    received = AssetChange(token=ETH_INFO, pre=10**18, post=11 * 10**17)
    erc20 = AssetChange(token=WETH_INFO, pre=10**18, post=11 * 10**17)

    assert pre_post_floor(erc20, 1) == 10**18 + 99 * 10**15
    assert pre_post_floor(received, 1, gas_cost=1) < pre_post_floor(erc20, 1)


def test_pre_post_floor_for_loss():
    spent = AssetChange(token=USDC_INFO, pre=5_000_000, post=4_000_000)
    assert pre_post_floor(spent, 1) == 5_000_000 - 1_010_000


def test_derive_diffs():
    spent = AssetChange(token=USDC_INFO, pre=5_000_000, post=4_000_000)
    received = AssetChange(token=WETH_INFO, pre=0, post=3 * 10**14)

    derived = derive_constraints(
        simulation(spent, received),
        user=USER,
        call_target=UNIVERSAL_ROUTER,
        mode=Mode.DIFFS,
        slippage=1,
    )

    check_set = derived.check_set
    assert derived.approval_amount == 1_001_000
    assert [(c.token, c.amount) for c in check_set.diffs] == [
        (WETH, 297 * 10**12),
        (USDC, -1_010_000),
    ]
    assert [(c.target, c.token, c.amount) for c in check_set.withdrawals] == [
        (USER, WETH, 297 * 10**12)
    ]
    (approval,) = check_set.approvals
    assert approval.balance.target == UNIVERSAL_ROUTER
    assert approval.balance.amount == 1_001_000
    assert not approval.use_transfer
    assert check_set.post_transfers == []
    assert check_set.metadata[USDC].decimals == 6


def test_derive_diffs_native_input_has_no_spent_diff():
    spent = AssetChange(token=ETH_INFO, pre=2 * 10**18, post=10**18)
    received = AssetChange(token=USDC_INFO, pre=0, post=2_000_000_000)

    derived = derive_constraints(
        simulation(spent, received),
        user=USER,
        call_target=UNIVERSAL_ROUTER,
        mode=Mode.DIFFS,
        slippage=0.5,
    )

    assert derived.approval_amount is None
    assert derived.check_set.approvals == []
    assert [c.token for c in derived.check_set.diffs] == [USDC]


def test_derive_pre_post():
    spent = AssetChange(token=USDC_INFO, pre=5_000_000, post=4_000_000)
    received = AssetChange(token=ETH_INFO, pre=10**18, post=11 * 10**17)

    derived = derive_constraints(
        simulation(spent, received, gas_used=100_000),
        user=USER,
        call_target=UNIVERSAL_ROUTER,
        mode=Mode.PRE_POST,
        slippage=1,
        gas_price=10**9,
    )

    native_floor, usdc_floor = derived.check_set.post_transfers
    assert native_floor.token == ZERO_ADDRESS
    assert native_floor.amount == 10**18 + 99 * 10**15 - 150_000 * 10**9
    assert usdc_floor.amount == 5_000_000 - 1_010_000
    assert derived.check_set.diffs == []
    assert derived.check_set.balances(Mode.PRE_POST) == derived.check_set.post_transfers


def test_derive_without_gain_raises():
    spent = AssetChange(token=USDC_INFO, pre=5_000_000, post=4_000_000)
    with pytest.raises(MissingAssetChange):
        derive_constraints(
            simulation(spent),
            user=USER,
            call_target=UNIVERSAL_ROUTER,
            mode=Mode.DIFFS,
            slippage=1,
        )


def test_for_universal_router():
    spent = AssetChange(token=USDC_INFO, pre=5_000_000, post=4_000_000)
    received = AssetChange(token=WETH_INFO, pre=0, post=3 * 10**14)
    proxy_target = "0x000000000000000000000000000000000000dEaD"
    check_set = derive_constraints(
        simulation(spent, received),
        user=USER,
        call_target=proxy_target,
        mode=Mode.DIFFS,
        slippage=1,
    ).check_set

    adjusted = check_set.for_universal_router(UNIVERSAL_ROUTER, native_input=False)
    (approval,) = adjusted.approvals
    assert approval.use_transfer
    assert approval.balance.target == UNIVERSAL_ROUTER
    assert approval.balance.amount == 1_001_000
    assert adjusted.withdrawals == []
    assert adjusted.diffs == check_set.diffs

    assert check_set.for_universal_router(UNIVERSAL_ROUTER, native_input=True).approvals == []
