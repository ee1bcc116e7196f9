import eth_abi.abi
import pytest

from balance_proxy.exceptions.rewrite import CommandLayoutError
from balance_proxy.universal_router.commands import CommandType, V4Action
from balance_proxy.universal_router.rewriter import (
    ADDRESS_THIS,
    decode_swap,
    decode_v4_plan,
    find_settle_actions,
    rewrite_swap_input,
    rewrite_v4_plan,
)
from tests.conftest import USDC, USER, WETH

V3_TYPES = ["address", "uint256", "uint256", "bytes", "bool"]
V2_TYPES = ["address", "uint256", "uint256", "address[]", "bool"]
SETTLE_TYPES = ["address", "uint256", "bool"]

POOL_KEY_SWAP_PARAMS = b"\x11" * 96


def v3_path(*hops: str | int) -> bytes:
    return b"".join(
        bytes.fromhex(hop[2:]) if isinstance(hop, str) else hop.to_bytes(3) for hop in hops
    )


def v4_input(*actions: tuple[int, bytes]) -> bytes:
    return eth_abi.abi.encode(
        ["bytes", "bytes[]"],
        [bytes(action for action, _ in actions), [param for _, param in actions]],
    )


def settle(currency: str, amount: int, payer_is_user: bool) -> bytes:  # noqa: FBT001
    return eth_abi.abi.encode(SETTLE_TYPES, [currency, amount, payer_is_user])


def test_decode_v3_exact_in():
    data = eth_abi.abi.encode(V3_TYPES, [USER, 1_000_000, 990, v3_path(USDC, 500, WETH), True])
    swap = decode_swap(CommandType.V3_SWAP_EXACT_IN, data)

    assert swap.is_exact_in
    assert swap.token_in == USDC
    assert swap.token_out == WETH
    assert swap.fees == (500,)
    assert swap.max_amount_in == 1_000_000
    assert swap.payer_is_user is True


def test_decode_v3_exact_out_reads_reversed_path():
    # Exact output paths are encoded from the output token back to the input token
    data = eth_abi.abi.encode(
        V3_TYPES, [USER, 5 * 10**17, 2_000_000, v3_path(WETH, 500, USDC), True]
    )
    swap = decode_swap(CommandType.V3_SWAP_EXACT_OUT, data)

    assert not swap.is_exact_in
    assert swap.token_in == USDC
    assert swap.token_out == WETH
    assert swap.amount_specified == 5 * 10**17
    assert swap.max_amount_in == 2_000_000


def test_decode_v2_exact_out():
    data = eth_abi.abi.encode(V2_TYPES, [USER, 100, 250, [USDC, WETH], True])
    swap = decode_swap(CommandType.V2_SWAP_EXACT_OUT, data)
    assert swap.token_in == USDC
    assert swap.token_out == WETH
    assert swap.max_amount_in == 250


def test_decode_v2_rejects_empty_path():
    data = eth_abi.abi.encode(V2_TYPES, [USER, 100, 250, [], True])
    with pytest.raises(CommandLayoutError, match="empty"):
        decode_swap(CommandType.V2_SWAP_EXACT_IN, data)


@pytest.mark.parametrize("payer_is_user", [True, False])
@pytest.mark.parametrize("recipient", [USER, ADDRESS_THIS])
@pytest.mark.parametrize(
    ("command", "types", "path"),
    [
        (CommandType.V3_SWAP_EXACT_IN, V3_TYPES, v3_path(USDC, 500, WETH)),
        (CommandType.V3_SWAP_EXACT_OUT, V3_TYPES, v3_path(WETH, 3000, USDC)),
        (CommandType.V2_SWAP_EXACT_IN, V2_TYPES, [USDC, WETH]),
        (CommandType.V2_SWAP_EXACT_OUT, V2_TYPES, [USDC, WETH]),
    ],
)
def test_rewrite_swap_forces_payer_and_recipient(
    command: CommandType,
    types: list[str],
    path: bytes | list[str],
    recipient: str,
    payer_is_user: bool,  # noqa: FBT001
):
    original = eth_abi.abi.encode(types, ["0x" + "ab" * 20, 123, 456, path, payer_is_user])
    rewritten = rewrite_swap_input(command, original, recipient)

    swap = decode_swap(command, rewritten)
    assert swap.recipient == recipient
    assert swap.payer_is_user is False

    before = decode_swap(command, original)
    assert (swap.amount_specified, swap.amount_limit, swap.path, swap.fees) == (
        before.amount_specified,
        before.amount_limit,
        before.path,
        before.fees,
    )
    assert len(rewritten) == len(original)


def test_rewrite_v4_settle_only():
    swap_step = (V4Action.SWAP_EXACT_IN_SINGLE, POOL_KEY_SWAP_PARAMS)
    settle_step = (V4Action.SETTLE, settle(USDC, 0, True))
    take_step = (V4Action.TAKE_ALL, eth_abi.abi.encode(["address", "uint256"], [WETH, 1]))
    data = v4_input(swap_step, settle_step, take_step)

    result = rewrite_v4_plan(data)

    assert result.modified
    assert result.settles_rewritten == 1
    plan = decode_v4_plan(result.data)
    assert plan.actions == bytes(
        [V4Action.SWAP_EXACT_IN_SINGLE, V4Action.SETTLE, V4Action.TAKE_ALL]
    )
    assert plan.params[0] == POOL_KEY_SWAP_PARAMS
    assert plan.params[1] == settle(USDC, 0, False)
    assert plan.params[2] == take_step[1]


def test_rewrite_v4_without_settle_is_a_no_op():
    data = v4_input(
        (V4Action.SWAP_EXACT_IN_SINGLE, POOL_KEY_SWAP_PARAMS),
        (V4Action.SETTLE_ALL, eth_abi.abi.encode(["address", "uint256"], [USDC, 10])),
    )
    result = rewrite_v4_plan(data)
    assert not result.modified
    assert result.data == data


def test_rewrite_v4_skips_malformed_settle():
    data = v4_input(
        (V4Action.SETTLE, b"\x00" * 40),
        (V4Action.SETTLE, settle(WETH, 5, True)),
    )
    result = rewrite_v4_plan(data)
    assert result.settles_rewritten == 1
    assert len(result.skipped) == 1
    assert decode_v4_plan(result.data).params[0] == b"\x00" * 40


def test_v4_plan_length_mismatch():
    data = eth_abi.abi.encode(["bytes", "bytes[]"], [bytes([V4Action.SETTLE]), []])
    with pytest.raises(CommandLayoutError):
        decode_v4_plan(data)


def test_find_settle_actions():
    data = v4_input(
        (V4Action.SETTLE, settle(USDC, 1_000, True)),
        (V4Action.SETTLE, settle(WETH, 0, False)),
    )
    settles = find_settle_actions(data)
    assert [(s.currency, s.amount, s.payer_is_user) for s in settles] == [
        (USDC, 1_000, True),
        (WETH, 0, False),
    ]
