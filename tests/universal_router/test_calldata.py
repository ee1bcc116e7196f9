import eth_abi.abi
import pytest

from balance_proxy.exceptions.rewrite import CommandLayoutError
from balance_proxy.types import RewriteWarning
from balance_proxy.universal_router import (
    CalldataRewriter,
    RouterCall,
    decode_router_call,
    encode_router_call,
    extract_swap_info,
    is_native_input,
    remove_permit_command,
    rewrite_router_calldata,
    should_keep_in_router,
)
from balance_proxy.universal_router.calldata import EXECUTE_SELECTOR, EXECUTE_WITH_DEADLINE_SELECTOR
from balance_proxy.universal_router.commands import CommandType, V4Action, decode_commands
from balance_proxy.universal_router.rewriter import ADDRESS_THIS, decode_swap, find_settle_actions
from tests.conftest import USDC, USER, WETH, RecordingSubscriber

V3_TYPES = ["address", "uint256", "uint256", "bytes", "bool"]
V2_TYPES = ["address", "uint256", "uint256", "address[]", "bool"]
DEADLINE = 1_900_000_000
MSG_SENDER = "0x0000000000000000000000000000000000000001"


def v3_path(*hops: str | int) -> bytes:
    return b"".join(
        bytes.fromhex(hop[2:]) if isinstance(hop, str) else hop.to_bytes(3) for hop in hops
    )


def v3_swap(amount_in: int = 1_000_000, *, payer_is_user: bool = True) -> bytes:
    return eth_abi.abi.encode(
        V3_TYPES, [MSG_SENDER, amount_in, 1, v3_path(USDC, 500, WETH), payer_is_user]
    )


def execute(commands: str, inputs: list[bytes], deadline: int | None = DEADLINE) -> bytes:
    command_bytes = bytes.fromhex(commands.removeprefix("0x"))
    if deadline is None:
        return EXECUTE_SELECTOR + eth_abi.abi.encode(
            ["bytes", "bytes[]"], [command_bytes, inputs]
        )
    return EXECUTE_WITH_DEADLINE_SELECTOR + eth_abi.abi.encode(
        ["bytes", "bytes[]", "uint256"], [command_bytes, inputs, deadline]
    )


def test_router_call_round_trip():
    for deadline in (DEADLINE, None):
        calldata = execute("0x0b000c", [b"\x01", v3_swap(), b"\x02"], deadline)
        call = decode_router_call(calldata)
        assert call.deadline == deadline
        assert encode_router_call(call) == calldata


def test_decode_rejects_mismatched_inputs():
    with pytest.raises(CommandLayoutError):
        decode_router_call(execute("0x000c", [v3_swap()]))


def test_decode_rejects_truncated_execute_arguments():
    with pytest.raises(CommandLayoutError):
        decode_router_call(execute("0x00", [v3_swap()])[:40])


def test_single_v3_swap_goes_to_user():
    result = rewrite_router_calldata(execute("0x00", [v3_swap()]), USER)

    assert result.is_router_call
    assert not result.keep_in_router
    call = decode_router_call(result.calldata)
    assert call.deadline == DEADLINE
    assert [command.raw for command in call.commands] == [0x00]
    swap = decode_swap(CommandType.V3_SWAP_EXACT_IN, call.inputs[0])
    assert swap.recipient == USER
    assert swap.payer_is_user is False


def test_swap_then_unwrap_keeps_output_in_router():
    unwrap_input = eth_abi.abi.encode(["address", "uint256"], [USER, 0])
    result = rewrite_router_calldata(execute("0x000c", [v3_swap(), unwrap_input]), USER)

    assert result.keep_in_router
    call = decode_router_call(result.calldata)
    swap = decode_swap(CommandType.V3_SWAP_EXACT_IN, call.inputs[0])
    assert swap.recipient == ADDRESS_THIS
    assert swap.payer_is_user is False
    assert call.inputs[1] == unwrap_input


@pytest.mark.parametrize("commands", ["0x0004", "0x0006", "0x000c", "0x008c"])
def test_keep_in_router_commands(commands: str):
    assert should_keep_in_router(decode_commands(commands))


def test_permit_commands_removed_with_inputs():
    permit_input = b"\xaa" * 64
    calldata = execute("0x0a00", [permit_input, v3_swap()])

    call, removed = remove_permit_command(decode_router_call(calldata))
    assert removed == 1
    assert [command.raw for command in call.commands] == [0x00]
    assert permit_input not in call.inputs

    result = rewrite_router_calldata(calldata, USER)
    assert result.removed_permits == 1
    assert len(decode_router_call(result.calldata).commands) == 1


@pytest.mark.parametrize(
    ("commands", "removed_index"),
    [("0x0a0300", 0), ("0x000a", 1), ("0x8a00", 0), ("0x030a00", 0)],
)
def test_first_permit_command_removed(commands: str, removed_index: int):
    call = RouterCall(
        commands=tuple(decode_commands(commands)),
        inputs=tuple(bytes([i]) for i in range(len(commands) // 2 - 1)),
        deadline=None,
    )

    shortened, removed = remove_permit_command(call)

    assert removed == 1
    assert len(shortened.commands) == len(call.commands) - 1
    assert shortened.commands == call.commands[:removed_index] + call.commands[removed_index + 1 :]
    assert bytes([removed_index]) not in shortened.inputs
    assert len(shortened.inputs) == len(shortened.commands)


def test_no_permit_command_leaves_call_unchanged():
    call = decode_router_call(execute("0x000c", [v3_swap(), b"\x01"]))
    assert remove_permit_command(call) == (call, 0)


def test_unknown_commands_untouched():
    calldata = execute("0x3700", [b"\x99" * 7, v3_swap()])
    call = decode_router_call(rewrite_router_calldata(calldata, USER).calldata)
    assert call.commands[0].raw == 0x37
    assert call.inputs[0] == b"\x99" * 7


def test_non_router_calldata_passes_through():
    calldata = bytes.fromhex("a9059cbb") + bytes(64)
    result = rewrite_router_calldata(calldata, USER)
    assert not result.is_router_call
    assert result.calldata == calldata


def test_layout_mismatch_is_best_effort(subscriber: RecordingSubscriber):
    malformed = b"\x00" * 100
    calldata = execute("0x00", [malformed])

    rewriter = CalldataRewriter(fail_closed=False)
    rewriter.subscribe(subscriber)
    result = rewriter.rewrite(calldata, USER)

    assert decode_router_call(result.calldata).inputs[0] == malformed
    assert len(result.warnings) == 1
    assert isinstance(subscriber.messages[0], RewriteWarning)
    assert subscriber.messages[0].command_index == 0


def test_layout_mismatch_fail_closed():
    calldata = execute("0x00", [b"\x00" * 100])
    with pytest.raises(CommandLayoutError):
        CalldataRewriter(fail_closed=True).rewrite(calldata, USER)


def test_v4_swap_settle_rewritten():
    settle = eth_abi.abi.encode(["address", "uint256", "bool"], [USDC, 500, True])
    plan = eth_abi.abi.encode(["bytes", "bytes[]"], [bytes([V4Action.SETTLE]), [settle]])
    result = rewrite_router_calldata(execute("0x10", [plan]), USER)

    assert not result.warnings
    (settle_action,) = find_settle_actions(decode_router_call(result.calldata).inputs[0])
    assert settle_action.payer_is_user is False
    assert settle_action.amount == 500


def test_v4_swap_without_settle_warns(subscriber: RecordingSubscriber):
    plan = eth_abi.abi.encode(
        ["bytes", "bytes[]"], [bytes([V4Action.SWAP_EXACT_IN_SINGLE]), [b"\x11" * 64]]
    )
    calldata = execute("0x10", [plan])

    rewriter = CalldataRewriter()
    rewriter.subscribe(subscriber)
    result = rewriter.rewrite(calldata, USER)

    assert result.calldata == calldata
    assert "no SETTLE" in result.warnings[0]
    assert len(subscriber.messages) == 1


@pytest.mark.parametrize(
    ("commands", "value", "native"),
    [
        ("0x0b00", 10**18, True),
        ("0x0b00", 0, True),
        ("0x0b000c", 10**18, True),
        ("0x000c", 0, False),
        ("0x0b000c", 0, False),
        ("0x00", 10**18, False),
    ],
)
def test_native_input_detection(commands: str, value: int, native: bool):  # noqa: FBT001
    assert is_native_input(decode_commands(commands), value) is native


def test_extract_swap_info_v3():
    info = extract_swap_info(execute("0x0a00", [b"\x00", v3_swap(2_500_000)]))
    assert info is not None
    assert info.input_token == USDC
    assert info.input_amount == 2_500_000
    assert info.output_token == WETH


def test_extract_swap_info_v2():
    v2 = eth_abi.abi.encode(V2_TYPES, [MSG_SENDER, 42, 1, [WETH, USDC], True])
    info = extract_swap_info(execute("0x08", [v2]))
    assert info is not None
    assert (info.input_token, info.input_amount, info.output_token) == (WETH, 42, USDC)


def test_extract_swap_info_prefers_v4_settle():
    settle = eth_abi.abi.encode(["address", "uint256", "bool"], [WETH, 0, True])
    plan = eth_abi.abi.encode(["bytes", "bytes[]"], [bytes([V4Action.SETTLE]), [settle]])
    info = extract_swap_info(execute("0x0010", [v3_swap(), plan]))
    assert info is not None
    assert info.input_token == WETH
    assert info.input_amount == 0


def test_extract_swap_info_none():
    assert extract_swap_info(execute("0x0c", [b"\x00"])) is None
    assert extract_swap_info(b"\x12\x34\x56\x78") is None
