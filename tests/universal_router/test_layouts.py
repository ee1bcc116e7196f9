import eth_abi.abi
import pytest

from balance_proxy.exceptions.rewrite import CommandLayoutError
from balance_proxy.universal_router.layouts import (
    V2_SWAP_EXACT_IN_LAYOUT,
    V3_SWAP_EXACT_IN_LAYOUT,
    V4_SETTLE_LAYOUT,
    decode_struct,
    patch_struct,
    split_v3_path,
)
from tests.conftest import USDC, USER, WETH

V3_TYPES = ["address", "uint256", "uint256", "bytes", "bool"]
V2_TYPES = ["address", "uint256", "uint256", "address[]", "bool"]


def v3_path(*hops: str | int) -> bytes:
    return b"".join(
        bytes.fromhex(hop[2:]) if isinstance(hop, str) else hop.to_bytes(3) for hop in hops
    )


def test_head_sizes():
    assert V3_SWAP_EXACT_IN_LAYOUT.head_size == 160
    assert V2_SWAP_EXACT_IN_LAYOUT.head_size == 160
    assert V4_SETTLE_LAYOUT.head_size == 96


def test_decode_v3_swap():
    path = v3_path(USDC, 500, WETH)
    data = eth_abi.abi.encode(V3_TYPES, [USER, 1_000_000, 900, path, True])

    values = decode_struct(V3_SWAP_EXACT_IN_LAYOUT, data)
    assert values == {
        "recipient": USER,
        "amount_in": 1_000_000,
        "amount_out_min": 900,
        "path": path,
        "payer_is_user": True,
    }


def test_decode_v2_swap():
    data = eth_abi.abi.encode(V2_TYPES, [USER, 10, 20, [USDC, WETH], False])
    values = decode_struct(V2_SWAP_EXACT_IN_LAYOUT, data)
    assert values["path"] == (USDC, WETH)
    assert values["payer_is_user"] is False


def test_patch_keeps_other_bytes():
    path = v3_path(USDC, 3000, WETH)
    data = eth_abi.abi.encode(V3_TYPES, [USER, 5, 6, path, True])

    patched = patch_struct(V3_SWAP_EXACT_IN_LAYOUT, data, {"payer_is_user": False})

    assert len(patched) == len(data)
    assert patched[:128] == data[:128]
    assert patched[160:] == data[160:]
    assert decode_struct(V3_SWAP_EXACT_IN_LAYOUT, patched)["payer_is_user"] is False


def test_patch_rejects_dynamic_and_unknown_slots():
    data = eth_abi.abi.encode(V3_TYPES, [USER, 5, 6, v3_path(USDC, 500, WETH), True])
    with pytest.raises(CommandLayoutError):
        patch_struct(V3_SWAP_EXACT_IN_LAYOUT, data, {"path": b""})
    with pytest.raises(CommandLayoutError):
        patch_struct(V3_SWAP_EXACT_IN_LAYOUT, data, {"deadline": 0})


def test_short_input_rejected():
    with pytest.raises(CommandLayoutError, match="shorter than"):
        decode_struct(V3_SWAP_EXACT_IN_LAYOUT, bytes(64))


def test_non_bool_flag_rejected():
    data = bytearray(eth_abi.abi.encode(V3_TYPES, [USER, 5, 6, v3_path(USDC), True]))
    data[159] = 2
    with pytest.raises(CommandLayoutError, match="not a bool"):
        decode_struct(V3_SWAP_EXACT_IN_LAYOUT, bytes(data))


def test_dirty_address_padding_rejected():
    data = bytearray(eth_abi.abi.encode(V3_TYPES, [USER, 5, 6, v3_path(USDC), True]))
    data[0] = 1
    with pytest.raises(CommandLayoutError):
        decode_struct(V3_SWAP_EXACT_IN_LAYOUT, bytes(data))


def test_offset_inside_head_rejected():
    data = bytearray(eth_abi.abi.encode(V3_TYPES, [USER, 5, 6, v3_path(USDC), True]))
    data[96:128] = (64).to_bytes(32)
    with pytest.raises(CommandLayoutError):
        decode_struct(V3_SWAP_EXACT_IN_LAYOUT, bytes(data))


def test_truncated_dynamic_payload_rejected():
    data = eth_abi.abi.encode(V3_TYPES, [USER, 5, 6, v3_path(USDC, 500, WETH), True])
    with pytest.raises(CommandLayoutError):
        decode_struct(V3_SWAP_EXACT_IN_LAYOUT, data[:200])


def test_split_v3_path():
    tokens, fees = split_v3_path(V3_SWAP_EXACT_IN_LAYOUT, v3_path(USDC, 500, WETH, 3000, USER))
    assert tokens == (USDC, WETH, USER)
    assert fees == (500, 3000)


@pytest.mark.parametrize("length", [0, 19, 21, 42, 44])
def test_split_v3_path_rejects_bad_lengths(length: int):
    with pytest.raises(CommandLayoutError):
        split_v3_path(V3_SWAP_EXACT_IN_LAYOUT, bytes(length))
