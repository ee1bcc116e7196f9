__all__ = (
    "ERC20_TRANSFER_TOPIC",
    "MAX_INT256",
    "MAX_UINT8",
    "MAX_UINT256",
    "MIN_INT256",
    "MIN_UINT8",
    "MIN_UINT256",
    "MULTICALL3_ADDRESS",
    "NATIVE_CURRENCY_SENTINEL",
    "NATIVE_TRANSFER_LOG_ADDRESS",
    "ZERO_ADDRESS",
    "is_native_currency",
)

import typing

from eth_typing import ChecksumAddress

from balance_proxy.checksum_cache import get_checksum_address


def _min_uint(_: int) -> int:
    return 0


def _max_uint(bits: int) -> int:
    return typing.cast("int", 2**bits - 1)


def _min_int(bits: int) -> int:
    return typing.cast("int", -(2 ** (bits - 1)))


def _max_int(bits: int) -> int:
    return typing.cast("int", (2 ** (bits - 1)) - 1)


MIN_INT256 = _min_int(256)
MAX_INT256 = _max_int(256)

MIN_UINT8 = _min_uint(8)
MAX_UINT8 = _max_uint(8)

MIN_UINT256 = _min_uint(256)
MAX_UINT256 = _max_uint(256)

ZERO_ADDRESS: ChecksumAddress = get_checksum_address("0x0000000000000000000000000000000000000000")

# Placeholder address used by wallets and simulation tracers for the chain's native currency
NATIVE_CURRENCY_SENTINEL: ChecksumAddress = get_checksum_address(
    "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
)

# eth_simulateV1 emits native value movements as ERC-20 style Transfer logs from this address
# ref: https://github.com/ethereum/execution-apis/pull/484
NATIVE_TRANSFER_LOG_ADDRESS = NATIVE_CURRENCY_SENTINEL

# ref: https://www.multicall3.com/deployments
MULTICALL3_ADDRESS: ChecksumAddress = get_checksum_address(
    "0xcA11bde05977b3631167028862bE2a173976CA11"
)

ERC20_TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


def is_native_currency(token: str) -> bool:
    """
    Check if the token address is one of the placeholders used for the native currency.
    """

    return get_checksum_address(token) in (ZERO_ADDRESS, NATIVE_CURRENCY_SENTINEL)
