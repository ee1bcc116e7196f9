"""
ERC-20 and EIP-2612 reads through a `ChainReader`.
"""

from typing import cast

import eth_abi.abi
from eth_abi.exceptions import DecodingError
from eth_typing import ChecksumAddress
from web3.exceptions import Web3Exception

from balance_proxy.chain import ChainReader
from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.constants import MULTICALL3_ADDRESS, is_native_currency
from balance_proxy.functions import encode_function_calldata
from balance_proxy.logging import logger

NATIVE_SYMBOL = "ETH"
NATIVE_DECIMALS = 18


def balance_of_calldata(account: ChecksumAddress) -> bytes:
    return encode_function_calldata("balanceOf(address)", [account])


def get_eth_balance_calldata(account: ChecksumAddress) -> bytes:
    """
    Calldata for Multicall3.getEthBalance, which reads the native balance from inside a call.
    """

    return encode_function_calldata("getEthBalance(address)", [account])


def balance_read(token: ChecksumAddress, account: ChecksumAddress) -> tuple[ChecksumAddress, bytes]:
    """
    Get the (to, data) pair reading the balance of `account`, using Multicall3 for the native
    currency.
    """

    if is_native_currency(token):
        return MULTICALL3_ADDRESS, get_eth_balance_calldata(account)
    return token, balance_of_calldata(account)


def decode_uint(data: bytes) -> int:
    (value,) = eth_abi.abi.decode(types=["uint256"], data=data)
    return cast("int", value)


def decode_string(data: bytes) -> str:
    """
    Decode a string return value, accepting the bytes32 form used by some older tokens.
    """

    try:
        (value,) = eth_abi.abi.decode(types=["string"], data=data)
        return cast("str", value)
    except DecodingError:
        (value,) = eth_abi.abi.decode(types=["bytes32"], data=data)
        return cast("bytes", value).decode("utf-8", errors="ignore").strip("\x00")


async def get_token_balance(
    reader: ChainReader, token: ChecksumAddress, account: ChecksumAddress
) -> int:
    """
    Retrieve the balance of `account`, reading the native balance for native currency placeholders.
    """

    if is_native_currency(token):
        return await reader.get_balance(account)
    return decode_uint(await reader.call(token, balance_of_calldata(account)))


async def get_allowance(
    reader: ChainReader, token: ChecksumAddress, owner: ChecksumAddress, spender: ChecksumAddress
) -> int:
    """
    Retrieve the amount that can be spent by `spender` on behalf of `owner`.
    """

    return decode_uint(
        await reader.call(
            token, encode_function_calldata("allowance(address,address)", [owner, spender])
        )
    )


async def get_symbol_and_decimals(
    reader: ChainReader, token: ChecksumAddress
) -> tuple[str, int]:
    if is_native_currency(token):
        return NATIVE_SYMBOL, NATIVE_DECIMALS

    symbol_data, decimals_data = await reader.batch_call(
        [
            (token, encode_function_calldata("symbol()", None)),
            (token, encode_function_calldata("decimals()", None)),
        ]
    )
    return decode_string(symbol_data), decode_uint(decimals_data)


async def get_token_metadata(
    reader: ChainReader, tokens: list[ChecksumAddress]
) -> dict[ChecksumAddress, tuple[str, int]]:
    """
    Fetch symbol and decimals for several tokens in one batched request. Tokens without readable
    metadata are reported with their address as the symbol and 18 decimals.
    """

    erc20_tokens = [
        get_checksum_address(token) for token in tokens if not is_native_currency(token)
    ]
    metadata: dict[ChecksumAddress, tuple[str, int]] = {
        get_checksum_address(token): (NATIVE_SYMBOL, NATIVE_DECIMALS)
        for token in tokens
        if is_native_currency(token)
    }
    if not erc20_tokens:
        return metadata

    calls = []
    for token in erc20_tokens:
        calls.append((token, encode_function_calldata("symbol()", None)))
        calls.append((token, encode_function_calldata("decimals()", None)))

    try:
        results = await reader.batch_call(calls)
    except Web3Exception as exc:
        logger.debug(f"Batched metadata read failed, falling back to single reads: {exc}")
        for token in erc20_tokens:
            try:
                metadata[token] = await get_symbol_and_decimals(reader, token)
            except (Web3Exception, DecodingError):
                metadata[token] = (token, NATIVE_DECIMALS)
        return metadata

    for i, token in enumerate(erc20_tokens):
        try:
            metadata[token] = (decode_string(results[2 * i]), decode_uint(results[2 * i + 1]))
        except DecodingError:
            metadata[token] = (token, NATIVE_DECIMALS)
    return metadata
