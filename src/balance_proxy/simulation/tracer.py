"""
Asset-change tracing on top of `eth_simulateV1`.

A discovery pass runs the calls with transfer tracing to find every token moved to or from the
account. A measured pass then runs three simulated blocks: balance reads, the calls, and the same
balance reads, so the pre and post balances bracket exactly the simulated calls.

Reference: https://github.com/ethereum/execution-apis/blob/main/docs/reference/eth_simulate.md
"""

from collections.abc import Sequence
from typing import Any

from eth_abi.exceptions import DecodingError
from eth_typing import ChecksumAddress
from hexbytes import HexBytes

from balance_proxy.chain import ChainReader
from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.constants import (
    ERC20_TRANSFER_TOPIC,
    NATIVE_CURRENCY_SENTINEL,
    NATIVE_TRANSFER_LOG_ADDRESS,
)
from balance_proxy.erc20 import balance_read, decode_uint, get_token_metadata
from balance_proxy.exceptions.simulation import SimulationError
from balance_proxy.logging import logger
from balance_proxy.simulation.types import (
    AssetChange,
    CallResult,
    SimulatedCall,
    SimulationResult,
    TokenInfo,
)

SIMULATION_STATUS_SUCCESS = 1


def _call_object(
    account: ChecksumAddress, to: ChecksumAddress, data: bytes, value: int = 0
) -> dict[str, Any]:
    return {
        "from": account,
        "to": to,
        "data": HexBytes(data).to_0x_hex(),
        "value": hex(value),
    }


def _topic_address(topic: str) -> ChecksumAddress:
    return get_checksum_address(HexBytes(topic)[-20:])


def _parse_call_result(raw: dict[str, Any]) -> CallResult:
    error = raw.get("error")
    return CallResult(
        success=int(raw.get("status", "0x0"), 16) == SIMULATION_STATUS_SUCCESS,
        gas_used=int(raw.get("gasUsed", "0x0"), 16),
        return_data=bytes(HexBytes(raw.get("returnData", "0x"))),
        error=error.get("message") if isinstance(error, dict) else None,
    )


def find_transferred_tokens(
    blocks: Sequence[dict[str, Any]], account: ChecksumAddress
) -> list[ChecksumAddress]:
    """
    Collect the tokens of every Transfer log sent from or to `account`, in log order. Native value
    transfers appear as logs from the native placeholder address.
    """

    tokens: list[ChecksumAddress] = []
    for block in blocks:
        for call in block.get("calls", []):
            for log in call.get("logs", []):
                topics = log.get("topics", [])
                if len(topics) < 3:  # noqa: PLR2004
                    continue
                if HexBytes(topics[0]) != HexBytes(ERC20_TRANSFER_TOPIC):
                    continue
                if account not in {_topic_address(topics[1]), _topic_address(topics[2])}:
                    continue
                token = get_checksum_address(log["address"])
                if token == NATIVE_TRANSFER_LOG_ADDRESS:
                    token = NATIVE_CURRENCY_SENTINEL
                if token not in tokens:
                    tokens.append(token)
    return tokens


async def simulate_asset_changes(
    reader: ChainReader,
    account: ChecksumAddress,
    calls: Sequence[SimulatedCall],
) -> SimulationResult:
    """
    Simulate the calls from `account` and report its balance change for every token it sent or
    received, plus the native currency.
    """

    call_objects = [_call_object(account, call.to, call.data, call.value) for call in calls]

    discovery = await reader.simulate(
        {
            "blockStateCalls": [{"calls": call_objects}],
            "traceTransfers": True,
            "validation": False,
        }
    )
    tokens = find_transferred_tokens(discovery, account)
    if NATIVE_CURRENCY_SENTINEL not in tokens:
        tokens.insert(0, NATIVE_CURRENCY_SENTINEL)
    logger.debug(f"Simulation touched {len(tokens)} asset(s): {tokens}")

    reads = [_call_object(account, *balance_read(token, account)) for token in tokens]
    measured = await reader.simulate(
        {
            "blockStateCalls": [{"calls": reads}, {"calls": call_objects}, {"calls": reads}],
            "traceTransfers": False,
            "validation": False,
        }
    )
    if len(measured) != 3:  # noqa: PLR2004
        raise SimulationError(message=f"Expected 3 simulated blocks, received {len(measured)}")

    pre_reads, executed, post_reads = (block.get("calls", []) for block in measured)
    results = tuple(_parse_call_result(raw) for raw in executed)

    balances: dict[ChecksumAddress, tuple[int, int]] = {}
    for token, pre_raw, post_raw in zip(tokens, pre_reads, post_reads, strict=False):
        pre_read, post_read = _parse_call_result(pre_raw), _parse_call_result(post_raw)
        if not (pre_read.success and post_read.success):
            logger.debug(f"Balance read for {token} failed, token skipped")
            continue
        try:
            balances[token] = (
                decode_uint(pre_read.return_data),
                decode_uint(post_read.return_data),
            )
        except DecodingError:
            logger.debug(f"Balance read for {token} returned malformed data, token skipped")

    moved = [token for token, (pre, post) in balances.items() if pre != post]
    metadata = await get_token_metadata(reader, moved)

    return SimulationResult(
        asset_changes=tuple(
            AssetChange(
                token=TokenInfo(
                    address=token, symbol=metadata[token][0], decimals=metadata[token][1]
                ),
                pre=balances[token][0],
                post=balances[token][1],
            )
            for token in moved
        ),
        results=results,
    )
