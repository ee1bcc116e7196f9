import dataclasses

from eth_typing import ChecksumAddress

from balance_proxy.chain import ChainReader
from balance_proxy.erc20 import get_token_balance
from balance_proxy.exceptions.funding import InsufficientBalance
from balance_proxy.functions import scale_ceil, to_fraction
from balance_proxy.logging import logger
from balance_proxy.simulation.types import AssetChange


@dataclasses.dataclass(slots=True, frozen=True)
class BalanceCheck:
    raw_amount: int
    required: int
    available: int

    @property
    def sufficient(self) -> bool:
        return self.available >= self.required

    @property
    def shortfall(self) -> int:
        return max(0, self.required - self.available)


async def check_sufficient_balance(
    reader: ChainReader,
    account: ChecksumAddress,
    spent: AssetChange,
    slippage: float,
) -> BalanceCheck:
    """
    Compare the live balance of the spent asset against the simulated requirement including the
    slippage buffer. Raises `InsufficientBalance` when the account cannot cover it.
    """

    raw_amount = -spent.diff
    required = scale_ceil(raw_amount, 1 + to_fraction(slippage) / 100)
    available = await get_token_balance(reader, spent.token.address, account)

    check = BalanceCheck(raw_amount=raw_amount, required=required, available=available)
    logger.debug(
        f"Balance check for {spent.token.symbol}: raw {raw_amount}, required {required} "
        f"({slippage}% slippage), available {available}"
    )
    if not check.sufficient:
        raise InsufficientBalance(
            token=spent.token.address,
            symbol=spent.token.symbol,
            required=required,
            available=available,
            decimals=spent.token.decimals,
        )
    return check
