from eth_typing import ChecksumAddress

from balance_proxy.exceptions.base import BalanceProxyError

"""
Exceptions defined here are raised by classes and functions in the `funding` and `constraints`
modules.
"""


class FundingError(BalanceProxyError):
    """
    Exception raised while funding the proxy call with approvals, permits or balance.
    """


class InsufficientBalance(FundingError):
    def __init__(
        self,
        token: ChecksumAddress,
        symbol: str,
        required: int,
        available: int,
        decimals: int = 18,
    ) -> None:
        """
        The account balance is below the simulated requirement, including the slippage buffer.
        """
        self.token = token
        self.symbol = symbol
        self.required = required
        self.available = available
        self.decimals = decimals
        self.shortfall = required - available
        super().__init__(
            message=(
                f"Insufficient {symbol} balance: {required} required (including slippage buffer), "
                f"{available} available, shortfall {self.shortfall}."
            )
        )

    def __reduce__(
        self,
    ) -> tuple[type["InsufficientBalance"], tuple[ChecksumAddress, str, int, int, int]]:
        return self.__class__, (
            self.token,
            self.symbol,
            self.required,
            self.available,
            self.decimals,
        )


class InsufficientAllowance(FundingError):
    def __init__(self, token: ChecksumAddress, funded: int, required: int) -> None:
        """
        The amount funded by approval or permit is below the derived approval constraint.
        """
        self.token = token
        self.funded = funded
        self.required = required
        super().__init__(
            message=f"Funded amount {funded} for {token} is below the required {required}"
        )

    def __reduce__(
        self,
    ) -> tuple[type["InsufficientAllowance"], tuple[ChecksumAddress, int, int]]:
        return self.__class__, (self.token, self.funded, self.required)


class SignatureRejected(FundingError):
    def __init__(self, request: str) -> None:
        """
        The user declined a wallet prompt.
        """
        self.request = request
        super().__init__(message=f"Signature request rejected: {request}")

    def __reduce__(self) -> tuple[type["SignatureRejected"], tuple[str]]:
        return self.__class__, (self.request,)


class ApprovalReverted(FundingError):
    def __init__(self, token: ChecksumAddress, tx_hash: str) -> None:
        """
        The on-chain approval transaction was mined with a failure status.
        """
        self.token = token
        self.tx_hash = tx_hash
        super().__init__(message=f"Approval transaction {tx_hash} for {token} reverted")

    def __reduce__(self) -> tuple[type["ApprovalReverted"], tuple[ChecksumAddress, str]]:
        return self.__class__, (self.token, self.tx_hash)


class PermitNotSupported(FundingError):
    def __init__(self, token: ChecksumAddress) -> None:
        """
        The token does not expose an EIP-2612 domain separator.
        """
        self.token = token
        super().__init__(message=f"Token {token} does not support EIP-2612 permits")

    def __reduce__(self) -> tuple[type["PermitNotSupported"], tuple[ChecksumAddress]]:
        return self.__class__, (self.token,)
