from eth_typing import ChecksumAddress

from balance_proxy.exceptions.base import BalanceProxyError

"""
Exceptions defined here are raised by classes and functions in the `proxy` module and by the
pipeline when submitting a call to the balance proxy contracts.

Typed reverts mirror the custom errors declared by the proxy and router contracts, so their
arguments are kept in contract order.
"""


class ProxyCallError(BalanceProxyError):
    """
    Exception raised when a call to a balance proxy contract reverts or cannot be built.
    """


class StaleCheckSet(ProxyCallError):
    def __init__(self) -> None:
        """
        The balance constraints were derived for a different (to, data, value) triple than the one
        being submitted.
        """
        super().__init__(
            message="Balance constraints are stale: the transaction changed after derivation."
        )

    def __reduce__(self) -> tuple[type["StaleCheckSet"], tuple[()]]:
        return self.__class__, ()


class CallFailed(ProxyCallError):
    def __init__(self, target: ChecksumAddress, data: bytes, return_data: bytes) -> None:
        self.target = target
        self.data = data
        self.return_data = return_data
        super().__init__(
            message=f"Inner call to {target} failed (return data 0x{return_data.hex()})"
        )

    def __reduce__(self) -> tuple[type["CallFailed"], tuple[ChecksumAddress, bytes, bytes]]:
        return self.__class__, (self.target, self.data, self.return_data)


class InsufficientBalanceRevert(ProxyCallError):
    def __init__(
        self, token: ChecksumAddress, target: ChecksumAddress, balance: int, actual: int
    ) -> None:
        self.token = token
        self.target = target
        self.balance = balance
        self.actual = actual
        super().__init__(
            message=f"Balance of {token} at {target} is {actual}, required {balance}"
        )

    def __reduce__(
        self,
    ) -> tuple[
        type["InsufficientBalanceRevert"], tuple[ChecksumAddress, ChecksumAddress, int, int]
    ]:
        return self.__class__, (self.token, self.target, self.balance, self.actual)


class MaliciousApproveTarget(ProxyCallError):
    def __init__(self, token: ChecksumAddress, target: ChecksumAddress) -> None:
        self.token = token
        self.target = target
        super().__init__(message=f"Refusing approval of {token} to call target {target}")

    def __reduce__(
        self,
    ) -> tuple[type["MaliciousApproveTarget"], tuple[ChecksumAddress, ChecksumAddress]]:
        return self.__class__, (self.token, self.target)


class NegativeApprovalAmount(ProxyCallError):
    def __init__(self, amount: int) -> None:
        self.amount = amount
        super().__init__(message=f"Negative approval amount {amount}")

    def __reduce__(self) -> tuple[type["NegativeApprovalAmount"], tuple[int]]:
        return self.__class__, (self.amount,)


class ReentrancyGuardReentrantCall(ProxyCallError):
    def __init__(self) -> None:
        super().__init__(message="Reentrant call")

    def __reduce__(self) -> tuple[type["ReentrancyGuardReentrantCall"], tuple[()]]:
        return self.__class__, ()


class UnexpectedBalanceDiff(ProxyCallError):
    def __init__(
        self, token: ChecksumAddress, target: ChecksumAddress, expected: int, actual: int
    ) -> None:
        self.token = token
        self.target = target
        self.expected = expected
        self.actual = actual
        super().__init__(
            message=f"Balance diff of {token} at {target} was {actual}, expected {expected}"
        )

    def __reduce__(
        self,
    ) -> tuple[type["UnexpectedBalanceDiff"], tuple[ChecksumAddress, ChecksumAddress, int, int]]:
        return self.__class__, (self.token, self.target, self.expected, self.actual)


class InvalidMetadata(ProxyCallError):
    def __init__(
        self,
        token: ChecksumAddress,
        expected_symbol: str,
        expected_decimals: int,
        actual_symbol: str,
        actual_decimals: int,
    ) -> None:
        self.token = token
        self.expected_symbol = expected_symbol
        self.expected_decimals = expected_decimals
        self.actual_symbol = actual_symbol
        self.actual_decimals = actual_decimals
        super().__init__(
            message=(
                f"Metadata mismatch for {token}: expected {expected_symbol} "
                f"({expected_decimals} decimals), found {actual_symbol} "
                f"({actual_decimals} decimals)"
            )
        )

    def __reduce__(
        self,
    ) -> tuple[type["InvalidMetadata"], tuple[ChecksumAddress, str, int, str, int]]:
        return self.__class__, (
            self.token,
            self.expected_symbol,
            self.expected_decimals,
            self.actual_symbol,
            self.actual_decimals,
        )


class MetadataBalancesLengthMismatch(ProxyCallError):
    def __init__(self, meta_length: int, balances_length: int) -> None:
        self.meta_length = meta_length
        self.balances_length = balances_length
        super().__init__(
            message=f"{meta_length} metadata entries supplied for {balances_length} balances"
        )

    def __reduce__(self) -> tuple[type["MetadataBalancesLengthMismatch"], tuple[int, int]]:
        return self.__class__, (self.meta_length, self.balances_length)


class PermitsLengthMismatch(ProxyCallError):
    def __init__(self, permits_length: int, approvals_length: int) -> None:
        self.permits_length = permits_length
        self.approvals_length = approvals_length
        super().__init__(
            message=f"{permits_length} permits supplied for {approvals_length} approvals"
        )

    def __reduce__(self) -> tuple[type["PermitsLengthMismatch"], tuple[int, int]]:
        return self.__class__, (self.permits_length, self.approvals_length)


class RevertReason(ProxyCallError):
    def __init__(self, reason: str) -> None:
        """
        A plain `Error(string)` revert.
        """
        self.reason = reason
        super().__init__(message=reason)

    def __reduce__(self) -> tuple[type["RevertReason"], tuple[str]]:
        return self.__class__, (self.reason,)


class UnknownProxyRevert(ProxyCallError):
    def __init__(self, data: bytes) -> None:
        self.data = data
        super().__init__(
            message="Proxy call failed" + (f" (revert data 0x{data.hex()})" if data else "")
        )

    def __reduce__(self) -> tuple[type["UnknownProxyRevert"], tuple[bytes]]:
        return self.__class__, (self.data,)
