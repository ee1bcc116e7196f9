from balance_proxy.exceptions.base import BalanceProxyError


class OperationAborted(BalanceProxyError):
    """
    Raised at a suspension point after the attempt's abort signal has fired. This is a
    user-initiated cancellation and should not be presented as a failure.
    """

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason
        super().__init__(message="Operation aborted" + (f": {reason}" if reason else ""))

    def __reduce__(self) -> tuple[type["OperationAborted"], tuple[str | None]]:
        return self.__class__, (self.reason,)
