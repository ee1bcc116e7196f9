from balance_proxy.exceptions.base import BalanceProxyError

"""
Exceptions defined here are raised by classes and functions in the `universal_router` module.
"""


class RewriteError(BalanceProxyError):
    """
    Exception raised while decoding or rewriting router calldata.
    """


class CommandLayoutError(RewriteError):
    def __init__(self, command: str, reason: str) -> None:
        """
        The command input does not match the binary layout assumed for its command type.
        """
        self.command = command
        self.reason = reason
        super().__init__(message=f"Layout mismatch for {command}: {reason}")

    def __reduce__(self) -> tuple[type["CommandLayoutError"], tuple[str, str]]:
        return self.__class__, (self.command, self.reason)


class UnsupportedRouterCall(RewriteError):
    def __init__(self, selector: str) -> None:
        """
        The calldata does not call a recognized router entry point.
        """
        self.selector = selector
        super().__init__(message=f"Unsupported router function selector {selector}")

    def __reduce__(self) -> tuple[type["UnsupportedRouterCall"], tuple[str]]:
        return self.__class__, (self.selector,)
