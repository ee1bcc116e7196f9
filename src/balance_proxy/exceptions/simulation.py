from balance_proxy.exceptions.base import BalanceProxyError

"""
Exceptions defined here are raised by classes and functions in the `simulation` module.
"""


class SimulationError(BalanceProxyError):
    """
    Exception raised inside simulation helpers.
    """


class RpcError(SimulationError):
    def __init__(self, method: str, error: str) -> None:
        """
        The node returned an error object for a JSON-RPC request.
        """
        self.method = method
        self.error = error
        super().__init__(message=f"RPC error from {method}: {error}")

    def __reduce__(self) -> tuple[type["RpcError"], tuple[str, str]]:
        return self.__class__, (self.method, self.error)


class SimulationFailed(SimulationError):
    def __init__(self, attempts: int) -> None:
        """
        The authoritative simulation could not be completed within the allowed attempts. Safe
        balance constraints cannot be determined.
        """
        self.attempts = attempts
        super().__init__(
            message=f"Cannot determine safe balance constraints: simulation failed after {attempts} attempts."  # noqa:E501
        )

    def __reduce__(self) -> tuple[type["SimulationFailed"], tuple[int]]:
        return self.__class__, (self.attempts,)


class SimulationReverted(SimulationError):
    def __init__(self, error: str | None = None) -> None:
        """
        The authoritative simulation completed, but the simulated call reverted.
        """
        self.error = error
        super().__init__(
            message="Cannot determine safe balance constraints: proxy simulation reverted"
            + (f" ({error})" if error else "")
        )

    def __reduce__(self) -> tuple[type["SimulationReverted"], tuple[str | None]]:
        return self.__class__, (self.error,)


class MissingAssetChange(SimulationError):
    def __init__(self, direction: str) -> None:
        """
        The simulation did not report a balance movement that the derivation requires.
        """
        self.direction = direction
        super().__init__(message=f"Simulation reported no {direction} asset change")

    def __reduce__(self) -> tuple[type["MissingAssetChange"], tuple[str]]:
        return self.__class__, (self.direction,)
