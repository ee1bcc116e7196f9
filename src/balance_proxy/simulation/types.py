import dataclasses

from eth_typing import ChecksumAddress

from balance_proxy.constants import is_native_currency


@dataclasses.dataclass(slots=True, frozen=True)
class TokenInfo:
    address: ChecksumAddress
    symbol: str
    decimals: int

    @property
    def is_native(self) -> bool:
        return is_native_currency(self.address)


@dataclasses.dataclass(slots=True, frozen=True)
class AssetChange:
    token: TokenInfo
    pre: int
    post: int

    @property
    def diff(self) -> int:
        return self.post - self.pre


@dataclasses.dataclass(slots=True, frozen=True)
class CallResult:
    success: bool
    gas_used: int
    return_data: bytes = b""
    error: str | None = None


@dataclasses.dataclass(slots=True, frozen=True)
class SimulatedCall:
    to: ChecksumAddress
    data: bytes
    value: int = 0


@dataclasses.dataclass(slots=True, frozen=True)
class SimulationResult:
    """
    Balance movements of the simulating account, and the outcome of each simulated call.
    """

    asset_changes: tuple[AssetChange, ...]
    results: tuple[CallResult, ...]

    @property
    def succeeded(self) -> bool:
        return bool(self.results) and all(result.success for result in self.results)

    @property
    def gas_used(self) -> int:
        return sum(result.gas_used for result in self.results)

    @property
    def spent(self) -> AssetChange | None:
        """
        The first asset whose balance decreased.
        """
        return next((change for change in self.asset_changes if change.diff < 0), None)

    @property
    def received(self) -> AssetChange | None:
        """
        The first asset whose balance increased.
        """
        return next((change for change in self.asset_changes if change.diff > 0), None)

    @property
    def error(self) -> str | None:
        return next((result.error for result in self.results if not result.success), None)


@dataclasses.dataclass(slots=True, frozen=True)
class OriginalSimulation:
    success: bool
    result: SimulationResult | None
    attempts: int
