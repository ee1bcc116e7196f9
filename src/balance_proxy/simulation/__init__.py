from balance_proxy.simulation.simulator import RetryPolicy, TwoPhaseSimulator
from balance_proxy.simulation.tracer import simulate_asset_changes
from balance_proxy.simulation.types import (
    AssetChange,
    CallResult,
    OriginalSimulation,
    SimulatedCall,
    SimulationResult,
    TokenInfo,
)

__all__ = (
    "AssetChange",
    "CallResult",
    "OriginalSimulation",
    "RetryPolicy",
    "SimulatedCall",
    "SimulationResult",
    "TokenInfo",
    "TwoPhaseSimulator",
    "simulate_asset_changes",
)
