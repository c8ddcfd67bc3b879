"""Pool address derivation and simulated pools."""

from aggregator.pools.address import compute_pool_address, sort_tokens
from aggregator.pools.pool import SimulatedPool, SwapCallbackReceiver, VenueNetwork

__all__ = [
    "SimulatedPool",
    "SwapCallbackReceiver",
    "VenueNetwork",
    "compute_pool_address",
    "sort_tokens",
]
