"""Atomic multi-leg settlement."""

from aggregator.settlement.context import PayerBinding, bind_payer, current_binding
from aggregator.settlement.engine import PoolLocator, SettlementEngine, SwapOutcome, SwapVenue

__all__ = [
    "PayerBinding",
    "PoolLocator",
    "SettlementEngine",
    "SwapOutcome",
    "SwapVenue",
    "bind_payer",
    "current_binding",
]
