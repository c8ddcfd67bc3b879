"""V3 Aggregator - optimal split routing with atomic settlement."""

__version__ = "0.1.0"

from aggregator.aggregate import TradePlan, TradeResult, aggregate_trade, plan_trade
from aggregator.distribution import DistributionResult, find_best_distribution, optimize
from aggregator.settlement import SettlementEngine

__all__ = [
    "DistributionResult",
    "SettlementEngine",
    "TradePlan",
    "TradeResult",
    "__version__",
    "aggregate_trade",
    "find_best_distribution",
    "optimize",
    "plan_trade",
]
