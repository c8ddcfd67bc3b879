"""End-to-end aggregation: quote, optimize, build routes, settle.

    plan = plan_trade(request, quote_source, config)
    result = aggregate_trade(request, quote_source, engine, payer, config)

``plan_trade`` is off the settlement path and touches no balances;
``aggregate_trade`` additionally makes sure the engine may spend the
payer's input and then hands the routes to the settlement engine.
Quotes are taken fresh on every call.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from aggregator.config import DEFAULT_CONFIG, AggregatorConfig
from aggregator.constants import UINT256_MAX
from aggregator.distribution import find_best_distribution
from aggregator.ledger import AssetLedger
from aggregator.models.requests import SwapRequest
from aggregator.quoting.matrix import build_quote_matrix
from aggregator.quoting.source import QuoteSource
from aggregator.routing.routes import Route, build_routes
from aggregator.settlement.engine import SettlementEngine

logger = structlog.get_logger()


@dataclass(frozen=True)
class TradePlan:
    """Optimal split of a swap and the legs that execute it."""

    total_amount_out: int
    distribution: tuple[int, ...]
    fee_tiers: tuple[int, ...]
    routes: tuple[Route, ...]
    amounts: tuple[tuple[int, ...], ...]


@dataclass(frozen=True)
class TradeResult:
    """Outcome of an executed aggregate trade."""

    plan: TradePlan
    amount_out: int

    @property
    def quoted_amount_out(self) -> int:
        return self.plan.total_amount_out


def plan_trade(
    request: SwapRequest,
    quote_source: QuoteSource,
    config: AggregatorConfig = DEFAULT_CONFIG,
) -> TradePlan:
    """Quote every fee tier, find the best split and build its routes.

    Raises:
        UnresolvableVenue: If a venue given parts has no pool
        EmptyRouteSet: If no venue can take any part
    """
    amounts = build_quote_matrix(
        quote_source,
        request.token_in,
        request.token_out,
        request.amount_in,
        config.fee_tiers,
        config.parts,
    )
    result = find_best_distribution(amounts)
    routes = build_routes(
        result.distribution,
        config.fee_tiers,
        request.token_in,
        request.token_out,
        request.amount_in,
        config.parts,
        quote_source,
    )
    logger.info(
        "trade_planned",
        token_in=request.token_in,
        token_out=request.token_out,
        amount_in=request.amount_in,
        total_amount_out=result.total_amount_out,
        distribution=list(result.distribution),
    )
    return TradePlan(
        total_amount_out=result.total_amount_out,
        distribution=result.distribution,
        fee_tiers=tuple(config.fee_tiers),
        routes=tuple(routes),
        amounts=tuple(tuple(row) for row in amounts),
    )


def ensure_allowance(
    ledger: AssetLedger, token: str, owner: str, spender: str, amount: int
) -> bool:
    """Approve an unlimited allowance if the current one is short.

    Returns:
        True if an approval was made
    """
    if ledger.allowance(token, owner, spender) >= amount:
        return False
    ledger.approve(token, owner, spender, UINT256_MAX)
    logger.info("allowance_approved", token=token, owner=owner, spender=spender)
    return True


def aggregate_trade(
    request: SwapRequest,
    quote_source: QuoteSource,
    engine: SettlementEngine,
    payer: str,
    config: AggregatorConfig = DEFAULT_CONFIG,
) -> TradeResult:
    """Plan a swap and settle it atomically on behalf of payer."""
    plan = plan_trade(request, quote_source, config)
    ensure_allowance(engine.ledger, request.token_in, payer, engine.address, request.amount_in)
    amount_out = engine.aggregate_swap(
        plan.routes,
        min_amount_out=request.min_amount_out,
        deadline=request.deadline,
        caller=payer,
    )
    return TradeResult(plan=plan, amount_out=amount_out)


__all__ = ["TradePlan", "TradeResult", "aggregate_trade", "ensure_allowance", "plan_trade"]
