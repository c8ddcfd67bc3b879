"""API endpoints for the aggregator planner."""

from functools import lru_cache

import structlog
from fastapi import APIRouter, Depends, HTTPException

from aggregator.aggregate import plan_trade
from aggregator.config import AggregatorConfig
from aggregator.distribution import find_best_distribution
from aggregator.errors import AggregatorError, NoVenuesProvided
from aggregator.models.requests import (
    OptimizeRequest,
    OptimizeResponse,
    PlanResponse,
    RouteModel,
    SwapRequest,
)
from aggregator.quoting.source import QuoteSource, Web3QuoteSource
from aggregator.routing.encoding import encode_aggregate_swap

logger = structlog.get_logger()

router = APIRouter()


@lru_cache(maxsize=1)
def get_config() -> AggregatorConfig:
    """Dependency provider for the configuration (read once from the environment)."""
    return AggregatorConfig.from_env()


def get_quote_source(config: AggregatorConfig = Depends(get_config)) -> QuoteSource:
    """Dependency provider for the quote source.

    Override this in tests to inject a mock:
        app.dependency_overrides[get_quote_source] = lambda: mock_source
    """
    if not config.rpc_url:
        raise HTTPException(status_code=503, detail="No RPC URL configured for quoting")
    return _web3_quote_source(config.rpc_url, config.quoter_address, config.factory_address)


@lru_cache(maxsize=4)
def _web3_quote_source(rpc_url: str, quoter_address: str, factory_address: str) -> Web3QuoteSource:
    return Web3QuoteSource(rpc_url, quoter_address=quoter_address, factory_address=factory_address)


@router.post("/optimize", response_model_by_alias=True)
async def optimize(request: OptimizeRequest) -> OptimizeResponse:
    """Find the best split of parts for a quote matrix."""
    try:
        result = find_best_distribution(request.amounts)
    except NoVenuesProvided as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return OptimizeResponse(
        total_amount_out=result.total_amount_out,
        distribution=list(result.distribution),
    )


@router.post("/plan", response_model_by_alias=True)
def plan(
    request: SwapRequest,
    quote_source: QuoteSource = Depends(get_quote_source),
    config: AggregatorConfig = Depends(get_config),
) -> PlanResponse:
    """Quote and split a swap without executing it.

    Error Handling:
        - Invalid request schema: 422 Validation Error (Pydantic)
        - No quote source configured: 503
        - Unresolvable venue or no route: 400 with the error message
    """
    logger.info(
        "received_plan_request",
        token_in=request.token_in,
        token_out=request.token_out,
        amount_in=request.amount_in,
    )
    try:
        trade_plan = plan_trade(request, quote_source, config)
    except AggregatorError as e:
        logger.warning("plan_failed", error_type=type(e).__name__, error=str(e))
        raise HTTPException(status_code=400, detail=str(e)) from e

    return PlanResponse(
        total_amount_out=trade_plan.total_amount_out,
        distribution=list(trade_plan.distribution),
        fee_tiers=list(trade_plan.fee_tiers),
        routes=[
            RouteModel(
                pair=route.pair,
                fee=route.fee,
                token_in=route.token_in,
                token_out=route.token_out,
                amount_in=route.amount_in,
            )
            for route in trade_plan.routes
        ],
        calldata=encode_aggregate_swap(
            trade_plan.routes, request.min_amount_out, request.deadline
        ),
    )
