"""Command line interface for the aggregator.

Usage:
    v3-aggregator optimize --matrix amounts.json
    v3-aggregator plan --token-in 0x... --token-out 0x... --amount-in 1000000 \
        --rpc-url https://eth.llamarpc.com
    v3-aggregator plan --token-in 0x... --token-out 0x... --amount-in 1.5 \
        --decimals-in 18 --decimals-out 6
"""

from __future__ import annotations

import argparse
import decimal
import json
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path

import structlog
from pydantic import ValidationError

from aggregator.aggregate import plan_trade
from aggregator.amounts import from_readable_amount, to_readable_amount
from aggregator.config import AggregatorConfig
from aggregator.distribution import find_best_distribution
from aggregator.errors import AggregatorError
from aggregator.models.requests import OptimizeRequest, SwapRequest
from aggregator.quoting.source import Web3QuoteSource

logger = structlog.get_logger()

# Default settlement window for planned swaps
DEFAULT_DEADLINE_SECONDS = 20 * 60


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog for console output."""
    log_level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def load_matrix(path: Path) -> list[list[int]]:
    """Load a quote matrix from JSON: a list of rows or {"amounts": rows}."""
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, list):
        data = {"amounts": data}
    return OptimizeRequest.model_validate(data).amounts


def parse_amount(value: str, decimals: int | None) -> int:
    """Raw amount from the command line.

    Without decimals the value must already be in raw units; with decimals it
    is a human amount such as "1.5" and is scaled to raw units.
    """
    if decimals is None:
        return int(value)
    try:
        return from_readable_amount(value, decimals)
    except decimal.InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def cmd_optimize(args: argparse.Namespace) -> int:
    amounts = load_matrix(args.matrix)
    result = find_best_distribution(amounts)
    print(
        json.dumps(
            {"totalAmountOut": result.total_amount_out, "distribution": list(result.distribution)}
        )
    )
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    config = AggregatorConfig.from_env()
    overrides: dict[str, object] = {}
    if args.rpc_url:
        overrides["rpc_url"] = args.rpc_url
    if args.parts:
        overrides["parts"] = args.parts
    if overrides:
        config = replace(config, **overrides)
    if not config.rpc_url:
        logger.error("rpc_url_missing", hint="pass --rpc-url or set AGGREGATOR_RPC_URL")
        return 1

    request = SwapRequest(
        token_in=args.token_in,
        token_out=args.token_out,
        amount_in=parse_amount(args.amount_in, args.decimals_in),
        min_amount_out=parse_amount(args.min_amount_out, args.decimals_out),
        deadline=int(time.time()) + args.deadline_seconds,
    )
    quote_source = Web3QuoteSource(
        config.rpc_url,
        quoter_address=config.quoter_address,
        factory_address=config.factory_address,
    )
    trade_plan = plan_trade(request, quote_source, config)
    output: dict[str, object] = {
        "totalAmountOut": str(trade_plan.total_amount_out),
        "distribution": list(trade_plan.distribution),
        "feeTiers": list(trade_plan.fee_tiers),
        "routes": [
            {
                "pair": route.pair,
                "fee": route.fee,
                "tokenIn": route.token_in,
                "tokenOut": route.token_out,
                "amountIn": str(route.amount_in),
            }
            for route in trade_plan.routes
        ],
    }
    if args.decimals_out is not None:
        output["totalAmountOutReadable"] = to_readable_amount(
            trade_plan.total_amount_out, args.decimals_out
        )
    print(json.dumps(output, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="v3-aggregator",
        description="Split a swap optimally across UniswapV3 fee tiers",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    optimize = subparsers.add_parser("optimize", help="Optimize a quote matrix from a file")
    optimize.add_argument("--matrix", type=Path, required=True, help="JSON quote matrix")
    optimize.set_defaults(func=cmd_optimize)

    plan = subparsers.add_parser("plan", help="Quote and split a swap over RPC")
    plan.add_argument("--token-in", required=True, help="Input token address")
    plan.add_argument("--token-out", required=True, help="Output token address")
    plan.add_argument(
        "--amount-in", required=True, help="Input amount (raw units unless --decimals-in)"
    )
    plan.add_argument(
        "--min-amount-out",
        default="0",
        help="Minimum output (raw units unless --decimals-out)",
    )
    plan.add_argument(
        "--decimals-in",
        type=int,
        default=None,
        help="Input token decimals; --amount-in is then a human amount (e.g. 1.5)",
    )
    plan.add_argument(
        "--decimals-out",
        type=int,
        default=None,
        help="Output token decimals; reads --min-amount-out and prints the total readably",
    )
    plan.add_argument(
        "--deadline-seconds",
        type=int,
        default=DEFAULT_DEADLINE_SECONDS,
        help="Seconds from now until the deadline (default: 1200)",
    )
    plan.add_argument("--parts", type=int, default=None, help="Parts to split the input into")
    plan.add_argument("--rpc-url", default=None, help="JSON-RPC endpoint")
    plan.set_defaults(func=cmd_plan)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        return int(args.func(args))
    except (AggregatorError, ValidationError, OSError, ValueError) as e:
        logger.error(
            "command_failed", command=args.command, error_type=type(e).__name__, error=str(e)
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
