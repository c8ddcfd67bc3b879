"""Route building from an optimal distribution."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from aggregator.amounts import part_amount
from aggregator.constants import ZERO_ADDRESS
from aggregator.errors import EmptyRouteSet, UnresolvableVenue
from aggregator.models.types import normalize_address
from aggregator.quoting.source import QuoteSource

logger = structlog.get_logger()


@dataclass(frozen=True)
class Route:
    """One settlement leg: swap amount_in of token_in through one pool."""

    pair: str
    fee: int
    token_in: str
    token_out: str
    amount_in: int

    def as_tuple(self) -> tuple[str, int, str, str, int]:
        """Field order of the on-chain route struct."""
        return (self.pair, self.fee, self.token_in, self.token_out, self.amount_in)


def build_routes(
    distribution: Sequence[int],
    fee_tiers: Sequence[int],
    token_in: str,
    token_out: str,
    amount_in: int,
    parts: int,
    resolver: QuoteSource,
) -> list[Route]:
    """Turn parts-per-venue into ordered settlement legs.

    Venues with no parts, or whose share of amount_in rounds down to zero,
    are dropped. Every remaining venue must resolve to a pool before
    anything is settled.

    Raises:
        UnresolvableVenue: If a venue with parts has no pool
        EmptyRouteSet: If no venue received a non-zero input
    """
    if len(distribution) != len(fee_tiers):
        raise ValueError(
            f"distribution has {len(distribution)} venues, fee_tiers has {len(fee_tiers)}"
        )

    routes: list[Route] = []
    for allocation, fee in zip(distribution, fee_tiers, strict=True):
        if allocation <= 0:
            continue
        leg_amount = part_amount(amount_in, parts, allocation)
        if leg_amount <= 0:
            logger.debug("route_dust_dropped", fee=fee, allocation=allocation, parts=parts)
            continue
        pool_address = resolver.get_pool(token_in, token_out, fee)
        if pool_address is None or normalize_address(pool_address) == ZERO_ADDRESS:
            raise UnresolvableVenue(token_in, token_out, fee)
        routes.append(
            Route(
                pair=normalize_address(pool_address),
                fee=fee,
                token_in=normalize_address(token_in),
                token_out=normalize_address(token_out),
                amount_in=leg_amount,
            )
        )

    if not routes:
        raise EmptyRouteSet()

    logger.debug("routes_built", route_count=len(routes), fees=[r.fee for r in routes])
    return routes


__all__ = ["Route", "build_routes"]
