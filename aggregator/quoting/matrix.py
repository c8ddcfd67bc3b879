"""Quote matrix construction.

Splits the input amount into ``parts`` equal parts and asks the quote
source what each venue (one pool per fee tier) would return for
0, 1, ..., parts of them. Row i of the matrix belongs to fee_tiers[i].
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from concurrent.futures import Executor

import structlog

from aggregator.amounts import part_amount
from aggregator.constants import ZERO_ADDRESS
from aggregator.quoting.source import QuoteSource

logger = structlog.get_logger()


def pool_exists(quote_source: QuoteSource, token_in: str, token_out: str, fee: int) -> bool:
    address = quote_source.get_pool(token_in, token_out, fee)
    return address is not None and address != ZERO_ADDRESS


def quote_parts(
    quote_source: QuoteSource,
    token_in: str,
    token_out: str,
    fee: int,
    amount_in: int,
    parts: int,
) -> list[int]:
    """Quote one venue for every part count.

    Returns:
        ``parts + 1`` outputs; index 0 is always 0. A missing pool gives an
        all-zero row and a failed quote counts as 0 output.
    """
    amounts_out = [0] * (parts + 1)
    if not pool_exists(quote_source, token_in, token_out, fee):
        logger.debug("venue_missing", token_in=token_in, token_out=token_out, fee=fee)
        return amounts_out

    for i in range(1, parts + 1):
        amount_out = quote_source.quote_exact_input(
            token_in, token_out, fee, part_amount(amount_in, parts, i)
        )
        if amount_out is None:
            logger.warning("quote_failed", fee=fee, part=i, parts=parts)
            continue
        amounts_out[i] = amount_out
    return amounts_out


def build_quote_matrix(
    quote_source: QuoteSource,
    token_in: str,
    token_out: str,
    amount_in: int,
    fee_tiers: Sequence[int],
    parts: int,
) -> list[list[int]]:
    """Quote every fee tier sequentially."""
    return [
        quote_parts(quote_source, token_in, token_out, fee, amount_in, parts)
        for fee in fee_tiers
    ]


async def build_quote_matrix_async(
    quote_source: QuoteSource,
    token_in: str,
    token_out: str,
    amount_in: int,
    fee_tiers: Sequence[int],
    parts: int,
    executor: Executor | None = None,
) -> list[list[int]]:
    """Quote every fee tier concurrently on an executor.

    Each venue's row is independent, so rows are fetched in parallel and
    reassembled in fee tier order.
    """
    loop = asyncio.get_running_loop()
    rows = await asyncio.gather(
        *(
            loop.run_in_executor(
                executor,
                quote_parts,
                quote_source,
                token_in,
                token_out,
                fee,
                amount_in,
                parts,
            )
            for fee in fee_tiers
        )
    )
    return list(rows)


__all__ = ["build_quote_matrix", "build_quote_matrix_async", "pool_exists", "quote_parts"]
