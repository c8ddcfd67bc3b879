"""Quote sources and quote matrix construction."""

from aggregator.quoting.matrix import (
    build_quote_matrix,
    build_quote_matrix_async,
    pool_exists,
    quote_parts,
)
from aggregator.quoting.source import MockQuoteSource, QuoteKey, QuoteSource, Web3QuoteSource

__all__ = [
    "MockQuoteSource",
    "QuoteKey",
    "QuoteSource",
    "Web3QuoteSource",
    "build_quote_matrix",
    "build_quote_matrix_async",
    "pool_exists",
    "quote_parts",
]
