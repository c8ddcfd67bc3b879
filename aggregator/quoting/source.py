"""Quote sources: exact-input quotes and pool lookup per fee tier."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import structlog

from aggregator.constants import QUOTER_V2_ADDRESS, V3_FACTORY_ADDRESS, ZERO_ADDRESS
from aggregator.models.types import normalize_address

logger = structlog.get_logger()


class QuoteSource(Protocol):
    """Protocol for read-only price oracles over V3 pools.

    This allows swapping between the RPC-backed source, the simulated
    network and a mock for testing.
    """

    def quote_exact_input(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_in: int,
    ) -> int | None:
        """Get output amount for exact input.

        Returns:
            Output amount, or None if quote fails
        """
        ...

    def get_pool(self, token_a: str, token_b: str, fee: int) -> str | None:
        """Get the pool address for a pair and fee tier.

        Returns:
            Pool address, or None / the zero address if the pool does not exist
        """
        ...


@dataclass(frozen=True)
class QuoteKey:
    """Key for looking up quotes in MockQuoteSource."""

    token_in: str
    token_out: str
    fee: int
    amount_in: int

    @classmethod
    def of(cls, token_in: str, token_out: str, fee: int, amount_in: int) -> QuoteKey:
        return cls(normalize_address(token_in), normalize_address(token_out), fee, amount_in)


class MockQuoteSource:
    """Mock quote source for testing without RPC calls.

    Configure with expected quotes and pools, and track calls for assertions.
    """

    def __init__(
        self,
        quotes: dict[QuoteKey, int] | None = None,
        pools: dict[tuple[str, str, int], str] | None = None,
        default_rate: tuple[int, int] | None = None,
    ):
        """Initialize mock quote source.

        Args:
            quotes: Mapping of QuoteKey -> output amount for specific quotes
            pools: Mapping of (token_a, token_b, fee) -> pool address; the
                   pair is matched in either order
            default_rate: If set, (numerator, denominator) ratio for any
                          unconfigured quote: amount_out = amount_in * num // denom
        """
        self.quotes = {
            QuoteKey.of(k.token_in, k.token_out, k.fee, k.amount_in): v
            for k, v in (quotes or {}).items()
        }
        self.pools: dict[tuple[frozenset[str], int], str] = {}
        for (token_a, token_b, fee), address in (pools or {}).items():
            self.add_pool(token_a, token_b, fee, address)
        self.default_rate = default_rate
        self.calls: list[tuple[str, str, int, int]] = []  # (in, out, fee, amount)

    def add_pool(self, token_a: str, token_b: str, fee: int, address: str) -> None:
        key = (frozenset((normalize_address(token_a), normalize_address(token_b))), fee)
        self.pools[key] = normalize_address(address)

    def quote_exact_input(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_in: int,
    ) -> int | None:
        self.calls.append((token_in, token_out, fee, amount_in))

        key = QuoteKey.of(token_in, token_out, fee, amount_in)
        if key in self.quotes:
            return self.quotes[key]

        if self.default_rate is not None:
            num, denom = self.default_rate
            return amount_in * num // denom

        return None

    def get_pool(self, token_a: str, token_b: str, fee: int) -> str | None:
        key = (frozenset((normalize_address(token_a), normalize_address(token_b))), fee)
        return self.pools.get(key)


# QuoterV2 ABI - minimal, just the function we need
QUOTER_V2_ABI = [
    {
        "name": "quoteExactInputSingle",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {
                "name": "params",
                "type": "tuple",
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
            }
        ],
        "outputs": [
            {"name": "amountOut", "type": "uint256"},
            {"name": "sqrtPriceX96After", "type": "uint160"},
            {"name": "initializedTicksCrossed", "type": "uint32"},
            {"name": "gasEstimate", "type": "uint256"},
        ],
    },
]

V3_FACTORY_ABI = [
    {
        "name": "getPool",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
            {"name": "fee", "type": "uint24"},
        ],
        "outputs": [{"name": "pool", "type": "address"}],
    },
]


class Web3QuoteSource:
    """Quote source backed by QuoterV2 and the factory over JSON-RPC.

    Quotes are eth_call requests against QuoterV2; pool lookups call
    factory.getPool.
    """

    def __init__(
        self,
        web3_provider: str,
        quoter_address: str = QUOTER_V2_ADDRESS,
        factory_address: str = V3_FACTORY_ADDRESS,
    ):
        """Initialize with a web3 provider.

        Args:
            web3_provider: HTTP RPC URL (e.g., "https://eth.llamarpc.com")
            quoter_address: QuoterV2 contract address
            factory_address: Pool factory contract address
        """
        try:
            from web3 import Web3
        except ImportError as e:
            raise ImportError(
                "web3 package required for Web3QuoteSource. Install with: pip install web3"
            ) from e

        self.w3 = Web3(Web3.HTTPProvider(web3_provider))
        self.quoter = self.w3.eth.contract(
            address=Web3.to_checksum_address(quoter_address),
            abi=QUOTER_V2_ABI,
        )
        self.factory = self.w3.eth.contract(
            address=Web3.to_checksum_address(factory_address),
            abi=V3_FACTORY_ABI,
        )

    def quote_exact_input(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_in: int,
    ) -> int | None:
        """Get output amount for exact input via RPC call."""
        try:
            from web3 import Web3

            result = self.quoter.functions.quoteExactInputSingle(
                (
                    Web3.to_checksum_address(token_in),
                    Web3.to_checksum_address(token_out),
                    amount_in,
                    fee,
                    0,  # sqrtPriceLimitX96 = 0 means no limit
                )
            ).call()

            # Result is (amountOut, sqrtPriceX96After, initializedTicksCrossed, gasEstimate)
            return int(result[0])
        except Exception as e:
            logger.warning(
                "quote_exact_input_failed",
                token_in=token_in,
                token_out=token_out,
                fee=fee,
                amount_in=amount_in,
                error=str(e),
            )
            return None

    def get_pool(self, token_a: str, token_b: str, fee: int) -> str | None:
        from web3 import Web3

        address = self.factory.functions.getPool(
            Web3.to_checksum_address(token_a),
            Web3.to_checksum_address(token_b),
            fee,
        ).call()
        address = normalize_address(address)
        return None if address == ZERO_ADDRESS else address


__all__ = [
    "QUOTER_V2_ABI",
    "V3_FACTORY_ABI",
    "MockQuoteSource",
    "QuoteKey",
    "QuoteSource",
    "Web3QuoteSource",
]
