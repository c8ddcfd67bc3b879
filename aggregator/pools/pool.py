"""Simulated UniswapV3-style pools and the network that hosts them.

A ``SimulatedPool`` keeps its reserves in the asset ledger and follows the
V3 swap protocol from the caller's side: it delivers output to the
recipient first, then calls back into the swapping contract asking to be
paid, and finally checks that its input balance grew by what it asked for.

The pricing is constant product with a fee on input. It stands in for
concentrated liquidity only as far as quoting and settlement need; tick
math is out of scope.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import structlog

from aggregator.constants import (
    FEE_DENOMINATOR,
    POOL_INIT_CODE_HASH,
    V3_FACTORY_ADDRESS,
    ZERO_ADDRESS,
)
from aggregator.errors import InsufficientInputAmount, VenueError
from aggregator.ledger import InMemoryLedger
from aggregator.models.types import normalize_address
from aggregator.pools.address import compute_pool_address, sort_tokens

logger = structlog.get_logger()


class SwapCallbackReceiver(Protocol):
    """Anything a pool can call back into for payment."""

    def on_swap_callback(
        self, amount0_delta: int, amount1_delta: int, data: bytes, caller: str
    ) -> None: ...


@dataclass
class SimulatedPool:
    """A pool for one token pair and fee tier, backed by ledger balances.

    ``address`` defaults to the CREATE2 derivation from the factory; pass
    an explicit address to model a contract that merely claims to be a pool.
    """

    token0: str
    token1: str
    fee: int  # Fee in Uniswap units (e.g., 3000 for 0.3%)
    ledger: InMemoryLedger = field(repr=False)
    factory: str = V3_FACTORY_ADDRESS
    init_code_hash: str = POOL_INIT_CODE_HASH
    address: str = ""

    def __post_init__(self) -> None:
        self.token0, self.token1 = sort_tokens(self.token0, self.token1)
        if self.address:
            self.address = normalize_address(self.address, validate=True)
        else:
            self.address = compute_pool_address(
                self.token0, self.token1, self.fee, self.factory, self.init_code_hash
            )

    @property
    def fee_decimal(self) -> float:
        """Fee as decimal (e.g., 0.003 for 0.3%)."""
        return self.fee / FEE_DENOMINATOR

    @property
    def reserves(self) -> tuple[int, int]:
        return (
            self.ledger.balance_of(self.token0, self.address),
            self.ledger.balance_of(self.token1, self.address),
        )

    def is_token0(self, token: str) -> bool:
        """Check if token is token0 (determines swap direction)."""
        return normalize_address(token) == self.token0

    def get_token_out(self, token_in: str) -> str:
        """Get the output token for a given input token."""
        token_in_norm = normalize_address(token_in)
        if token_in_norm == self.token0:
            return self.token1
        if token_in_norm == self.token1:
            return self.token0
        raise ValueError(f"Token {token_in} not in pool")

    def get_amount_out(self, zero_for_one: bool, amount_in: int) -> int:
        """Output for an exact input, fee taken from the input side."""
        if amount_in <= 0:
            return 0
        reserve0, reserve1 = self.reserves
        reserve_in, reserve_out = (reserve0, reserve1) if zero_for_one else (reserve1, reserve0)
        if reserve_in == 0 or reserve_out == 0:
            return 0
        amount_in_with_fee = amount_in * (FEE_DENOMINATOR - self.fee)
        denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
        return (amount_in_with_fee * reserve_out) // denominator

    def quote(self, token_in: str, amount_in: int) -> int:
        self.get_token_out(token_in)
        return self.get_amount_out(self.is_token0(token_in), amount_in)

    def swap(
        self,
        sender: SwapCallbackReceiver,
        recipient: str,
        zero_for_one: bool,
        amount_specified: int,
        data: bytes,
    ) -> tuple[int, int]:
        """Swap an exact input, paying out before collecting.

        Deltas follow the pool's perspective: positive is owed to the pool,
        negative was sent out of it.

        Returns:
            (amount0_delta, amount1_delta)

        Raises:
            VenueError: If the input is not positive or yields no output
            InsufficientInputAmount: If the callback did not pay the pool
        """
        if amount_specified <= 0:
            raise VenueError(f"Exact input must be positive, got {amount_specified}")

        amount_out = self.get_amount_out(zero_for_one, amount_specified)
        if amount_out <= 0:
            raise VenueError(f"Swap of {amount_specified} yields no output")

        if zero_for_one:
            token_in, token_out = self.token0, self.token1
            amount0, amount1 = amount_specified, -amount_out
        else:
            token_in, token_out = self.token1, self.token0
            amount0, amount1 = -amount_out, amount_specified

        self.ledger.transfer(token_out, self.address, recipient, amount_out)

        balance_before = self.ledger.balance_of(token_in, self.address)
        sender.on_swap_callback(amount0, amount1, data, caller=self.address)
        if self.ledger.balance_of(token_in, self.address) < balance_before + amount_specified:
            raise InsufficientInputAmount(
                f"Pool {self.address} expected {amount_specified} of {token_in}"
            )

        logger.debug(
            "pool_swap",
            pool=self.address,
            token_in=token_in,
            amount_in=amount_specified,
            amount_out=amount_out,
        )
        return amount0, amount1


class VenueNetwork:
    """Address-indexed set of pools, with factory lookup and quoting.

    Plays the part of the chain for simulation: the settlement engine finds
    pools by address here, and the network also answers the Quote Source
    questions (pool lookup and exact-input quotes) from live pool state.
    """

    def __init__(
        self,
        ledger: InMemoryLedger,
        factory: str = V3_FACTORY_ADDRESS,
        init_code_hash: str = POOL_INIT_CODE_HASH,
    ) -> None:
        self.ledger = ledger
        self.factory = normalize_address(factory)
        self.init_code_hash = init_code_hash
        self._pools: dict[str, SimulatedPool] = {}
        self._by_key: dict[tuple[str, str, int], str] = {}

    def add_pool(self, pool: SimulatedPool) -> SimulatedPool:
        """Register a pool.

        Only pools derived from this network's factory are returned by
        ``get_pool``; others are reachable by address alone.
        """
        self._pools[pool.address] = pool
        if normalize_address(pool.factory) == self.factory and pool.address == compute_pool_address(
            pool.token0, pool.token1, pool.fee, pool.factory, pool.init_code_hash
        ):
            self._by_key[(pool.token0, pool.token1, pool.fee)] = pool.address
        return pool

    def create_pool(
        self,
        token_a: str,
        token_b: str,
        fee: int,
        reserve_a: int = 0,
        reserve_b: int = 0,
    ) -> SimulatedPool:
        """Deploy a pool at its derived address and seed its reserves."""
        pool = SimulatedPool(
            token_a,
            token_b,
            fee,
            self.ledger,
            factory=self.factory,
            init_code_hash=self.init_code_hash,
        )
        if reserve_a:
            self.ledger.mint(token_a, pool.address, reserve_a)
        if reserve_b:
            self.ledger.mint(token_b, pool.address, reserve_b)
        return self.add_pool(pool)

    def pool_at(self, address: str) -> SimulatedPool | None:
        return self._pools.get(normalize_address(address))

    def get_pool(self, token_a: str, token_b: str, fee: int) -> str:
        """Factory lookup: pool address, or the zero address if none exists."""
        token0, token1 = sort_tokens(token_a, token_b)
        return self._by_key.get((token0, token1, fee), ZERO_ADDRESS)

    def quote_exact_input(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_in: int,
    ) -> int | None:
        """Exact-input quote from current pool state, None if no pool."""
        address = self.get_pool(token_in, token_out, fee)
        if address == ZERO_ADDRESS:
            return None
        return self._pools[address].quote(token_in, amount_in)

    def __len__(self) -> int:
        return len(self._pools)


__all__ = ["SimulatedPool", "SwapCallbackReceiver", "VenueNetwork"]
