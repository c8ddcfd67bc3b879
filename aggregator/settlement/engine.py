"""Atomic multi-leg settlement.

The engine executes a list of routes as one unit of work:

1. Init: reject an expired deadline, bind the caller as payer.
2. Executing: for each route in order, ask the pool to swap. The pool
   delivers output to the payer and calls ``on_swap_callback`` to be
   paid. The callback only pays a caller whose address equals the CREATE2
   derivation of the pair and fee it claims, then pulls the owed input
   from the payer.
3. Finalizing: total output must reach ``min_amount_out``.

Everything runs inside ``ledger.atomic()``, so any failure leaves no
transfer behind. The payer binding is released on every exit path.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

import structlog
from eth_abi.exceptions import DecodingError

from aggregator.config import AggregatorConfig
from aggregator.constants import POOL_INIT_CODE_HASH, V3_FACTORY_ADDRESS
from aggregator.errors import (
    AggregatorError,
    DeadlinePassed,
    InvalidSwapDeltas,
    LedgerError,
    PayerNotBound,
    SlippageViolation,
    TransferFailed,
    UnresolvableVenue,
    UntrustedCallback,
)
from aggregator.ledger import AssetLedger
from aggregator.models.types import normalize_address
from aggregator.pools.address import compute_pool_address, sort_tokens
from aggregator.pools.pool import SwapCallbackReceiver
from aggregator.routing.encoding import decode_callback_data, encode_callback_data
from aggregator.routing.routes import Route
from aggregator.settlement.context import bind_payer, current_binding

logger = structlog.get_logger()


class SwapVenue(Protocol):
    """A pool that swaps an exact input and collects payment by callback."""

    def swap(
        self,
        sender: SwapCallbackReceiver,
        recipient: str,
        zero_for_one: bool,
        amount_specified: int,
        data: bytes,
    ) -> tuple[int, int]: ...


class PoolLocator(Protocol):
    """Finds the contract deployed at an address."""

    def pool_at(self, address: str) -> SwapVenue | None: ...


@dataclass(frozen=True)
class SwapOutcome:
    """Output delivered by one leg."""

    pair: str
    token_out: str
    amount_out: int


class SettlementEngine:
    """Executes routes atomically, paying each pool on its callback.

    Args:
        address: The engine's own address (spender of the payer's tokens)
        ledger: Asset ledger holding all balances
        pools: Locator for the pools named in routes
        factory: Pool factory used for callback address derivation
        init_code_hash: Pool creation code hash for address derivation
        clock: Returns the current unix timestamp; defaults to time.time
    """

    def __init__(
        self,
        address: str,
        ledger: AssetLedger,
        pools: PoolLocator,
        factory: str = V3_FACTORY_ADDRESS,
        init_code_hash: str = POOL_INIT_CODE_HASH,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.address = normalize_address(address, validate=True)
        self.ledger = ledger
        self.pools = pools
        self.factory = normalize_address(factory, validate=True)
        self.init_code_hash = init_code_hash
        self._clock = clock if clock is not None else lambda: int(time.time())

    @classmethod
    def from_config(
        cls,
        address: str,
        ledger: AssetLedger,
        pools: PoolLocator,
        config: AggregatorConfig,
        clock: Callable[[], int] | None = None,
    ) -> SettlementEngine:
        """Create an engine that authenticates pools of the configured factory."""
        return cls(
            address,
            ledger,
            pools,
            factory=config.factory_address,
            init_code_hash=config.pool_init_code_hash,
            clock=clock,
        )

    def aggregate_swap(
        self,
        routes: Sequence[Route],
        min_amount_out: int,
        deadline: int,
        caller: str,
    ) -> int:
        """Settle all routes or none of them.

        Args:
            routes: Legs to execute, in order
            min_amount_out: Minimum total output across all legs
            deadline: Unix timestamp after which settlement is refused
            caller: The payer, who also receives every leg's output

        Returns:
            Total output delivered to the caller

        Raises:
            DeadlinePassed: If now is past the deadline (nothing is touched)
            ReentrantSettlement: If a settlement is already live in this context
            UnresolvableVenue: If a route's pair has no pool deployed
            UntrustedCallback, PayerNotBound, TransferFailed: From a leg's callback
            SlippageViolation: If total output is below min_amount_out
        """
        now = self._clock()
        if now > deadline:
            logger.warning("settlement_deadline_passed", deadline=deadline, now=now)
            raise DeadlinePassed(deadline, now)

        payer = normalize_address(caller, validate=True)
        logger.info(
            "settlement_started",
            engine=self.address,
            payer=payer,
            legs=len(routes),
            min_amount_out=min_amount_out,
        )

        try:
            with bind_payer(self.address, payer) as binding, self.ledger.atomic():
                for index, route in enumerate(routes):
                    self._execute_leg(index, route, payer)

                total_amount_out = sum(outcome.amount_out for outcome in binding.outcomes)
                if total_amount_out < min_amount_out:
                    raise SlippageViolation(min_amount_out, total_amount_out)
        except AggregatorError as e:
            logger.warning(
                "settlement_aborted",
                engine=self.address,
                payer=payer,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        logger.info(
            "settlement_committed",
            engine=self.address,
            payer=payer,
            total_amount_out=total_amount_out,
        )
        return total_amount_out

    def _execute_leg(self, index: int, route: Route, payer: str) -> None:
        pool = self.pools.pool_at(route.pair)
        if pool is None:
            raise UnresolvableVenue(route.token_in, route.token_out, route.fee)

        token0, _ = sort_tokens(route.token_in, route.token_out)
        zero_for_one = normalize_address(route.token_in) == token0
        logger.debug(
            "settlement_leg",
            leg=index,
            pair=route.pair,
            fee=route.fee,
            amount_in=route.amount_in,
        )
        pool.swap(
            self,
            recipient=payer,
            zero_for_one=zero_for_one,
            amount_specified=route.amount_in,
            data=encode_callback_data(route.token_in, route.token_out, route.fee),
        )

    def on_swap_callback(
        self,
        amount0_delta: int,
        amount1_delta: int,
        data: bytes,
        caller: str,
    ) -> None:
        """Pay a pool for a swap in progress.

        Args:
            amount0_delta: token0 owed to the pool (positive) or sent by it
            amount1_delta: token1 owed to the pool (positive) or sent by it
            data: ABI-encoded (token_in, token_out, fee) of the leg
            caller: Address of the contract making the callback

        Raises:
            UntrustedCallback: If caller is not the pool derived from data
            PayerNotBound: If no settlement of this engine is in progress
            InvalidSwapDeltas: If not exactly one delta is positive
            TransferFailed: If the payer cannot pay what is owed
        """
        caller = normalize_address(caller)
        try:
            token_in, token_out, fee = decode_callback_data(data)
            expected = compute_pool_address(
                token_in, token_out, fee, self.factory, self.init_code_hash
            )
        except (DecodingError, ValueError) as e:
            raise UntrustedCallback(expected="<undecodable callback data>", actual=caller) from e
        if expected != caller:
            raise UntrustedCallback(expected=expected, actual=caller)

        binding = current_binding(self.address)
        if binding is None:
            raise PayerNotBound()

        if (amount0_delta > 0) == (amount1_delta > 0):
            raise InvalidSwapDeltas(amount0_delta, amount1_delta)

        token0, token1 = sort_tokens(token_in, token_out)
        if amount0_delta > 0:
            owed_token, owed = token0, amount0_delta
            delivered_token, delivered = token1, -amount1_delta
        else:
            owed_token, owed = token1, amount1_delta
            delivered_token, delivered = token0, -amount0_delta

        try:
            self.ledger.transfer_from(owed_token, self.address, binding.payer, caller, owed)
        except LedgerError as e:
            raise TransferFailed(owed_token, owed, reason=str(e)) from e

        binding.outcomes.append(
            SwapOutcome(pair=caller, token_out=delivered_token, amount_out=max(delivered, 0))
        )
        logger.debug(
            "settlement_leg_paid",
            pair=caller,
            token=owed_token,
            amount_paid=owed,
            amount_out=delivered,
        )


__all__ = ["PoolLocator", "SettlementEngine", "SwapOutcome", "SwapVenue"]
