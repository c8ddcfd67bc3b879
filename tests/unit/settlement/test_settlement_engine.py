"""Unit tests for atomic multi-leg settlement."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from aggregator.errors import (
    AggregatorError,
    DeadlinePassed,
    InsufficientAllowance,
    InvalidSwapDeltas,
    PayerNotBound,
    ReentrantSettlement,
    SlippageViolation,
    TransferFailed,
    UnresolvableVenue,
    UntrustedCallback,
)
from aggregator.pools import SimulatedPool, compute_pool_address
from aggregator.routing import Route, encode_callback_data
from aggregator.config import AggregatorConfig
from aggregator.ledger import InMemoryLedger
from aggregator.pools.pool import VenueNetwork
from aggregator.settlement import SettlementEngine, bind_payer
from aggregator.settlement.context import payer_is_bound
from tests.helpers import (
    ATTACKER,
    DAI,
    ENGINE,
    NOW,
    ONE_USDC,
    ONE_WETH,
    OTHER_PAYER,
    PAYER,
    USDC,
    WETH,
    make_engine,
    snapshot_balances,
)

DEADLINE = NOW + 600


def weth_routes(amounts_by_fee):
    """WETH -> USDC routes through the derived pool of each fee tier."""
    return [
        Route(compute_pool_address(WETH, USDC, fee), fee, WETH, USDC, amount)
        for fee, amount in amounts_by_fee
    ]


class DelegatingVenue:
    """Venue wrapper that forwards swaps to a pool it does not expose."""

    def __init__(self, pool):
        self._pool = pool
        self.swaps = 0

    def swap(self, sender, recipient, zero_for_one, amount_specified, data):
        self.swaps += 1
        return self._pool.swap(sender, recipient, zero_for_one, amount_specified, data)


class PausingLocator:
    """Pool locator that stalls the first lookup until released."""

    def __init__(self, network):
        self.network = network
        self.entered = threading.Event()
        self.release = threading.Event()
        self.venues = []

    def pool_at(self, address):
        if not self.entered.is_set():
            self.entered.set()
            self.release.wait(timeout=5)
        pool = self.network.pool_at(address)
        if pool is None:
            return None
        venue = DelegatingVenue(pool)
        self.venues.append(venue)
        return venue


@pytest.fixture
def three_legs():
    return weth_routes([(500, ONE_WETH), (3000, 2 * ONE_WETH), (10000, 3 * ONE_WETH)])


@pytest.fixture
def holders(three_legs):
    return [PAYER] + [route.pair for route in three_legs]


class TestAggregateSwap:
    """Tests for successful settlement."""

    def test_settles_every_leg(self, ledger, network, engine, funded_payer, three_legs):
        expected = sum(
            network.quote_exact_input(r.token_in, r.token_out, r.fee, r.amount_in)
            for r in three_legs
        )

        total = engine.aggregate_swap(three_legs, expected, DEADLINE, caller=funded_payer)

        assert total == expected
        assert ledger.balance_of(USDC, PAYER) == expected
        assert ledger.balance_of(WETH, PAYER) == 94 * ONE_WETH
        assert len(ledger.transfers) == 6

    def test_pools_are_paid_exactly(self, ledger, engine, funded_payer, three_legs):
        before = {r.pair: ledger.balance_of(WETH, r.pair) for r in three_legs}

        engine.aggregate_swap(three_legs, 0, DEADLINE, caller=funded_payer)

        for route in three_legs:
            assert ledger.balance_of(WETH, route.pair) == before[route.pair] + route.amount_in

    def test_allowance_is_spent(self, ledger, engine, funded_payer, three_legs):
        engine.aggregate_swap(three_legs, 0, DEADLINE, caller=funded_payer)

        assert ledger.allowance(WETH, PAYER, engine.address) == 94 * ONE_WETH

    def test_reverse_direction(self, ledger, network, engine):
        ledger.mint(USDC, PAYER, 10_000 * ONE_USDC)
        ledger.approve(USDC, PAYER, engine.address, 10_000 * ONE_USDC)
        routes = [
            Route(compute_pool_address(WETH, USDC, 3000), 3000, USDC, WETH, 10_000 * ONE_USDC)
        ]
        expected = network.quote_exact_input(USDC, WETH, 3000, 10_000 * ONE_USDC)

        total = engine.aggregate_swap(routes, 0, DEADLINE, caller=PAYER)

        assert total == expected
        assert ledger.balance_of(WETH, PAYER) == expected

    def test_deadline_equal_to_now_is_accepted(self, engine, funded_payer, three_legs):
        assert engine.aggregate_swap(three_legs, 0, NOW, caller=funded_payer) > 0

    def test_sequential_settlements_are_independent(self, engine, funded_payer):
        legs = weth_routes([(3000, ONE_WETH)])

        first = engine.aggregate_swap(legs, 0, DEADLINE, caller=funded_payer)
        second = engine.aggregate_swap(legs, 0, DEADLINE, caller=funded_payer)

        # Each total counts only its own leg; the second trades at a worse price
        assert 0 < second < first


class TestAtomicity:
    """Any failure leaves every balance as it was."""

    def test_transfer_failure_on_second_leg_rolls_back(
        self, ledger, engine, funded_payer, three_legs, holders
    ):
        ledger.approve(WETH, PAYER, engine.address, ONE_WETH)
        before = snapshot_balances(ledger, holders)

        with pytest.raises(TransferFailed) as exc_info:
            engine.aggregate_swap(three_legs, 0, DEADLINE, caller=funded_payer)

        assert exc_info.value.token == WETH
        assert exc_info.value.amount == 2 * ONE_WETH
        assert isinstance(exc_info.value.__cause__, InsufficientAllowance)
        assert snapshot_balances(ledger, holders) == before
        assert ledger.allowance(WETH, PAYER, engine.address) == ONE_WETH
        assert ledger.transfers == []

    def test_insufficient_balance_is_transfer_failure(self, ledger, engine, three_legs, holders):
        ledger.mint(WETH, PAYER, 2 * ONE_WETH)
        ledger.approve(WETH, PAYER, engine.address, 100 * ONE_WETH)
        before = snapshot_balances(ledger, holders)

        with pytest.raises(TransferFailed):
            engine.aggregate_swap(three_legs, 0, DEADLINE, caller=PAYER)

        assert snapshot_balances(ledger, holders) == before

    def test_slippage_violation_rolls_back(
        self, ledger, network, engine, funded_payer, three_legs, holders
    ):
        expected = sum(
            network.quote_exact_input(r.token_in, r.token_out, r.fee, r.amount_in)
            for r in three_legs
        )
        before = snapshot_balances(ledger, holders)

        with pytest.raises(SlippageViolation) as exc_info:
            engine.aggregate_swap(three_legs, expected + 1, DEADLINE, caller=funded_payer)

        assert exc_info.value.min_amount_out == expected + 1
        assert exc_info.value.total_amount_out == expected
        assert snapshot_balances(ledger, holders) == before
        assert ledger.transfers == []

    def test_deadline_passed_touches_nothing(self, ledger, engine, funded_payer, three_legs):
        with pytest.raises(DeadlinePassed) as exc_info:
            engine.aggregate_swap(three_legs, 0, NOW - 1, caller=funded_payer)

        assert exc_info.value.deadline == NOW - 1
        assert exc_info.value.now == NOW
        assert ledger.transfers == []
        assert not payer_is_bound()

    def test_unknown_pair_is_unresolvable(self, ledger, engine, funded_payer):
        routes = weth_routes([(3000, ONE_WETH)]) + [
            Route(OTHER_PAYER, 500, WETH, USDC, ONE_WETH)
        ]

        with pytest.raises(UnresolvableVenue):
            engine.aggregate_swap(routes, 0, DEADLINE, caller=funded_payer)

        assert ledger.transfers == []

    def test_binding_released_after_failure(self, engine, funded_payer, three_legs):
        with pytest.raises(SlippageViolation):
            engine.aggregate_swap(three_legs, 10**30, DEADLINE, caller=funded_payer)

        assert not payer_is_bound()

    def test_reentrant_settlement_rejected(self, ledger, engine, funded_payer, three_legs):
        with bind_payer(engine.address, OTHER_PAYER):
            with pytest.raises(ReentrantSettlement):
                engine.aggregate_swap(three_legs, 0, DEADLINE, caller=funded_payer)

        assert ledger.transfers == []


class TestSwapCallback:
    """Tests for callback authentication and payment."""

    @pytest.mark.parametrize("fee", [500, 3000, 10000])
    @pytest.mark.parametrize("token_in,token_out", [(WETH, USDC), (DAI, USDC)])
    def test_forged_pool_is_rejected(
        self, ledger, network, engine, funded_payer, fee, token_in, token_out
    ):
        forged = network.add_pool(
            SimulatedPool(token_in, token_out, fee, ledger, address=ATTACKER)
        )
        ledger.mint(token_in, forged.address, 1_000 * ONE_WETH)
        ledger.mint(token_out, forged.address, 1_000_000 * ONE_USDC)
        ledger.mint(DAI, PAYER, 100 * ONE_WETH)
        ledger.approve(DAI, PAYER, engine.address, 100 * ONE_WETH)
        before = snapshot_balances(ledger, [PAYER, ATTACKER])

        with pytest.raises(UntrustedCallback) as exc_info:
            engine.aggregate_swap(
                [Route(ATTACKER, fee, token_in, token_out, ONE_WETH)],
                0,
                DEADLINE,
                caller=funded_payer,
            )

        assert exc_info.value.actual == ATTACKER
        assert exc_info.value.expected == compute_pool_address(token_in, token_out, fee)
        assert snapshot_balances(ledger, [PAYER, ATTACKER]) == before
        assert ledger.balance_of(DAI, PAYER) == 100 * ONE_WETH

    def test_callback_outside_settlement(self, ledger, engine, funded_payer):
        pool = compute_pool_address(WETH, USDC, 500)

        with pytest.raises(PayerNotBound):
            engine.on_swap_callback(-1, ONE_WETH, encode_callback_data(WETH, USDC, 500), pool)

        assert ledger.balance_of(WETH, PAYER) == 100 * ONE_WETH

    def test_callback_bound_by_other_engine(self, engine, funded_payer):
        pool = compute_pool_address(WETH, USDC, 500)

        with bind_payer(OTHER_PAYER, PAYER):
            with pytest.raises(PayerNotBound):
                engine.on_swap_callback(-1, 1, encode_callback_data(WETH, USDC, 500), pool)

    def test_undecodable_data_is_untrusted(self, engine):
        with pytest.raises(UntrustedCallback) as exc_info:
            engine.on_swap_callback(1, -1, b"\x01\x02", ATTACKER)

        assert exc_info.value.actual == ATTACKER

    @pytest.mark.parametrize("deltas", [(0, 0), (5, 5), (-1, -1)])
    def test_invalid_deltas(self, engine, funded_payer, deltas):
        pool = compute_pool_address(WETH, USDC, 3000)

        with bind_payer(engine.address, PAYER):
            with pytest.raises(InvalidSwapDeltas):
                engine.on_swap_callback(*deltas, encode_callback_data(WETH, USDC, 3000), pool)

    def test_callback_pays_the_calling_pool(self, ledger, engine, funded_payer):
        pool = compute_pool_address(WETH, USDC, 3000)
        before = ledger.balance_of(WETH, pool)

        with bind_payer(engine.address, PAYER) as binding:
            # USDC is token0, WETH is token1: the pool is owed WETH
            engine.on_swap_callback(
                -7 * ONE_USDC, ONE_WETH, encode_callback_data(WETH, USDC, 3000), pool
            )

        assert ledger.balance_of(WETH, pool) == before + ONE_WETH
        assert [(o.pair, o.token_out, o.amount_out) for o in binding.outcomes] == [
            (pool, USDC, 7 * ONE_USDC)
        ]

    def test_errors_share_base(self):
        for error in (UntrustedCallback, PayerNotBound, TransferFailed, SlippageViolation):
            assert issubclass(error, AggregatorError)


class TestSwapVenues:
    """Tests for settling through venues located by address."""

    def test_settles_through_any_swap_venue(self, ledger, network, funded_payer, three_legs):
        locator = PausingLocator(network)
        locator.release.set()
        engine = SettlementEngine(ENGINE, ledger, locator, clock=lambda: NOW)

        total = engine.aggregate_swap(three_legs, 0, DEADLINE, caller=funded_payer)

        assert total == ledger.balance_of(USDC, PAYER) > 0
        assert [venue.swaps for venue in locator.venues] == [1, 1, 1]

    def test_from_config_trusts_configured_factory(self):
        factory = "0x" + "ee" * 20
        init_code_hash = "0x" + "12" * 32
        config = AggregatorConfig(factory_address=factory, pool_init_code_hash=init_code_hash)
        ledger = InMemoryLedger()
        network = VenueNetwork(ledger, factory=factory, init_code_hash=init_code_hash)
        pool = network.create_pool(WETH, USDC, 3000, 1_000 * ONE_WETH, 2_000_000 * ONE_USDC)
        ledger.mint(WETH, PAYER, ONE_WETH)
        ledger.approve(WETH, PAYER, ENGINE, ONE_WETH)
        routes = [Route(pool.address, 3000, WETH, USDC, ONE_WETH)]

        default_engine = make_engine(ledger, network)
        with pytest.raises(UntrustedCallback):
            default_engine.aggregate_swap(routes, 0, DEADLINE, caller=PAYER)

        engine = SettlementEngine.from_config(
            ENGINE, ledger, network, config, clock=lambda: NOW
        )
        total = engine.aggregate_swap(routes, 0, DEADLINE, caller=PAYER)

        assert pool.address == compute_pool_address(WETH, USDC, 3000, factory, init_code_hash)
        assert engine.factory == factory
        assert ledger.balance_of(USDC, PAYER) == total > 0
        assert ledger.balance_of(WETH, PAYER) == 0


class TestConcurrentSettlement:
    """Tests for settlements running in parallel threads."""

    def test_failed_settlement_keeps_concurrent_commit(self, ledger, network, funded_payer):
        ledger.mint(WETH, OTHER_PAYER, 10 * ONE_WETH)
        ledger.approve(WETH, OTHER_PAYER, ENGINE, 10 * ONE_WETH)
        legs = weth_routes([(3000, 5 * ONE_WETH)])
        expected = network.quote_exact_input(WETH, USDC, 3000, 5 * ONE_WETH)
        before = snapshot_balances(ledger, [PAYER])

        locator = PausingLocator(network)
        stalled = SettlementEngine(ENGINE, ledger, locator, clock=lambda: NOW)
        other = make_engine(ledger, network)
        errors = []
        totals = []

        def settle_stalled():
            try:
                stalled.aggregate_swap(legs, 10**40, DEADLINE, caller=PAYER)
            except SlippageViolation as e:
                errors.append(e)

        def settle_other():
            totals.append(other.aggregate_swap(legs, 0, DEADLINE, caller=OTHER_PAYER))

        first = threading.Thread(target=settle_stalled)
        second = threading.Thread(target=settle_other)
        first.start()
        assert locator.entered.wait(timeout=5)
        second.start()
        second.join(timeout=0.2)
        # Still waiting for the stalled unit to finish
        assert second.is_alive()

        locator.release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert len(errors) == 1
        assert totals == [expected]
        assert ledger.balance_of(USDC, OTHER_PAYER) == expected
        assert ledger.balance_of(WETH, OTHER_PAYER) == 5 * ONE_WETH
        assert snapshot_balances(ledger, [PAYER]) == before

    def test_parallel_payers_both_settle(self, ledger, network, engine, funded_payer):
        ledger.mint(WETH, OTHER_PAYER, 10 * ONE_WETH)
        ledger.approve(WETH, OTHER_PAYER, engine.address, 10 * ONE_WETH)
        legs = weth_routes([(500, ONE_WETH), (3000, 2 * ONE_WETH)])
        pools = [route.pair for route in legs]
        usdc_before = sum(ledger.balance_of(USDC, pool) for pool in pools)

        with ThreadPoolExecutor(max_workers=2) as executor:
            futures = {
                payer: executor.submit(engine.aggregate_swap, legs, 0, DEADLINE, payer)
                for payer in (PAYER, OTHER_PAYER)
            }
            totals = {payer: future.result(timeout=5) for payer, future in futures.items()}

        usdc_after = sum(ledger.balance_of(USDC, pool) for pool in pools)
        assert ledger.balance_of(USDC, PAYER) == totals[PAYER] > 0
        assert ledger.balance_of(USDC, OTHER_PAYER) == totals[OTHER_PAYER] > 0
        assert usdc_before - usdc_after == totals[PAYER] + totals[OTHER_PAYER]
        assert ledger.balance_of(WETH, OTHER_PAYER) == 7 * ONE_WETH
        assert len(ledger.transfers) == 8
