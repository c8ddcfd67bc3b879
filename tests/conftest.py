"""Pytest configuration and fixtures."""

import pytest
import structlog

from aggregator.ledger import InMemoryLedger
from aggregator.pools.pool import VenueNetwork
from aggregator.settlement.engine import SettlementEngine
from tests.helpers import ONE_WETH, PAYER, WETH, make_engine, make_network


@pytest.fixture
def ledger() -> InMemoryLedger:
    """Empty in-memory ledger."""
    return InMemoryLedger()


@pytest.fixture
def network(ledger: InMemoryLedger) -> VenueNetwork:
    """WETH/USDC pools on the 0.05%, 0.3% and 1% tiers."""
    return make_network(ledger)


@pytest.fixture
def engine(ledger: InMemoryLedger, network: VenueNetwork) -> SettlementEngine:
    """Settlement engine over the default network with a fixed clock."""
    return make_engine(ledger, network)


@pytest.fixture
def funded_payer(ledger: InMemoryLedger, engine: SettlementEngine) -> str:
    """PAYER holding 100 WETH, with the engine approved for all of it."""
    ledger.mint(WETH, PAYER, 100 * ONE_WETH)
    ledger.approve(WETH, PAYER, engine.address, 100 * ONE_WETH)
    return PAYER


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any structlog.configure made by the code under test."""
    yield
    structlog.reset_defaults()
