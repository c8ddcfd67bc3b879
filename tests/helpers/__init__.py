"""Test helpers module for shared test utilities.

- constants: Token and account addresses, common amounts
- factories: Network, engine and request factory functions
"""

from tests.helpers.constants import (
    ATTACKER,
    DAI,
    ENGINE,
    NOW,
    ONE_USDC,
    ONE_WETH,
    OTHER_PAYER,
    PAYER,
    USDC,
    USDT,
    WETH,
)
from tests.helpers.factories import (
    DEFAULT_POOLS,
    make_engine,
    make_network,
    make_request,
    snapshot_balances,
)

__all__ = [
    # Constants
    "WETH",
    "USDC",
    "DAI",
    "USDT",
    "PAYER",
    "OTHER_PAYER",
    "ENGINE",
    "ATTACKER",
    "ONE_WETH",
    "ONE_USDC",
    "NOW",
    # Factories
    "DEFAULT_POOLS",
    "make_engine",
    "make_network",
    "make_request",
    "snapshot_balances",
]
