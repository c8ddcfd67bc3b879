"""Unit tests for building settlement routes from a distribution."""

import pytest

from aggregator.errors import EmptyRouteSet, UnresolvableVenue
from aggregator.pools import compute_pool_address
from aggregator.quoting import MockQuoteSource
from aggregator.routing import Route, build_routes
from tests.helpers import ONE_WETH, USDC, WETH

FEES = (500, 3000, 10000)


@pytest.fixture
def resolver():
    """Quote source knowing the WETH/USDC pools for every fee tier."""
    return MockQuoteSource(
        pools={(WETH, USDC, fee): compute_pool_address(WETH, USDC, fee) for fee in FEES}
    )


class TestBuildRoutes:
    """Tests for build_routes."""

    def test_one_route_per_allocated_venue(self, resolver):
        routes = build_routes((3, 0, 7), FEES, WETH, USDC, 10 * ONE_WETH, 10, resolver)

        assert routes == [
            Route(compute_pool_address(WETH, USDC, 500), 500, WETH, USDC, 3 * ONE_WETH),
            Route(compute_pool_address(WETH, USDC, 10000), 10000, WETH, USDC, 7 * ONE_WETH),
        ]

    def test_routes_follow_venue_order(self, resolver):
        routes = build_routes((1, 1, 1), FEES, WETH, USDC, 300, 3, resolver)

        assert [route.fee for route in routes] == list(FEES)
        assert [route.amount_in for route in routes] == [100, 100, 100]

    def test_amounts_floor_to_part_size(self, resolver):
        routes = build_routes((1, 2, 0), FEES, WETH, USDC, 100, 3, resolver)

        assert [route.amount_in for route in routes] == [33, 66]
        assert sum(route.amount_in for route in routes) <= 100

    def test_all_zero_distribution_raises(self, resolver):
        with pytest.raises(EmptyRouteSet):
            build_routes((0, 0, 0), FEES, WETH, USDC, 100, 10, resolver)

    def test_missing_pool_raises(self):
        resolver = MockQuoteSource(pools={(WETH, USDC, 500): compute_pool_address(WETH, USDC, 500)})

        with pytest.raises(UnresolvableVenue) as exc_info:
            build_routes((5, 5, 0), FEES, WETH, USDC, 100, 10, resolver)

        assert exc_info.value.fee == 3000
        assert exc_info.value.token_in == WETH
        assert exc_info.value.token_out == USDC

    def test_zero_address_pool_raises(self):
        resolver = MockQuoteSource(pools={(WETH, USDC, 500): "0x" + "00" * 20})

        with pytest.raises(UnresolvableVenue):
            build_routes((10, 0, 0), FEES, WETH, USDC, 100, 10, resolver)

    def test_missing_pool_ignored_without_parts(self):
        resolver = MockQuoteSource(pools={(WETH, USDC, 500): compute_pool_address(WETH, USDC, 500)})

        routes = build_routes((10, 0, 0), FEES, WETH, USDC, 100, 10, resolver)

        assert len(routes) == 1

    def test_dust_allocation_dropped(self, resolver):
        routes = build_routes((1, 2, 0), FEES, WETH, USDC, 2, 3, resolver)

        assert [(route.fee, route.amount_in) for route in routes] == [(3000, 1)]

    def test_all_dust_raises(self, resolver):
        with pytest.raises(EmptyRouteSet):
            build_routes((1, 1, 1), FEES, WETH, USDC, 2, 3, resolver)

    def test_dust_venue_not_resolved(self):
        resolver = MockQuoteSource(pools={(WETH, USDC, 500): compute_pool_address(WETH, USDC, 500)})

        routes = build_routes((2, 1, 0), FEES, WETH, USDC, 2, 3, resolver)

        assert [route.fee for route in routes] == [500]
        assert all(route.amount_in > 0 for route in routes)

    def test_length_mismatch_raises(self, resolver):
        with pytest.raises(ValueError, match="venues"):
            build_routes((10, 0), FEES, WETH, USDC, 100, 10, resolver)

    def test_route_tuple_order(self):
        route = Route("0x" + "ab" * 20, 500, WETH, USDC, 42)

        assert route.as_tuple() == ("0x" + "ab" * 20, 500, WETH, USDC, 42)
