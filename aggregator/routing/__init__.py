"""Route building and call encoding.

Module structure:
- routes.py: Route dataclass and build_routes from a distribution
- encoding.py: aggregateSwap calldata and swap callback payload
"""

from aggregator.routing.encoding import (
    decode_callback_data,
    encode_aggregate_swap,
    encode_callback_data,
)
from aggregator.routing.routes import Route, build_routes

__all__ = [
    "Route",
    "build_routes",
    "decode_callback_data",
    "encode_aggregate_swap",
    "encode_callback_data",
]
