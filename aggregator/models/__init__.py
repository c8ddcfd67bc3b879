"""Request, response and shared type models."""

from aggregator.models.requests import (
    OptimizeRequest,
    OptimizeResponse,
    PlanResponse,
    RouteModel,
    SwapRequest,
)
from aggregator.models.types import Address, Uint256, is_valid_address, normalize_address

__all__ = [
    "Address",
    "OptimizeRequest",
    "OptimizeResponse",
    "PlanResponse",
    "RouteModel",
    "SwapRequest",
    "Uint256",
    "is_valid_address",
    "normalize_address",
]
