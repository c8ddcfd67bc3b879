"""ABI encoding for the aggregate swap call and the swap callback payload."""

from __future__ import annotations

from collections.abc import Sequence

from eth_abi import decode, encode  # type: ignore[attr-defined]
from eth_utils import keccak

from aggregator.models.types import normalize_address
from aggregator.routing.routes import Route

AGGREGATE_SWAP_SIGNATURE = (
    "aggregateSwap((address,uint24,address,address,uint256)[],uint256,uint256)"
)
AGGREGATE_SWAP_SELECTOR = keccak(text=AGGREGATE_SWAP_SIGNATURE)[:4]

# (tokenIn, tokenOut, fee) passed through the pool to the swap callback
CALLBACK_DATA_TYPES = ["address", "address", "uint24"]


def _address_bytes(address: str) -> bytes:
    return bytes.fromhex(normalize_address(address, validate=True)[2:])


def encode_aggregate_swap(routes: Sequence[Route], min_amount_out: int, deadline: int) -> str:
    """Encode an aggregateSwap call.

    Returns:
        Calldata as 0x-prefixed hex
    """
    encoded_params = encode(
        ["(address,uint24,address,address,uint256)[]", "uint256", "uint256"],
        [
            [
                (
                    _address_bytes(route.pair),
                    route.fee,
                    _address_bytes(route.token_in),
                    _address_bytes(route.token_out),
                    route.amount_in,
                )
                for route in routes
            ],
            min_amount_out,
            deadline,
        ],
    )
    return "0x" + (AGGREGATE_SWAP_SELECTOR + encoded_params).hex()


def encode_callback_data(token_in: str, token_out: str, fee: int) -> bytes:
    return encode(CALLBACK_DATA_TYPES, [_address_bytes(token_in), _address_bytes(token_out), fee])


def decode_callback_data(data: bytes) -> tuple[str, str, int]:
    """Decode callback data into (token_in, token_out, fee), addresses lowercase."""
    token_in, token_out, fee = decode(CALLBACK_DATA_TYPES, data)
    return normalize_address(token_in), normalize_address(token_out), int(fee)


__all__ = [
    "AGGREGATE_SWAP_SELECTOR",
    "AGGREGATE_SWAP_SIGNATURE",
    "decode_callback_data",
    "encode_aggregate_swap",
    "encode_callback_data",
]
