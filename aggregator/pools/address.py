"""Deterministic pool address derivation.

Pools are deployed by the factory with CREATE2, so a pool's address is a
pure function of the factory, the sorted token pair, the fee tier and the
pool creation code hash:

    salt = keccak256(abi.encode(token0, token1, fee))
    address = keccak256(0xff ++ factory ++ salt ++ init_code_hash)[12:]

No registry or RPC lookup is involved; anything that can call the
settlement engine can be checked against this derivation.
"""

from __future__ import annotations

from eth_abi import encode  # type: ignore[attr-defined]
from eth_utils import keccak

from aggregator.constants import POOL_INIT_CODE_HASH, V3_FACTORY_ADDRESS
from aggregator.models.types import normalize_address


def sort_tokens(token_a: str, token_b: str) -> tuple[str, str]:
    """Order a token pair the way pools store it (token0 < token1).

    Raises:
        ValueError: If both tokens are the same address
    """
    a = normalize_address(token_a, validate=True)
    b = normalize_address(token_b, validate=True)
    if a == b:
        raise ValueError(f"Identical tokens: {token_a}")
    return (a, b) if int(a, 16) < int(b, 16) else (b, a)


def compute_pool_address(
    token_a: str,
    token_b: str,
    fee: int,
    factory: str = V3_FACTORY_ADDRESS,
    init_code_hash: str = POOL_INIT_CODE_HASH,
) -> str:
    """Compute the CREATE2 address of the pool for a pair and fee tier.

    Args:
        token_a: One token of the pair (order does not matter)
        token_b: The other token of the pair
        fee: Fee tier in Uniswap units (e.g., 3000)
        factory: Deploying factory address
        init_code_hash: keccak256 of the pool creation code

    Returns:
        Lowercase pool address with 0x prefix
    """
    token0, token1 = sort_tokens(token_a, token_b)
    salt = keccak(
        encode(
            ["address", "address", "uint24"],
            [bytes.fromhex(token0[2:]), bytes.fromhex(token1[2:]), fee],
        )
    )
    factory_bytes = bytes.fromhex(normalize_address(factory, validate=True)[2:])
    init_code_bytes = bytes.fromhex(init_code_hash.removeprefix("0x"))
    digest = keccak(b"\xff" + factory_bytes + salt + init_code_bytes)
    return "0x" + digest[12:].hex()


__all__ = ["compute_pool_address", "sort_tokens"]
