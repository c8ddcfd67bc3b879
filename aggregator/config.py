"""Aggregator configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from aggregator.constants import (
    DEFAULT_FEE_TIERS,
    DEFAULT_PARTS,
    POOL_INIT_CODE_HASH,
    QUOTER_V2_ADDRESS,
    V3_FACTORY_ADDRESS,
)


@dataclass(frozen=True)
class AggregatorConfig:
    """Centralized configuration for quoting and settlement.

    Attributes:
        rpc_url: JSON-RPC endpoint used by the web3 quote source
        parts: Number of discrete parts the input amount is split into
        fee_tiers: Fee tiers quoted as venues, in optimizer order
        factory_address: Pool factory used for address derivation and lookups
        quoter_address: QuoterV2 contract address
        pool_init_code_hash: Pool creation code hash for address derivation
        api_host: Bind host for the planning API
        api_port: Bind port for the planning API
    """

    rpc_url: str | None = None
    parts: int = DEFAULT_PARTS
    fee_tiers: tuple[int, ...] = DEFAULT_FEE_TIERS
    factory_address: str = V3_FACTORY_ADDRESS
    quoter_address: str = QUOTER_V2_ADDRESS
    pool_init_code_hash: str = POOL_INIT_CODE_HASH
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    def __post_init__(self) -> None:
        if self.parts <= 0:
            raise ValueError(f"parts must be positive, got {self.parts}")
        if not self.fee_tiers:
            raise ValueError("at least one fee tier is required")

    @classmethod
    def from_env(cls) -> AggregatorConfig:
        """Build a config from AGGREGATOR_* environment variables."""
        fee_tiers = os.environ.get("AGGREGATOR_FEE_TIERS")
        return cls(
            rpc_url=os.environ.get("AGGREGATOR_RPC_URL") or None,
            parts=int(os.environ.get("AGGREGATOR_PARTS", str(DEFAULT_PARTS))),
            fee_tiers=(
                tuple(int(fee) for fee in fee_tiers.split(","))
                if fee_tiers
                else DEFAULT_FEE_TIERS
            ),
            factory_address=os.environ.get("AGGREGATOR_FACTORY_ADDRESS", V3_FACTORY_ADDRESS),
            quoter_address=os.environ.get("AGGREGATOR_QUOTER_ADDRESS", QUOTER_V2_ADDRESS),
            pool_init_code_hash=os.environ.get(
                "AGGREGATOR_POOL_INIT_CODE_HASH", POOL_INIT_CODE_HASH
            ),
            api_host=os.environ.get("AGGREGATOR_HOST", "0.0.0.0"),
            api_port=int(os.environ.get("AGGREGATOR_PORT", "8000")),
        )


# Default configuration instance
DEFAULT_CONFIG = AggregatorConfig()
