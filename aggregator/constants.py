"""Protocol constants for the V3 aggregator.

Centralizes fee tiers, well-known contract addresses and the pool
deployment parameters used for address derivation.
"""

from aggregator.models.types import is_valid_address

# V3 fee tiers in Uniswap units (hundredths of a basis point)
# Fee = units / 1,000,000 (e.g., 3000 = 0.3%)
V3_FEE_LOWEST = 100  # 0.01%
V3_FEE_LOW = 500  # 0.05%
V3_FEE_MEDIUM = 3000  # 0.30%
V3_FEE_HIGH = 10000  # 1.00%

# Venues quoted by default, in optimizer order
DEFAULT_FEE_TIERS = (V3_FEE_LOW, V3_FEE_MEDIUM, V3_FEE_HIGH)

# Number of discrete parts the input amount is split into
DEFAULT_PARTS = 10

# Fee denominator: fee units are parts per million
FEE_DENOMINATOR = 1_000_000

UINT256_MAX = 2**256 - 1

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _validate_address(name: str, address: str) -> str:
    """Validate and return a contract address.

    Raises:
        ValueError: If the address is invalid
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid {name} address: {address} (must be 0x + 40 hex chars)")
    return address


# Contract addresses (mainnet)
V3_FACTORY_ADDRESS = _validate_address("factory", "0x1f98431c8ad98523631ae4a59f267346ea31f984")
QUOTER_V2_ADDRESS = _validate_address("quoter", "0x61ffe014ba17989e743c5f6cb21bf9697530b21e")

# keccak256 of the UniswapV3Pool creation code, fixed per factory deployment
POOL_INIT_CODE_HASH = "0xe34f199b19b2b4f47f68442619d555527d244f78a3297ea89325f843f87b8b54"

# Well-known token addresses on mainnet (lowercase for consistency)
WETH = _validate_address("WETH", "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2")
USDC = _validate_address("USDC", "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48")
USDT = _validate_address("USDT", "0xdac17f958d2ee523a2206206994597c13d831ec7")
DAI = _validate_address("DAI", "0x6b175474e89094c44da98b954eedeac495271d0f")
