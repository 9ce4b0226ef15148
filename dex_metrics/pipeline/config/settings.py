import os
from decimal import Decimal

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./dex_metrics.db")
ETH_RPC_URL = os.getenv("ETH_RPC_URL")

DECIMAL_PRECISION = 60

# Addresses are lowercase hex without the 0x prefix, the way the decoder renders them.
UNISWAP_V3_FACTORY = "1f98431c8ad98523631ae4a59f267346ea31f984"

WETH_ADDRESS = "c02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
USDC_ADDRESS = "a0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
USDC_WETH_03_POOL = "8ad599c3a0ff1de082011efddc58f1908eb6e6d8"

WHITELIST_TOKENS = (
    WETH_ADDRESS,
    "6b175474e89094c44da98b954eedeac495271d0f",  # DAI
    USDC_ADDRESS,
    "dac17f958d2ee523a2206206994597c13d831ec7",  # USDT
    "0000000000085d4780b73119b644ae5ecd22b376",  # TUSD
    "2260fac5e5542a773aa44fbcfedf7c193bc2c599",  # WBTC
    "5d3a536e4d6dbd6114cc1ead35777bab948e3643",  # cDAI
    "39aa39c021dfbae8fac545936693ac917d5e7563",  # cUSDC
    "86fadb80d8d2cff3c3680819e4da99c10232ba0f",  # EBASE
    "57ab1ec28d129707052df4df418d58a2d46d5f51",  # sUSD
    "9f8f72aa9304c8b593d555f12ef6589cc3a579a2",  # MKR
    "c00e94cb662c3520282e6f5717214004a7f26888",  # COMP
    "514910771af9ca656af840dff83e8264ecf986ca",  # LINK
    "c011a73ee8576fb46f5e1c5751ca3b9fe0af2a6f",  # SNX
    "0bc529c00c6401aef6d220be8c6ea1667f6ad93e",  # YFI
    "111111111117dc0aa78b770fa6a738034120c302",  # 1INCH
    "df5e0e81dff6faf3a7e52ba697820c5e32d806a8",  # yCRV
    "956f47f50a910163d8bf957cf5846d573e7f87ca",  # FEI
    "7d1afa7b718fb893db30a3abc0cfc608aacfebb0",  # MATIC
    "7fc66500c84a76ad7e9c93437bfc5ac33e2ddae9",  # AAVE
)

# Pools known to report broken state.
IGNORED_POOLS = frozenset({
    "8fe8d9bb8eeba3ed688069c3d6b556c9ca258248",
})

# Minimum ETH locked in a whitelist pool before it may price a token.
MINIMUM_ETH_LOCKED = Decimal(os.getenv("MINIMUM_ETH_LOCKED", "60"))

FEE_TIER_DENOMINATOR = Decimal(1_000_000)
TICK_BASE = Decimal("1.0001")

SECONDS_PER_DAY = 86_400
SECONDS_PER_HOUR = 3_600

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/0")
