"""
Composite string keys for every derived metric.

Keys follow ``<scope>:<id>[:<id>...][:<bucket>][:<metric>]``. Each store owns
its own keyspace, so the same shape may appear in two different stores, but
never twice with two meanings inside one store.
"""
from typing import Optional, Tuple

from dex_metrics.pipeline.config.settings import (
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    UNISWAP_V3_FACTORY,
)
from dex_metrics.utils.errors import MalformedKeyError

SEP = ":"

POOL = "pool"
TOKEN = "token"
FACTORY = "factory"
PAIR = "pair"
INDEX = "index"
SQRT_PRICE = "sqrt_price"
SWAP = "swap"
TICK = "tick"
BUNDLE = "bundle"

POOL_DAY = "pool_day"
POOL_HOUR = "pool_hour"
TOKEN_DAY = "token_day"
TOKEN_HOUR = "token_hour"
FACTORY_DAY = "factory_day"

NATIVE = "native"
ETH = "eth"
USD = "usd"


def _join(*parts) -> str:
    return SEP.join(str(p) for p in parts)


def day_id(timestamp: int) -> int:
    return int(timestamp) // SECONDS_PER_DAY


def hour_id(timestamp: int) -> int:
    return int(timestamp) // SECONDS_PER_HOUR


def pair_key(token_a: str, token_b: str) -> str:
    """Canonical, order independent key for a token pair (string comparison, not numeric)."""
    if token_a > token_b:
        return _join(token_b, token_a)
    return _join(token_a, token_b)


# ── factory / pools ────────────────────────────────────────────────
def factory_key() -> str:
    return _join(FACTORY, UNISWAP_V3_FACTORY)


def factory_pool_count_key() -> str:
    return _join(FACTORY, "poolCount")


def pool_key(pool_address: str) -> str:
    return _join(POOL, pool_address)


def pool_token_index_key(token0_address: str, token1_address: str) -> str:
    return _join(INDEX, pair_key(token0_address, token1_address))


def token_pool_whitelist(token_address: str) -> str:
    return _join(TOKEN, token_address)


def pool_sqrt_price_key(pool_address: str) -> str:
    return _join(SQRT_PRICE, pool_address)


def pool_liquidity(pool_address: str) -> str:
    return _join(POOL, pool_address, "liquidity")


# ── prices ─────────────────────────────────────────────────────────
def prices_pool_token_key(pool_address: str, token_address: str, side: str) -> str:
    return _join(POOL, pool_address, token_address, side)


def prices_token_pair(numerator_address: str, denominator_address: str) -> str:
    """Rate of ``numerator`` tokens paid for one ``denominator`` token."""
    return _join(PAIR, numerator_address, denominator_address)


def token_eth_price(token_address: str) -> str:
    return _join(TOKEN, token_address, "dprice", ETH)


def bundle_eth_price() -> str:
    return BUNDLE


# ── total value locked ─────────────────────────────────────────────
def factory_total_value_locked_eth() -> str:
    return _join(FACTORY, "totalValueLockedETH")


def factory_total_value_locked_usd() -> str:
    return _join(FACTORY, "totalValueLockedUSD")


def token_native_total_value_locked(token_address: str) -> str:
    return _join(TOKEN, token_address, NATIVE)


def pool_native_total_value_locked_token(pool_address: str, token_address: str) -> str:
    return _join(POOL, pool_address, token_address, NATIVE)


def token_usd_total_value_locked(token_address: str) -> str:
    return _join(TOKEN, token_address, USD)


def pool_eth_total_value_locked(pool_address: str) -> str:
    return _join(POOL, pool_address, ETH)


def pool_usd_total_value_locked(pool_address: str) -> str:
    return _join(POOL, pool_address, USD)


def total_value_locked_by_tokens(pool_address: str, token_address: str, side: str) -> str:
    return _join(POOL, pool_address, token_address, side)


# ── transaction counts ─────────────────────────────────────────────
def pool_total_tx_count(pool_address: str) -> str:
    return pool_key(pool_address)


def token_total_tx_count(token_address: str) -> str:
    return _join(TOKEN, token_address)


def factory_total_tx_count() -> str:
    return factory_key()


# ── swaps ──────────────────────────────────────────────────────────
def swap_volume_token_0(pool_address: str) -> str:
    return _join(SWAP, pool_address, "volume", "token0")


def swap_volume_token_1(pool_address: str) -> str:
    return _join(SWAP, pool_address, "volume", "token1")


def swap_volume_usd(pool_address: str) -> str:
    return _join(SWAP, pool_address, "volume", USD)


def swap_untracked_volume_usd(pool_address: str) -> str:
    return _join(SWAP, pool_address, "volume", "untrackedUSD")


def swap_fee_usd(pool_address: str) -> str:
    return _join(SWAP, pool_address, "feesUSD")


def swap_token_volume(token_address: str) -> str:
    return _join(TOKEN, token_address, "volume")


def swap_token_volume_usd(token_address: str) -> str:
    return _join(TOKEN, token_address, "volume", USD)


def swap_token_volume_untracked_volume_usd(token_address: str) -> str:
    return _join(TOKEN, token_address, "volume", "untrackedUSD")


def swap_token_fee_usd(token_address: str) -> str:
    return _join(TOKEN, token_address, "feesUSD")


def swap_factory_total_volume_eth() -> str:
    return _join(FACTORY, "totalVolumeETH")


def swap_factory_total_volume_usd() -> str:
    return _join(FACTORY, "totalVolumeUSD")


def swap_factory_untracked_volume_usd() -> str:
    return _join(FACTORY, "untrackedVolumeUSD")


def swap_factory_total_fees_eth() -> str:
    return _join(FACTORY, "totalFeesETH")


def swap_factory_total_fees_usd() -> str:
    return _join(FACTORY, "totalFeesUSD")


# ── ticks ──────────────────────────────────────────────────────────
def tick_key(pool_address: str, idx: int) -> str:
    return _join(TICK, idx, POOL, pool_address)


# ── time buckets ───────────────────────────────────────────────────
def pool_day_data(pool_address: str, day: int, metric: str) -> str:
    return _join(POOL_DAY, pool_address, day, metric)


def pool_hour_data(pool_address: str, hour: int, metric: str) -> str:
    return _join(POOL_HOUR, pool_address, hour, metric)


def token_day_data(token_address: str, day: int, metric: str) -> str:
    return _join(TOKEN_DAY, token_address, day, metric)


def token_hour_data(token_address: str, hour: int, metric: str) -> str:
    return _join(TOKEN_HOUR, token_address, hour, metric)


def factory_day_data(day: int, metric: str) -> str:
    return _join(FACTORY_DAY, day, metric)


# ── parsers ────────────────────────────────────────────────────────
def _checked(key: str, marker: str, metric: Optional[str], arity: int):
    """
    Split ``key`` and validate it against a scope marker and metric literal.

    Returns None when the key belongs to another scope or metric, and raises
    MalformedKeyError when marker and metric match but the arity does not.
    """
    chunks = key.split(SEP)
    if chunks[0] != marker:
        return None
    if metric is not None and chunks[-1] != metric:
        return None
    if len(chunks) != arity:
        raise MalformedKeyError(
            f"key {key!r} has {len(chunks)} segments, expected {arity} for scope {marker!r}"
        )
    return chunks


def native_token_from_key(key: str) -> Optional[str]:
    """``token:<token>:native`` → token address."""
    chunks = _checked(key, TOKEN, NATIVE, 3)
    if chunks is None:
        return None
    return chunks[1]


def native_pool_from_key(key: str) -> Optional[Tuple[str, str]]:
    """``pool:<pool>:<token>:native`` → (pool address, token address)."""
    chunks = _checked(key, POOL, NATIVE, 4)
    if chunks is None:
        return None
    return chunks[1], chunks[2]


def pool_valuation_from_key(key: str) -> Optional[Tuple[str, str]]:
    """``pool:<pool>:eth`` / ``pool:<pool>:usd`` → (pool address, currency)."""
    for currency in (ETH, USD):
        chunks = _checked(key, POOL, currency, 3)
        if chunks is not None:
            return chunks[1], currency
    return None


def pool_bucket_from_key(key: str) -> Optional[Tuple[str, str, int, str]]:
    """``pool_day|pool_hour:<pool>:<bucket>:<metric>`` → (scope, pool, bucket, metric)."""
    for marker in (POOL_DAY, POOL_HOUR):
        chunks = _checked(key, marker, None, 4)
        if chunks is not None:
            return marker, chunks[1], int(chunks[2]), chunks[3]
    return None


def token_bucket_from_key(key: str) -> Optional[Tuple[str, str, int, str]]:
    """``token_day|token_hour:<token>:<bucket>:<metric>`` → (scope, token, bucket, metric)."""
    for marker in (TOKEN_DAY, TOKEN_HOUR):
        chunks = _checked(key, marker, None, 4)
        if chunks is not None:
            return marker, chunks[1], int(chunks[2]), chunks[3]
    return None


def factory_bucket_from_key(key: str) -> Optional[Tuple[int, str]]:
    """``factory_day:<day>:<metric>`` → (day, metric)."""
    chunks = _checked(key, FACTORY_DAY, None, 3)
    if chunks is None:
        return None
    return int(chunks[1]), chunks[2]
