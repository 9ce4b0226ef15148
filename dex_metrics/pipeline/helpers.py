from decimal import Decimal
from typing import Optional

from dex_metrics.pipeline import keyer
from dex_metrics.pipeline.store import BaseStore
from dex_metrics.pipeline.types import Pool
from dex_metrics.utils.errors import UnknownEntityError


def get_pool(pools_store: BaseStore, pool_address: str, ordinal: Optional[int] = None) -> Pool:
    key = keyer.pool_key(pool_address)
    pool = pools_store.get_last(key) if ordinal is None else pools_store.get_at(ordinal, key)
    if pool is None:
        raise UnknownEntityError(f"pool {pool_address} not found")
    return pool


def is_usable(pool: Pool) -> bool:
    """A pool prices and counts only if it is not ignored and both tokens are known."""
    return (
        not pool.ignore_pool
        and bool(pool.token0.address)
        and bool(pool.token1.address)
    )


def get_eth_price(eth_prices_store: BaseStore, ordinal: int) -> Optional[Decimal]:
    return eth_prices_store.get_at(ordinal, keyer.bundle_eth_price())


def get_token_eth_price(eth_prices_store: BaseStore, ordinal: int, token_address: str) -> Optional[Decimal]:
    return eth_prices_store.get_at(ordinal, keyer.token_eth_price(token_address))
