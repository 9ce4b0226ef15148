import logging
from typing import Iterable, List, Tuple

from dex_metrics.pipeline import keyer
from dex_metrics.pipeline.config.settings import IGNORED_POOLS, WHITELIST_TOKENS
from dex_metrics.pipeline.sequencer import sequence
from dex_metrics.pipeline.store import StoreAdd, StoreAppend, StoreSet
from dex_metrics.pipeline.types import BlockSegment, Pool, Token

log = logging.getLogger(__name__)


def map_pools_created(block: BlockSegment, ignored_pools=IGNORED_POOLS) -> List[Pool]:
    """Pools created in this block, ordinal ordered, with known-bad pools flagged."""
    pools = []
    for pool in sequence(block.pools_created, "pools_created"):
        if pool.token0.decimals is None or pool.token1.decimals is None:
            log.info("skipping pool %s: token metadata unavailable", pool.address)
            continue
        if pool.address in ignored_pools and not pool.ignore_pool:
            pool = pool._replace(ignore_pool=True)
        log.info("pool addr: %s (ignored=%s)", pool.address, pool.ignore_pool)
        pools.append(pool)
    return pools


def store_pools(pools: Iterable[Pool], output: StoreSet) -> None:
    for pool in pools:
        output.set(pool.log_ordinal, keyer.pool_key(pool.address), pool)
        output.set(
            pool.log_ordinal,
            keyer.pool_token_index_key(pool.token0.address, pool.token1.address),
            pool,
        )


def store_pool_count(pools: Iterable[Pool], output: StoreAdd) -> None:
    for pool in pools:
        output.add(pool.log_ordinal, keyer.factory_pool_count_key(), 1)


def map_tokens_whitelist_pools(pools: Iterable[Pool], whitelist=WHITELIST_TOKENS) -> List[Tuple[int, Token]]:
    """Tokens that gained a whitelist pool, paired with the ordinal of the pool creation."""
    tokens = []
    for pool in pools:
        if pool.token0.address in whitelist:
            log.info("adding pool: %s to token: %s", pool.address, pool.token1.address)
            token1 = pool.token1._replace(whitelist_pools=pool.token1.whitelist_pools + (pool.address,))
            tokens.append((pool.log_ordinal, token1))

        if pool.token1.address in whitelist:
            log.info("adding pool: %s to token: %s", pool.address, pool.token0.address)
            token0 = pool.token0._replace(whitelist_pools=pool.token0.whitelist_pools + (pool.address,))
            tokens.append((pool.log_ordinal, token0))
    return tokens


def store_tokens_whitelist_pools(tokens: Iterable[Tuple[int, Token]], output: StoreAppend) -> None:
    for ordinal, token in tokens:
        for pool_address in token.whitelist_pools:
            output.append(ordinal, keyer.token_pool_whitelist(token.address), pool_address)
