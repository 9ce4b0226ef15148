import logging
from typing import Iterable, List

from dex_metrics.pipeline import keyer
from dex_metrics.pipeline.helpers import get_pool, is_usable
from dex_metrics.pipeline.price import PriceOracle, get_eth_price_in_usd, sqrt_price_x96_to_token_prices
from dex_metrics.pipeline.sequencer import sequence
from dex_metrics.pipeline.store import BaseStore, StoreSet
from dex_metrics.pipeline.types import BlockSegment, PoolLiquidity, PoolSqrtPrice, Swap
from dex_metrics.utils.errors import UnknownEntityError

log = logging.getLogger(__name__)


def map_pool_sqrt_price(block: BlockSegment, pools_store: BaseStore) -> List[PoolSqrtPrice]:
    """Sqrt price updates from Initialize and Swap logs of known, usable pools."""
    updates = [
        PoolSqrtPrice(i.pool_address, i.ordinal, i.sqrt_price, i.tick)
        for i in block.initializes
    ]
    updates.extend(
        PoolSqrtPrice(pl.pool_address, pl.log_ordinal, pl.payload.sqrt_price, pl.payload.tick)
        for pl in block.logs
        if isinstance(pl.payload, Swap)
    )

    pool_sqrt_prices = []
    for update in sequence(updates, "pool_sqrt_prices"):
        try:
            pool = get_pool(pools_store, update.pool_address, update.ordinal)
        except UnknownEntityError as err:
            log.info("skipping pool %s: %s", update.pool_address, err)
            continue
        if not is_usable(pool):
            continue
        pool_sqrt_prices.append(update)
    return pool_sqrt_prices


def store_pool_sqrt_price(sqrt_prices: Iterable[PoolSqrtPrice], output: StoreSet) -> None:
    for sqrt_price in sqrt_prices:
        log.debug("storing sqrt price %s", sqrt_price.pool_address)
        output.set(sqrt_price.ordinal, keyer.pool_sqrt_price_key(sqrt_price.pool_address), sqrt_price)


def map_pool_liquidities(block: BlockSegment, pools_store: BaseStore) -> List[PoolLiquidity]:
    pool_liquidities = []
    for change in sequence(block.liquidity_changes, "pool_liquidities"):
        try:
            pool = get_pool(pools_store, change.pool_address, change.ordinal)
        except UnknownEntityError:
            log.info("unknown pool %s", change.pool_address)
            continue
        if not is_usable(pool):
            continue
        pool_liquidities.append(change)
    return pool_liquidities


def store_pool_liquidities(pool_liquidities: Iterable[PoolLiquidity], output: StoreSet) -> None:
    for pool_liquidity in pool_liquidities:
        output.set(
            pool_liquidity.ordinal,
            keyer.pool_liquidity(pool_liquidity.pool_address),
            pool_liquidity.liquidity,
        )


def store_prices(sqrt_prices: Iterable[PoolSqrtPrice], pools_store: BaseStore, output: StoreSet) -> None:
    """Per-pool token prices and the directed pair rates both ways."""
    for update in sqrt_prices:
        try:
            pool = get_pool(pools_store, update.pool_address, update.ordinal)
        except UnknownEntityError as err:
            log.info("skipping pool %s: %s", update.pool_address, err)
            continue

        token0, token1 = pool.token0, pool.token1
        price0, price1 = sqrt_price_x96_to_token_prices(update.sqrt_price, token0.decimals, token1.decimals)
        log.debug("pool %s token prices: %s %s", pool.address, price0, price1)

        output.set(update.ordinal, keyer.prices_pool_token_key(pool.address, token0.address, "token0"), price0)
        output.set(update.ordinal, keyer.prices_pool_token_key(pool.address, token1.address, "token1"), price1)
        output.set(update.ordinal, keyer.prices_token_pair(token0.address, token1.address), price0)
        output.set(update.ordinal, keyer.prices_token_pair(token1.address, token0.address), price1)


def store_eth_prices(
    sqrt_prices: Iterable[PoolSqrtPrice],
    pools_store: BaseStore,
    prices_store: BaseStore,
    oracle: PriceOracle,
    output: StoreSet,
) -> None:
    """
    Bundle price first, then both tokens' derived ETH prices, for every sqrt
    price update. ``oracle`` must read its derived prices from ``output``.
    """
    for update in sqrt_prices:
        try:
            pool = get_pool(pools_store, update.pool_address, update.ordinal)
        except UnknownEntityError as err:
            log.info("skipping pool %s: %s", update.pool_address, err)
            continue

        bundle_eth_price_usd = get_eth_price_in_usd(prices_store, update.ordinal)
        log.debug("bundle_eth_price_usd: %s", bundle_eth_price_usd)
        if bundle_eth_price_usd is not None:
            output.set(update.ordinal, keyer.bundle_eth_price(), bundle_eth_price_usd)

        for token in (pool.token0, pool.token1):
            derived_eth = oracle.find_eth_per_token(update.ordinal, token.address)
            log.debug("token %s derived eth price: %s", token.address, derived_eth)
            output.set(update.ordinal, keyer.token_eth_price(token.address), derived_eth)
