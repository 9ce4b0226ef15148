"""
Set semantics on top of accumulators.

``store_total_value_locked`` turns native-amount deltas into pool and token
valuations (direct observations, last write wins). ``store_totals`` folds
those valuations into factory totals held by an add-only store: it adds
``new - old`` for every observation, so the running sum always equals the
sum of the latest pool values rather than the sum of every value ever seen.
"""
import logging
from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

from dex_metrics.pipeline import keyer
from dex_metrics.pipeline.helpers import get_eth_price, get_pool, get_token_eth_price
from dex_metrics.pipeline.store import BaseStore, StoreAdd, StoreSet
from dex_metrics.pipeline.types import Pool, StoreDelta
from dex_metrics.utils.decimals import ZERO, to_decimal
from dex_metrics.utils.errors import DuplicateAggregationError, UnknownEntityError

log = logging.getLogger(__name__)


def delta_diff(delta: StoreDelta) -> Decimal:
    """``new - old`` for one observation, a missing old value counting as 0."""
    old_value = ZERO if delta.old_value is None else to_decimal(delta.old_value)
    return to_decimal(delta.new_value) - old_value


class PoolValuationAccumulator:
    """
    ETH partials of a pool's two tokens observed at one ordinal.

    Lives for one pass over a block's native deltas. A pool is valued once
    both of its tokens reported at an ordinal; anything beyond that pair
    means the single-pass assumption broke.
    """

    MAX_PARTIALS = 2

    def __init__(self) -> None:
        self._partials: Dict[Tuple[str, int], Dict[str, Decimal]] = {}

    def add(self, pool: Pool, ordinal: int, token_address: str, partial_eth: Decimal) -> Optional[Decimal]:
        """Record a partial; return the pool's ETH value once the pair is complete."""
        partials = self._partials.setdefault((pool.address, ordinal), {})
        if token_address in partials or len(partials) >= self.MAX_PARTIALS:
            raise DuplicateAggregationError(
                f"unexpected partial for pool {pool.address} token {token_address} at ordinal {ordinal}: "
                f"already holding {sorted(partials)}"
            )
        partials[token_address] = partial_eth
        log.debug(
            "partial pool %s token %s count %d partial eth: %s",
            pool.address, token_address, len(partials), partial_eth,
        )
        if set(partials) == {pool.token0.address, pool.token1.address}:
            return sum(partials.values(), ZERO)
        return None

    def __len__(self) -> int:
        return len(self._partials)


def store_total_value_locked(
    native_total_value_locked_deltas: Iterable[StoreDelta],
    pools_store: BaseStore,
    eth_prices_store: BaseStore,
    output: StoreSet,
) -> None:
    accumulator = PoolValuationAccumulator()

    for delta in native_total_value_locked_deltas:
        eth_price_usd = get_eth_price(eth_prices_store, delta.ordinal)
        if eth_price_usd is None:
            continue
        log.debug("eth_price_usd: %s, native_total_value_locked.key: %s", eth_price_usd, delta.key)

        token_address = keyer.native_token_from_key(delta.key)
        if token_address is not None:
            token_derived_eth = get_token_eth_price(eth_prices_store, delta.ordinal, token_address)
            if token_derived_eth is None:
                continue
            total_value_locked_usd = to_decimal(delta.new_value) * token_derived_eth * eth_price_usd
            log.debug("token %s total value locked usd: %s", token_address, total_value_locked_usd)
            output.set(delta.ordinal, keyer.token_usd_total_value_locked(token_address), total_value_locked_usd)
            continue

        parsed = keyer.native_pool_from_key(delta.key)
        if parsed is None:
            continue
        pool_address, token_address = parsed
        try:
            pool = get_pool(pools_store, pool_address, delta.ordinal)
        except UnknownEntityError as err:
            log.info("skipping native delta %s: %s", delta.key, err)
            continue

        token_derived_eth = get_token_eth_price(eth_prices_store, delta.ordinal, token_address)
        if token_derived_eth is None:
            continue

        pool_total_value_locked_eth = accumulator.add(
            pool, delta.ordinal, token_address, to_decimal(delta.new_value) * token_derived_eth
        )
        if pool_total_value_locked_eth is None:
            continue

        pool_total_value_locked_usd = pool_total_value_locked_eth * eth_price_usd
        output.set(delta.ordinal, keyer.pool_eth_total_value_locked(pool.address), pool_total_value_locked_eth)
        output.set(delta.ordinal, keyer.pool_usd_total_value_locked(pool.address), pool_total_value_locked_usd)


def store_totals(
    total_value_locked_deltas: Iterable[StoreDelta],
    eth_prices_store: BaseStore,
    output: StoreAdd,
) -> None:
    # latest pool ETH valuation seen in this pass, per pool
    pool_total_value_locked_eth: Dict[str, Decimal] = {}

    for delta in total_value_locked_deltas:
        parsed = keyer.pool_valuation_from_key(delta.key)
        if parsed is None:
            continue
        pool_address, currency = parsed

        if currency == keyer.ETH:
            pool_total_value_locked_eth[pool_address] = to_decimal(delta.new_value)
            output.add(delta.ordinal, keyer.factory_total_value_locked_eth(), delta_diff(delta))
            continue

        bundle_eth_price = get_eth_price(eth_prices_store, delta.ordinal)
        if bundle_eth_price is None:
            continue
        pool_eth = pool_total_value_locked_eth.get(pool_address)
        if pool_eth is None:
            total_value_locked_usd = to_decimal(delta.new_value)
        else:
            total_value_locked_usd = pool_eth * bundle_eth_price

        old_value = ZERO if delta.old_value is None else to_decimal(delta.old_value)
        output.add(delta.ordinal, keyer.factory_total_value_locked_usd(), total_value_locked_usd - old_value)
