from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from dex_metrics.pipeline.config.settings import MINIMUM_ETH_LOCKED
from dex_metrics.pipeline.handlers import events as event_handlers
from dex_metrics.pipeline.handlers import pools as pool_handlers
from dex_metrics.pipeline.handlers import prices as price_handlers
from dex_metrics.pipeline.handlers.totals import store_total_value_locked, store_totals
from dex_metrics.pipeline.handlers.volumes import store_swaps_volume
from dex_metrics.pipeline.price import PriceOracle
from dex_metrics.pipeline.store import BaseStore, StoreAdd, StoreAppend, StoreSet
from dex_metrics.pipeline.types import BlockSegment, StoreDelta

log = logging.getLogger(__name__)


class BlockOutput(NamedTuple):
    number: int
    timestamp: int
    deltas: Dict[str, List[StoreDelta]]

    def changed_keys(self, store_name: str) -> List[str]:
        return [d.key for d in self.deltas.get(store_name, [])]


class MetricsEngine:
    """
    Runs every handler for one block segment in dependency order.

    Stores live for the engine's lifetime; after each block their history is
    compacted so the next block starts from the last values.
    """

    def __init__(self, minimum_eth_locked: Decimal = MINIMUM_ETH_LOCKED) -> None:
        self.pools = StoreSet("pools")
        self.pool_count = StoreAdd("pool_count")
        self.tokens_whitelist_pools = StoreAppend("tokens_whitelist_pools")
        self.pool_sqrt_price = StoreSet("pool_sqrt_price")
        self.pool_liquidities = StoreSet("pool_liquidities")
        self.prices = StoreSet("prices")
        self.native_total_value_locked = StoreAdd("native_total_value_locked")
        self.eth_prices = StoreSet("eth_prices")
        self.total_value_locked_by_tokens = StoreAdd("total_value_locked_by_tokens")
        self.total_tx_counts = StoreAdd("total_tx_counts")
        self.swaps_volume = StoreAdd("swaps_volume")
        self.ticks = StoreSet("ticks")
        self.total_value_locked = StoreSet("total_value_locked")
        self.totals = StoreAdd("totals")

        self.oracle = PriceOracle(
            pools_store=self.pools,
            pool_liquidities_store=self.pool_liquidities,
            tokens_whitelist_pools_store=self.tokens_whitelist_pools,
            total_native_value_locked_store=self.native_total_value_locked,
            prices_store=self.prices,
            eth_prices_store=self.eth_prices,
            minimum_eth_locked=minimum_eth_locked,
        )
        self.last_block: Optional[int] = None

    @property
    def stores(self) -> Dict[str, BaseStore]:
        return {
            name: store
            for name, store in vars(self).items()
            if isinstance(store, BaseStore)
        }

    def process_block(self, block: BlockSegment) -> BlockOutput:
        started = time.time()

        # ── 1. pools & whitelist ────────────────────────────────────
        pools = pool_handlers.map_pools_created(block)
        pool_handlers.store_pools(pools, self.pools)
        pool_handlers.store_pool_count(pools, self.pool_count)
        tokens = pool_handlers.map_tokens_whitelist_pools(pools)
        pool_handlers.store_tokens_whitelist_pools(tokens, self.tokens_whitelist_pools)

        # ── 2. pool state: sqrt prices, liquidity, pair prices ──────
        sqrt_prices = price_handlers.map_pool_sqrt_price(block, self.pools)
        price_handlers.store_pool_sqrt_price(sqrt_prices, self.pool_sqrt_price)
        liquidities = price_handlers.map_pool_liquidities(block, self.pools)
        price_handlers.store_pool_liquidities(liquidities, self.pool_liquidities)
        price_handlers.store_prices(sqrt_prices, self.pools, self.prices)

        # ── 3. events & native amounts ──────────────────────────────
        events = event_handlers.map_swaps_mints_burns(block, self.pools)
        event_amounts = event_handlers.map_event_amounts(events)
        event_handlers.store_native_total_value_locked(event_amounts, self.native_total_value_locked)

        # ── 4. derived prices (bundle first) ────────────────────────
        price_handlers.store_eth_prices(sqrt_prices, self.pools, self.prices, self.oracle, self.eth_prices)

        # ── 5. counters, volumes, ticks ─────────────────────────────
        event_handlers.store_total_value_locked_by_tokens(events, self.total_value_locked_by_tokens)
        event_handlers.store_total_tx_counts(events, self.total_tx_counts)
        store_swaps_volume(events, self.pools, self.eth_prices, self.swaps_volume)
        event_handlers.store_ticks(events, self.ticks)

        # ── 6. valuations from deltas ───────────────────────────────
        store_total_value_locked(
            self.native_total_value_locked.deltas(), self.pools, self.eth_prices, self.total_value_locked
        )
        store_totals(self.total_value_locked.deltas(), self.eth_prices, self.totals)

        output = BlockOutput(
            number=block.number,
            timestamp=block.timestamp,
            deltas={name: store.deltas() for name, store in self.stores.items()},
        )
        for store in self.stores.values():
            store.close_block()
        self.last_block = block.number

        log.info(
            "block %d: %d pools, %d events, %d price updates in %.3fs",
            block.number, len(pools), len(events), len(sqrt_prices), time.time() - started,
        )
        return output

    def process_blocks(self, blocks: Iterable[BlockSegment]) -> List[BlockOutput]:
        return [self.process_block(block) for block in sorted(blocks, key=lambda b: b.number)]

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {name: store.snapshot() for name, store in self.stores.items()}

    def restore(self, snapshot: Dict[str, Dict[str, Any]]) -> None:
        stores = self.stores
        for name, values in snapshot.items():
            if name not in stores:
                log.warning("ignoring snapshot of unknown store %s", name)
                continue
            stores[name].restore(values)
