import logging
from decimal import Decimal
from typing import Iterable

from dex_metrics.pipeline import keyer
from dex_metrics.pipeline.config.settings import FEE_TIER_DENOMINATOR
from dex_metrics.pipeline.helpers import get_eth_price, get_pool, get_token_eth_price
from dex_metrics.pipeline.price import get_tracked_amount_usd, get_untracked_amount_usd
from dex_metrics.pipeline.store import BaseStore, StoreAdd
from dex_metrics.pipeline.types import Event, Swap
from dex_metrics.utils.decimals import safe_div
from dex_metrics.utils.errors import UnknownEntityError

log = logging.getLogger(__name__)

TWO = Decimal(2)


def store_swaps_volume(
    events: Iterable[Event],
    pools_store: BaseStore,
    eth_prices_store: BaseStore,
    output: StoreAdd,
) -> None:
    """
    Swap volume and fees per pool, token, factory and day/hour bucket.

    Swaps are skipped until the bundle and both tokens' derived prices are
    known at the swap's ordinal.
    """
    for event in events:
        if not isinstance(event.payload, Swap):
            continue
        try:
            pool = get_pool(pools_store, event.pool_address, event.log_ordinal)
        except UnknownEntityError:
            continue

        ordinal = event.log_ordinal
        eth_price_in_usd = get_eth_price(eth_prices_store, ordinal)
        token0_derived_eth_price = get_token_eth_price(eth_prices_store, ordinal, event.token0)
        token1_derived_eth_price = get_token_eth_price(eth_prices_store, ordinal, event.token1)
        if eth_price_in_usd is None or token0_derived_eth_price is None or token1_derived_eth_price is None:
            log.debug("trx_id: %s skipped, prices not known at ordinal %d", event.transaction_id, ordinal)
            continue

        amount0_abs = abs(event.payload.amount0)
        amount1_abs = abs(event.payload.amount1)

        log.debug(
            "trx_id: %s bundle: %s derived0: %s derived1: %s amount0: %s amount1: %s",
            event.transaction_id, eth_price_in_usd, token0_derived_eth_price,
            token1_derived_eth_price, amount0_abs, amount1_abs,
        )

        amount_total_usd_tracked = get_tracked_amount_usd(
            event.token0,
            event.token1,
            token0_derived_eth_price,
            token1_derived_eth_price,
            amount0_abs,
            amount1_abs,
            eth_price_in_usd,
        ) / TWO
        amount_total_eth_tracked = safe_div(amount_total_usd_tracked, eth_price_in_usd)
        # halved like the tracked amount; pending product confirmation
        amount_total_usd_untracked = get_untracked_amount_usd(
            token0_derived_eth_price,
            token1_derived_eth_price,
            amount0_abs,
            amount1_abs,
            eth_price_in_usd,
        ) / TWO

        fee_tier = Decimal(pool.fee_tier)
        fee_usd = amount_total_usd_tracked * fee_tier / FEE_TIER_DENOMINATOR
        fee_eth = amount_total_eth_tracked * fee_tier / FEE_TIER_DENOMINATOR

        day = keyer.day_id(event.timestamp)
        hour = keyer.hour_id(event.timestamp)

        writes = [
            # ── pool ──
            (keyer.swap_volume_token_0(event.pool_address), amount0_abs),
            (keyer.swap_volume_token_1(event.pool_address), amount1_abs),
            (keyer.swap_volume_usd(event.pool_address), amount_total_usd_tracked),
            (keyer.swap_untracked_volume_usd(event.pool_address), amount_total_usd_untracked),
            (keyer.swap_fee_usd(event.pool_address), fee_usd),
            # ── tokens ──
            (keyer.swap_token_volume(event.token0), amount0_abs),
            (keyer.swap_token_volume(event.token1), amount1_abs),
            (keyer.swap_token_volume_usd(event.token0), amount_total_usd_tracked),
            (keyer.swap_token_volume_usd(event.token1), amount_total_usd_tracked),
            (keyer.swap_token_volume_untracked_volume_usd(event.token0), amount_total_usd_untracked),
            (keyer.swap_token_volume_untracked_volume_usd(event.token1), amount_total_usd_untracked),
            (keyer.swap_token_fee_usd(event.token0), fee_usd),
            (keyer.swap_token_fee_usd(event.token1), fee_usd),
            # ── factory ──
            (keyer.swap_factory_total_volume_eth(), amount_total_eth_tracked),
            (keyer.swap_factory_total_volume_usd(), amount_total_usd_tracked),
            (keyer.swap_factory_untracked_volume_usd(), amount_total_usd_untracked),
            (keyer.swap_factory_total_fees_eth(), fee_eth),
            (keyer.swap_factory_total_fees_usd(), fee_usd),
        ]

        # ── time buckets ──
        for bucket_key, bucket in ((keyer.pool_day_data, day), (keyer.pool_hour_data, hour)):
            writes.extend([
                (bucket_key(event.pool_address, bucket, "volumeToken0"), amount0_abs),
                (bucket_key(event.pool_address, bucket, "volumeToken1"), amount1_abs),
                (bucket_key(event.pool_address, bucket, "volumeUSD"), amount_total_usd_tracked),
                (bucket_key(event.pool_address, bucket, "feesUSD"), fee_usd),
            ])
        for bucket_key, bucket in ((keyer.token_day_data, day), (keyer.token_hour_data, hour)):
            writes.extend([
                (bucket_key(event.token0, bucket, "volume"), amount0_abs),
                (bucket_key(event.token1, bucket, "volume"), amount1_abs),
                (bucket_key(event.token0, bucket, "volumeUSD"), amount_total_usd_tracked),
                (bucket_key(event.token1, bucket, "volumeUSD"), amount_total_usd_tracked),
            ])
        writes.extend([
            (keyer.factory_day_data(day, "volumeETH"), amount_total_eth_tracked),
            (keyer.factory_day_data(day, "volumeUSD"), amount_total_usd_tracked),
            (keyer.factory_day_data(day, "feesUSD"), fee_usd),
        ])

        for key, value in writes:
            output.add(ordinal, key, value)
