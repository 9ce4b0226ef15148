import logging
from typing import Iterable, List

from dex_metrics.pipeline import keyer
from dex_metrics.pipeline.helpers import get_pool, is_usable
from dex_metrics.pipeline.price import tick_prices
from dex_metrics.pipeline.sequencer import sequence
from dex_metrics.pipeline.store import BaseStore, StoreAdd, StoreSet
from dex_metrics.pipeline.types import BlockSegment, Event, EventAmount, Mint, Tick
from dex_metrics.utils.decimals import convert_token_to_decimal
from dex_metrics.utils.errors import UnknownEntityError

log = logging.getLogger(__name__)


def map_swaps_mints_burns(block: BlockSegment, pools_store: BaseStore) -> List[Event]:
    """
    Attach the pool envelope to every decoded swap/mint/burn and scale its raw
    amounts by the token decimals. Logs of unknown or ignored pools are dropped.
    """
    events = []
    for pool_log in sequence(block.logs, "pool_logs"):
        try:
            pool = get_pool(pools_store, pool_log.pool_address, pool_log.log_ordinal)
        except UnknownEntityError:
            log.info(
                "invalid %s. pool does not exist. pool address %s transaction %s",
                type(pool_log.payload).__name__.lower(),
                pool_log.pool_address,
                pool_log.transaction_id,
            )
            continue

        if not is_usable(pool):
            continue

        payload = pool_log.payload._replace(
            amount0=convert_token_to_decimal(pool_log.payload.amount0, pool.token0.decimals),
            amount1=convert_token_to_decimal(pool_log.payload.amount1, pool.token1.decimals),
        )
        log.debug("logOrdinal: %d, amount0: %s, amount1: %s", pool_log.log_ordinal, payload.amount0, payload.amount1)

        events.append(Event(
            log_ordinal=pool_log.log_ordinal,
            log_index=pool_log.log_index,
            pool_address=pool.address,
            token0=pool.token0.address,
            token1=pool.token1.address,
            fee=pool.fee_tier,
            transaction_id=pool_log.transaction_id,
            timestamp=block.timestamp,
            payload=payload,
        ))
    return events


def map_event_amounts(events: Iterable[Event]) -> List[EventAmount]:
    event_amounts = []
    for event in events:
        log.debug("handling %s for pool %s", event.kind, event.pool_address)
        amount0, amount1 = event.signed_amounts()
        event_amounts.append(EventAmount(
            pool_address=event.pool_address,
            log_ordinal=event.log_ordinal,
            token0_addr=event.token0,
            amount0_value=amount0,
            token1_addr=event.token1,
            amount1_value=amount1,
        ))
    return event_amounts


def store_native_total_value_locked(event_amounts: Iterable[EventAmount], output: StoreAdd) -> None:
    for amount in event_amounts:
        output.add(amount.log_ordinal, keyer.token_native_total_value_locked(amount.token0_addr), amount.amount0_value)
        output.add(
            amount.log_ordinal,
            keyer.pool_native_total_value_locked_token(amount.pool_address, amount.token0_addr),
            amount.amount0_value,
        )
        output.add(amount.log_ordinal, keyer.token_native_total_value_locked(amount.token1_addr), amount.amount1_value)
        output.add(
            amount.log_ordinal,
            keyer.pool_native_total_value_locked_token(amount.pool_address, amount.token1_addr),
            amount.amount1_value,
        )


def store_total_value_locked_by_tokens(events: Iterable[Event], output: StoreAdd) -> None:
    for event in events:
        amount0, amount1 = event.signed_amounts()
        output.add(
            event.log_ordinal,
            keyer.total_value_locked_by_tokens(event.pool_address, event.token0, "token0"),
            amount0,
        )
        output.add(
            event.log_ordinal,
            keyer.total_value_locked_by_tokens(event.pool_address, event.token1, "token1"),
            amount1,
        )


def store_total_tx_counts(events: Iterable[Event], output: StoreAdd) -> None:
    for event in events:
        day = keyer.day_id(event.timestamp)
        for key in (
            keyer.pool_total_tx_count(event.pool_address),
            keyer.token_total_tx_count(event.token0),
            keyer.token_total_tx_count(event.token1),
            keyer.factory_total_tx_count(),
            keyer.pool_day_data(event.pool_address, day, "txCount"),
            keyer.token_day_data(event.token0, day, "txCount"),
            keyer.token_day_data(event.token1, day, "txCount"),
            keyer.factory_day_data(day, "txCount"),
        ):
            output.add(event.log_ordinal, key, 1)


def store_ticks(events: Iterable[Event], output: StoreSet) -> None:
    # TODO: burns should clear ticks whose liquidity drops to zero once tick liquidity is tracked
    for event in events:
        if not isinstance(event.payload, Mint):
            continue
        for idx in (event.payload.tick_lower, event.payload.tick_upper):
            price0, price1 = tick_prices(idx)
            output.set(
                event.log_ordinal,
                keyer.tick_key(event.pool_address, idx),
                Tick(pool_address=event.pool_address, idx=idx, price0=price0, price1=price1),
            )
