from __future__ import annotations

import logging
from decimal import Decimal
from typing import FrozenSet, Optional, Tuple

from dex_metrics.pipeline import keyer
from dex_metrics.pipeline.config.settings import (
    MINIMUM_ETH_LOCKED,
    TICK_BASE,
    USDC_ADDRESS,
    USDC_WETH_03_POOL,
    WETH_ADDRESS,
    WHITELIST_TOKENS,
)
from dex_metrics.pipeline.helpers import get_pool, get_token_eth_price, is_usable
from dex_metrics.pipeline.store import BaseStore
from dex_metrics.utils.decimals import ONE, ZERO, big_decimal_exponated, exponent_to_decimal, safe_div
from dex_metrics.utils.errors import UnknownEntityError

log = logging.getLogger(__name__)

Q96 = Decimal(1 << 96)


def _price_raw(sqrt_price_x96: int) -> Decimal:
    """Convert Uniswap V3 sqrtPriceX96 → token1 per token0 as Decimal (raw units)."""
    sqrt_price = Decimal(sqrt_price_x96) / Q96
    return sqrt_price * sqrt_price


def sqrt_price_x96_to_token_prices(
    sqrt_price_x96: int,
    token0_decimals: int,
    token1_decimals: int,
) -> Tuple[Decimal, Decimal]:
    """
    Return ``(price0, price1)`` for a pool.

    price1 is the amount of token1 paid for one token0, price0 the amount of
    token0 paid for one token1, both scaled by the tokens' decimals.
    """
    price1 = (
        _price_raw(sqrt_price_x96)
        * exponent_to_decimal(token0_decimals)
        / exponent_to_decimal(token1_decimals)
    )
    price0 = safe_div(ONE, price1)
    return price0, price1


def get_eth_price_in_usd(
    prices_store: BaseStore,
    ordinal: int,
    reference_pool: str = USDC_WETH_03_POOL,
    stable_token: str = USDC_ADDRESS,
) -> Optional[Decimal]:
    """Bundle price: the stable side's price in the USDC/WETH reference pool, None until known."""
    return prices_store.get_at(
        ordinal, keyer.prices_pool_token_key(reference_pool, stable_token, "token0")
    )


def get_tracked_amount_usd(
    token0: str,
    token1: str,
    token0_derived_eth_price: Decimal,
    token1_derived_eth_price: Decimal,
    amount0_abs: Decimal,
    amount1_abs: Decimal,
    eth_price_usd: Decimal,
    whitelist=WHITELIST_TOKENS,
) -> Decimal:
    """USD value of a swap counted only through whitelisted sides."""
    price0_usd = token0_derived_eth_price * eth_price_usd
    price1_usd = token1_derived_eth_price * eth_price_usd

    token0_listed = token0 in whitelist
    token1_listed = token1 in whitelist

    # both are whitelist tokens, take the sum of both amounts
    if token0_listed and token1_listed:
        return amount0_abs * price0_usd + amount1_abs * price1_usd
    # take double the whitelisted side
    if token0_listed:
        return amount0_abs * price0_usd * 2
    if token1_listed:
        return amount1_abs * price1_usd * 2
    return ZERO


def get_untracked_amount_usd(
    token0_derived_eth_price: Decimal,
    token1_derived_eth_price: Decimal,
    amount0_abs: Decimal,
    amount1_abs: Decimal,
    eth_price_usd: Decimal,
) -> Decimal:
    return (
        amount0_abs * token0_derived_eth_price * eth_price_usd
        + amount1_abs * token1_derived_eth_price * eth_price_usd
    )


def tick_prices(idx: int) -> Tuple[Decimal, Decimal]:
    price0 = big_decimal_exponated(TICK_BASE, idx)
    return price0, safe_div(ONE, price0)


class PriceOracle:
    """
    Derive a token's ETH price from the whitelist pools it trades in.

    All reads go through ``get_at(ordinal, ...)`` so the answer only depends on
    state at or before the ordinal being processed. Among the pools that pass
    the admission checks the one with the most ETH locked on its reference
    side wins; there is no averaging.
    """

    def __init__(
        self,
        pools_store: BaseStore,
        pool_liquidities_store: BaseStore,
        tokens_whitelist_pools_store: BaseStore,
        total_native_value_locked_store: BaseStore,
        prices_store: BaseStore,
        eth_prices_store: BaseStore,
        minimum_eth_locked: Decimal = MINIMUM_ETH_LOCKED,
        reference_token: str = WETH_ADDRESS,
    ) -> None:
        self.pools_store = pools_store
        self.pool_liquidities_store = pool_liquidities_store
        self.tokens_whitelist_pools_store = tokens_whitelist_pools_store
        self.total_native_value_locked_store = total_native_value_locked_store
        self.prices_store = prices_store
        self.eth_prices_store = eth_prices_store
        self.minimum_eth_locked = minimum_eth_locked
        self.reference_token = reference_token

    def find_eth_per_token(
        self,
        ordinal: int,
        token_address: str,
        _visited: FrozenSet[str] = frozenset(),
    ) -> Decimal:
        if token_address == self.reference_token:
            return ONE

        visited = _visited | {token_address}
        whitelist_pools = self.tokens_whitelist_pools_store.get_at(
            ordinal, keyer.token_pool_whitelist(token_address)
        ) or ()

        largest_eth_locked: Optional[Decimal] = None
        price_so_far = ZERO
        for pool_address in whitelist_pools:
            candidate = self._price_through_pool(ordinal, pool_address, token_address, visited)
            if candidate is None:
                continue
            eth_locked, price = candidate
            if largest_eth_locked is None or eth_locked > largest_eth_locked:
                largest_eth_locked = eth_locked
                price_so_far = price

        if largest_eth_locked is None:
            log.debug("token %s has no admissible whitelist pool at ordinal %d", token_address, ordinal)
        return price_so_far

    def _price_through_pool(
        self,
        ordinal: int,
        pool_address: str,
        token_address: str,
        visited: FrozenSet[str],
    ) -> Optional[Tuple[Decimal, Decimal]]:
        try:
            pool = get_pool(self.pools_store, pool_address, ordinal)
        except UnknownEntityError:
            log.debug("whitelist pool %s unknown at ordinal %d", pool_address, ordinal)
            return None
        if not is_usable(pool):
            return None

        if pool.token0.address == token_address:
            reference = pool.token1.address
        elif pool.token1.address == token_address:
            reference = pool.token0.address
        else:
            return None

        liquidity = self.pool_liquidities_store.get_at(ordinal, keyer.pool_liquidity(pool_address))
        if liquidity is None or liquidity <= 0:
            return None

        reference_eth = self._reference_eth_price(ordinal, reference, visited)
        if reference_eth == ZERO:
            return None

        native_locked = self.total_native_value_locked_store.get_at(
            ordinal, keyer.pool_native_total_value_locked_token(pool_address, reference)
        )
        eth_locked = (native_locked or ZERO) * reference_eth
        if eth_locked < self.minimum_eth_locked:
            return None

        # amount of reference token paid for one token
        rate = self.prices_store.get_at(ordinal, keyer.prices_token_pair(reference, token_address))
        if rate is None:
            return None
        return eth_locked, rate * reference_eth

    def _reference_eth_price(self, ordinal: int, reference: str, visited: FrozenSet[str]) -> Decimal:
        if reference == self.reference_token:
            return ONE
        known = get_token_eth_price(self.eth_prices_store, ordinal, reference)
        if known:
            return known
        if reference in visited:
            return ZERO
        return self.find_eth_per_token(ordinal, reference, visited)
