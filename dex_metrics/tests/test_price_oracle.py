from decimal import Decimal

import pytest

from dex_metrics.pipeline import keyer
from dex_metrics.pipeline.config.settings import USDC_ADDRESS, USDC_WETH_03_POOL, WETH_ADDRESS
from dex_metrics.pipeline.price import (
    PriceOracle,
    get_eth_price_in_usd,
    get_tracked_amount_usd,
    get_untracked_amount_usd,
    sqrt_price_x96_to_token_prices,
    tick_prices,
)
from dex_metrics.pipeline.store import StoreAdd, StoreAppend, StoreSet
from dex_metrics.pipeline.types import Pool, Token

TKN = "dd" * 20
OTHER = "cc" * 20


def _pool(address, token0, token1, ignore_pool=False):
    return Pool(
        address=address,
        token0=Token(token0, decimals=18),
        token1=Token(token1, decimals=18),
        fee_tier=3000,
        tick_spacing=60,
        created_at_block_number=1,
        created_at_timestamp=0,
        transaction_id="",
        log_ordinal=1,
        ignore_pool=ignore_pool,
    )


class Graph:
    """Hand-built stores around one oracle."""

    def __init__(self, minimum_eth_locked=Decimal(60)):
        self.pools = StoreSet("pools")
        self.liquidities = StoreSet("pool_liquidities")
        self.whitelist = StoreAppend("tokens_whitelist_pools")
        self.native = StoreAdd("native_total_value_locked")
        self.prices = StoreSet("prices")
        self.eth_prices = StoreSet("eth_prices")
        self.oracle = PriceOracle(
            pools_store=self.pools,
            pool_liquidities_store=self.liquidities,
            tokens_whitelist_pools_store=self.whitelist,
            total_native_value_locked_store=self.native,
            prices_store=self.prices,
            eth_prices_store=self.eth_prices,
            minimum_eth_locked=minimum_eth_locked,
        )

    def add_pool(self, ordinal, address, token, reference, reference_locked, rate, liquidity=10 ** 18, **kw):
        """``rate`` is the amount of ``reference`` paid for one ``token``."""
        self.pools.set(ordinal, keyer.pool_key(address), _pool(address, reference, token, **kw))
        self.whitelist.append(ordinal, keyer.token_pool_whitelist(token), address)
        self.liquidities.set(ordinal, keyer.pool_liquidity(address), liquidity)
        self.native.add(ordinal, keyer.pool_native_total_value_locked_token(address, reference), reference_locked)
        self.prices.set(ordinal, keyer.prices_token_pair(reference, token), rate)


def test_sqrt_price_to_token_prices():
    price0, price1 = sqrt_price_x96_to_token_prices(15625 << 96, 6, 18)
    assert price1 == Decimal("0.000244140625")
    assert price0 == Decimal(4096)


def test_zero_sqrt_price_gives_zero_prices():
    assert sqrt_price_x96_to_token_prices(0, 18, 18) == (Decimal(0), Decimal(0))


def test_bundle_price_reads_stable_side_of_reference_pool():
    prices = StoreSet("prices")
    assert get_eth_price_in_usd(prices, 5) is None
    prices.set(3, keyer.prices_pool_token_key(USDC_WETH_03_POOL, USDC_ADDRESS, "token0"), Decimal(2000))
    assert get_eth_price_in_usd(prices, 2) is None
    assert get_eth_price_in_usd(prices, 5) == Decimal(2000)


def test_tracked_amount_follows_whitelist():
    args = (Decimal(1), Decimal("0.5"), Decimal(2), Decimal(4), Decimal(1000))
    # both listed: sum of both sides
    assert get_tracked_amount_usd(WETH_ADDRESS, USDC_ADDRESS, *args) == Decimal(4000)
    # one listed: double that side
    assert get_tracked_amount_usd(WETH_ADDRESS, TKN, *args) == Decimal(4000)
    assert get_tracked_amount_usd(TKN, USDC_ADDRESS, *args) == Decimal(4000)
    assert get_tracked_amount_usd(TKN, OTHER, *args) == Decimal(0)
    assert get_untracked_amount_usd(*args) == Decimal(4000)


def test_tick_prices_are_reciprocal():
    price0, price1 = tick_prices(0)
    assert price0 == price1 == Decimal(1)
    price0, price1 = tick_prices(-100)
    assert price0 < 1 < price1


def test_reference_token_is_identity():
    assert Graph().oracle.find_eth_per_token(1, WETH_ADDRESS) == Decimal(1)


def test_token_without_whitelist_pools_is_unpriced():
    assert Graph().oracle.find_eth_per_token(1, TKN) == Decimal(0)


def test_largest_eth_locked_wins():
    graph = Graph()
    graph.add_pool(1, "01" * 20, TKN, WETH_ADDRESS, Decimal(100), Decimal("0.25"))
    graph.add_pool(2, "02" * 20, TKN, WETH_ADDRESS, Decimal(500), Decimal("0.30"))
    graph.add_pool(3, "03" * 20, TKN, WETH_ADDRESS, Decimal(200), Decimal("0.40"))

    assert graph.oracle.find_eth_per_token(3, TKN) == Decimal("0.30")
    # the second pool is not visible yet at ordinal 1
    assert graph.oracle.find_eth_per_token(1, TKN) == Decimal("0.25")


def test_first_recorded_pool_wins_ties():
    graph = Graph()
    graph.add_pool(1, "01" * 20, TKN, WETH_ADDRESS, Decimal(100), Decimal("0.25"))
    graph.add_pool(2, "02" * 20, TKN, WETH_ADDRESS, Decimal(100), Decimal("0.30"))

    assert graph.oracle.find_eth_per_token(2, TKN) == Decimal("0.25")


@pytest.mark.parametrize("rate", [Decimal("0.0001"), Decimal(1), Decimal(1000)])
def test_pool_below_minimum_is_never_selected(rate):
    graph = Graph(minimum_eth_locked=Decimal(60))
    graph.add_pool(1, "01" * 20, TKN, WETH_ADDRESS, Decimal(59), rate)
    graph.add_pool(2, "02" * 20, TKN, WETH_ADDRESS, Decimal(60), Decimal("0.5"))

    assert graph.oracle.find_eth_per_token(2, TKN) == Decimal("0.5")


def test_pools_without_liquidity_or_ignored_are_skipped():
    graph = Graph()
    graph.add_pool(1, "01" * 20, TKN, WETH_ADDRESS, Decimal(500), Decimal("0.9"), liquidity=0)
    graph.add_pool(2, "02" * 20, TKN, WETH_ADDRESS, Decimal(500), Decimal("0.8"), ignore_pool=True)
    graph.add_pool(3, "03" * 20, TKN, WETH_ADDRESS, Decimal(100), Decimal("0.1"))

    assert graph.oracle.find_eth_per_token(3, TKN) == Decimal("0.1")


def test_reference_priced_from_derived_store():
    graph = Graph()
    graph.eth_prices.set(1, keyer.token_eth_price(USDC_ADDRESS), Decimal("0.0005"))
    # 400k USDC locked is 200 ETH; 2 USDC per TKN
    graph.add_pool(2, "01" * 20, TKN, USDC_ADDRESS, Decimal(400_000), Decimal(2))

    assert graph.oracle.find_eth_per_token(2, TKN) == Decimal("0.001")


def test_reference_priced_recursively_when_not_derived_yet():
    graph = Graph()
    graph.add_pool(1, USDC_WETH_03_POOL, USDC_ADDRESS, WETH_ADDRESS, Decimal(100), Decimal("0.0005"))
    graph.add_pool(2, "01" * 20, TKN, USDC_ADDRESS, Decimal(400_000), Decimal(2))

    assert graph.oracle.find_eth_per_token(2, TKN) == Decimal("0.001")


def test_cycles_resolve_to_unpriced():
    graph = Graph()
    graph.add_pool(1, "01" * 20, TKN, OTHER, Decimal(1000), Decimal(2))
    graph.add_pool(2, "02" * 20, OTHER, TKN, Decimal(1000), Decimal("0.5"))

    assert graph.oracle.find_eth_per_token(2, TKN) == Decimal(0)
    assert graph.oracle.find_eth_per_token(2, OTHER) == Decimal(0)


def test_repeated_lookups_are_identical():
    graph = Graph()
    graph.add_pool(1, "01" * 20, TKN, WETH_ADDRESS, Decimal(100), Decimal("0.25"))

    prices = {graph.oracle.find_eth_per_token(1, TKN) for _ in range(5)}
    assert prices == {Decimal("0.25")}
