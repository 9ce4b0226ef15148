"""Named (store, key) lookups behind the factory, token and pool views."""
from typing import Any, Callable, Dict, Optional, Tuple

from dex_metrics.pipeline import keyer

Lookup = Dict[str, Tuple[str, str]]


def factory_metrics() -> Lookup:
    return {
        "pool_count":                 ("pool_count", keyer.factory_pool_count_key()),
        "tx_count":                   ("total_tx_counts", keyer.factory_total_tx_count()),
        "total_value_locked_eth":     ("totals", keyer.factory_total_value_locked_eth()),
        "total_value_locked_usd":     ("totals", keyer.factory_total_value_locked_usd()),
        "total_volume_eth":           ("swaps_volume", keyer.swap_factory_total_volume_eth()),
        "total_volume_usd":           ("swaps_volume", keyer.swap_factory_total_volume_usd()),
        "untracked_volume_usd":       ("swaps_volume", keyer.swap_factory_untracked_volume_usd()),
        "total_fees_eth":             ("swaps_volume", keyer.swap_factory_total_fees_eth()),
        "total_fees_usd":             ("swaps_volume", keyer.swap_factory_total_fees_usd()),
        "eth_price_usd":              ("eth_prices", keyer.bundle_eth_price()),
    }


def token_metrics(token_address: str) -> Lookup:
    return {
        "derived_eth":                ("eth_prices", keyer.token_eth_price(token_address)),
        "whitelist_pools":            ("tokens_whitelist_pools", keyer.token_pool_whitelist(token_address)),
        "total_value_locked":         ("native_total_value_locked", keyer.token_native_total_value_locked(token_address)),
        "total_value_locked_usd":     ("total_value_locked", keyer.token_usd_total_value_locked(token_address)),
        "volume":                     ("swaps_volume", keyer.swap_token_volume(token_address)),
        "volume_usd":                 ("swaps_volume", keyer.swap_token_volume_usd(token_address)),
        "untracked_volume_usd":       ("swaps_volume", keyer.swap_token_volume_untracked_volume_usd(token_address)),
        "fees_usd":                   ("swaps_volume", keyer.swap_token_fee_usd(token_address)),
        "tx_count":                   ("total_tx_counts", keyer.token_total_tx_count(token_address)),
    }


def pool_metrics(pool_address: str) -> Lookup:
    return {
        "pool":                       ("pools", keyer.pool_key(pool_address)),
        "sqrt_price":                 ("pool_sqrt_price", keyer.pool_sqrt_price_key(pool_address)),
        "liquidity":                  ("pool_liquidities", keyer.pool_liquidity(pool_address)),
        "total_value_locked_eth":     ("total_value_locked", keyer.pool_eth_total_value_locked(pool_address)),
        "total_value_locked_usd":     ("total_value_locked", keyer.pool_usd_total_value_locked(pool_address)),
        "volume_token0":              ("swaps_volume", keyer.swap_volume_token_0(pool_address)),
        "volume_token1":              ("swaps_volume", keyer.swap_volume_token_1(pool_address)),
        "volume_usd":                 ("swaps_volume", keyer.swap_volume_usd(pool_address)),
        "untracked_volume_usd":       ("swaps_volume", keyer.swap_untracked_volume_usd(pool_address)),
        "fees_usd":                   ("swaps_volume", keyer.swap_fee_usd(pool_address)),
        "tx_count":                   ("total_tx_counts", keyer.pool_total_tx_count(pool_address)),
    }


def resolve(lookup: Lookup, read: Callable[[str, str], Optional[Any]]) -> Dict[str, Any]:
    """Read every (store, key) of ``lookup`` through ``read(store_name, key)``."""
    return {field: read(store_name, key) for field, (store_name, key) in lookup.items()}


def to_jsonable(value: Any) -> Any:
    """Numbers as strings so Decimals keep their precision; records become dicts."""
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if hasattr(value, "_asdict"):
        return {k: to_jsonable(v) for k, v in value._asdict().items()}
    if isinstance(value, (tuple, list)):
        return [to_jsonable(v) for v in value]
    return str(value)
