from unittest.mock import MagicMock

import pytest
from web3.exceptions import BadFunctionCallOutput

from dex_metrics.ingestion.token_meta import fetch_token_meta, fill_token_meta
from dex_metrics.pipeline.types import Pool, Token

KNOWN = "aa" * 20
MISSING = "bb" * 20


@pytest.fixture(autouse=True)
def clear_cache():
    fetch_token_meta.cache_clear()
    yield
    fetch_token_meta.cache_clear()


def _w3(decimals=6, symbol="USDC", name="USD Coin", total_supply=10 ** 15):
    w3 = MagicMock()
    functions = w3.eth.contract.return_value.functions
    functions.decimals.return_value.call.return_value = decimals
    functions.symbol.return_value.call.return_value = symbol
    functions.name.return_value.call.return_value = name
    functions.totalSupply.return_value.call.return_value = total_supply
    return w3


def _pool():
    return Pool(
        address="ee" * 20,
        token0=Token(KNOWN, symbol="A", decimals=18),
        token1=Token(MISSING),
        fee_tier=500,
        tick_spacing=10,
        created_at_block_number=1,
        created_at_timestamp=0,
        transaction_id="",
        log_ordinal=1,
    )


def test_fill_only_touches_tokens_without_decimals():
    w3 = _w3()
    pool = fill_token_meta(_pool(), w3)

    assert pool.token0 == Token(KNOWN, symbol="A", decimals=18)
    assert pool.token1.decimals == 6
    assert pool.token1.symbol == "USDC"
    assert pool.token1.total_supply == 10 ** 15
    w3.eth.contract.assert_called_once()
    assert w3.eth.contract.call_args.kwargs["address"].lower() == "0x" + MISSING


def test_metadata_is_cached_per_token():
    w3 = _w3()
    fetch_token_meta(w3, MISSING)
    fetch_token_meta(w3, MISSING)

    assert w3.eth.contract.call_count == 1


def test_failed_lookup_leaves_token_unfilled():
    w3 = _w3()
    w3.eth.contract.return_value.functions.decimals.return_value.call.side_effect = BadFunctionCallOutput("no code")

    pool = fill_token_meta(_pool(), w3)

    assert pool.token1.decimals is None
    assert w3.eth.contract.call_count == 3
