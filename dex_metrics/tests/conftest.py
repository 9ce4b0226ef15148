import pathlib
from decimal import Decimal

import pytest
from dotenv import load_dotenv

# Automatically load .env from project root
load_dotenv(dotenv_path=pathlib.Path(__file__).parent.parent.parent / ".env")

from dex_metrics.pipeline.config.settings import USDC_ADDRESS, USDC_WETH_03_POOL, WETH_ADDRESS  # noqa: E402

TKN_ADDRESS = "dd" * 20
TKN_POOL = "ee" * 20
E18 = 10 ** 18
E6 = 10 ** 6

# 15625 * 2**96 prices WETH at 4096 USDC (6 vs 18 decimals)
USDC_WETH_SQRT_PRICE = 15625 << 96
# 2 * 2**96: 4 TKN per WETH, i.e. 0.25 WETH per TKN
WETH_TKN_SQRT_PRICE = 2 << 96


def _token(address, symbol, decimals):
    return {"address": address, "name": symbol, "symbol": symbol, "decimals": decimals, "total_supply": "0"}


@pytest.fixture
def raw_blocks():
    """
    Two blocks in the JSON-lines shape.

    Block 1 creates USDC/WETH and WETH/TKN, adds liquidity and initializes
    both pools; block 2 swaps 1 WETH in for 4 TKN out of the TKN pool.
    """
    block1 = {
        "number": 100,
        "timestamp": 1_620_000_000,
        "pools_created": [
            {
                "address": "0x" + USDC_WETH_03_POOL.upper(),
                "token0": _token(USDC_ADDRESS, "USDC", 6),
                "token1": _token(WETH_ADDRESS, "WETH", 18),
                "fee_tier": 3000,
                "tick_spacing": 60,
                "transaction_id": "0x" + "01" * 32,
                "log_ordinal": 10,
            },
            {
                "address": TKN_POOL,
                "token0": _token(WETH_ADDRESS, "WETH", 18),
                "token1": _token(TKN_ADDRESS, "TKN", 18),
                "fee_tier": 3000,
                "tick_spacing": 60,
                "transaction_id": "02" * 32,
                "log_ordinal": 20,
            },
        ],
        "logs": [
            {
                "type": "mint", "pool_address": USDC_WETH_03_POOL, "log_ordinal": 30, "log_index": 0,
                "transaction_id": "03" * 32, "owner": "aa" * 20, "sender": "aa" * 20, "origin": "aa" * 20,
                "amount": "1000", "amount0": str(409_600 * E6), "amount1": str(100 * E18),
                "tick_lower": -60, "tick_upper": 60,
            },
            {
                "type": "mint", "pool_address": TKN_POOL, "log_ordinal": 31, "log_index": 1,
                "transaction_id": "04" * 32, "owner": "aa" * 20, "sender": "aa" * 20, "origin": "aa" * 20,
                "amount": "1000", "amount0": str(100 * E18), "amount1": str(200 * E18),
                "tick_lower": -60, "tick_upper": 60,
            },
        ],
        "liquidity_changes": [
            {"pool_address": USDC_WETH_03_POOL, "ordinal": 32, "liquidity": str(E18)},
            {"pool_address": TKN_POOL, "ordinal": 33, "liquidity": str(E18)},
        ],
        "initializes": [
            {"pool_address": USDC_WETH_03_POOL, "ordinal": 40, "sqrt_price": str(USDC_WETH_SQRT_PRICE), "tick": 0},
            {"pool_address": TKN_POOL, "ordinal": 41, "sqrt_price": str(WETH_TKN_SQRT_PRICE), "tick": 0},
        ],
    }
    block2 = {
        "number": 101,
        "timestamp": 1_620_000_012,
        "logs": [
            {
                "type": "swap", "pool_address": TKN_POOL, "log_ordinal": 5, "log_index": 0,
                "transaction_id": "05" * 32, "sender": "bb" * 20, "recipient": "bb" * 20, "origin": "bb" * 20,
                "amount0": str(E18), "amount1": str(-4 * E18),
                "sqrt_price": str(WETH_TKN_SQRT_PRICE), "liquidity": str(E18), "tick": 13863,
            },
        ],
    }
    return [block1, block2]


@pytest.fixture
def blocks(raw_blocks):
    from dex_metrics.ingestion.loader import parse_block
    return [parse_block(raw) for raw in raw_blocks]


@pytest.fixture
def minimum_eth_locked():
    return Decimal(60)


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite:///{tmp_path / 'dex_metrics.db'}"


@pytest.fixture
def db(sqlite_url):
    from dex_metrics.storage.db import make_engine, make_session_factory
    from dex_metrics.storage.writer import create_tables

    bind = make_engine(sqlite_url)
    create_tables(bind)
    factory = make_session_factory(bind)
    session = factory()
    yield session
    session.close()
    factory.remove()
    bind.dispose()
