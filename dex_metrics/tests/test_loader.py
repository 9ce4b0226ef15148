import json

import pytest
from hexbytes import HexBytes

from dex_metrics.ingestion.loader import load_blocks, normalize_address, parse_block
from dex_metrics.pipeline.config.settings import USDC_WETH_03_POOL
from dex_metrics.pipeline.types import Burn, Mint, Swap


def test_normalize_address():
    assert normalize_address("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2") == "c02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
    assert normalize_address(HexBytes("0x" + "ab" * 20)) == "ab" * 20
    assert normalize_address(bytes.fromhex("cd" * 20)) == "cd" * 20


def test_parse_block(raw_blocks):
    block = parse_block(raw_blocks[0])

    assert block.number == 100
    assert [p.address for p in block.pools_created][0] == USDC_WETH_03_POOL
    assert block.pools_created[0].created_at_timestamp == 1_620_000_000
    assert block.pools_created[0].token0.decimals == 6
    assert isinstance(block.logs[0].payload, Mint)
    assert block.logs[0].payload.amount1 == 100 * 10 ** 18
    assert block.initializes[0].sqrt_price == 15625 << 96


def test_parse_swap_and_burn_logs():
    block = parse_block({
        "number": 1,
        "timestamp": 0,
        "logs": [
            {"type": "swap", "pool_address": "0xAB", "log_ordinal": 1, "amount0": "-5", "amount1": 7,
             "sqrt_price": str(1 << 96)},
            {"type": "burn", "pool_address": "ab", "log_ordinal": 2, "amount0": 1, "amount1": 2,
             "tick_lower": -10, "tick_upper": 10},
        ],
    })

    swap, burn = (log.payload for log in block.logs)
    assert isinstance(swap, Swap) and swap.amount0 == -5
    assert isinstance(burn, Burn) and burn.tick_upper == 10
    assert block.logs[0].pool_address == "ab"


def test_foreign_factory_pools_are_ignored(raw_blocks):
    raw = raw_blocks[0]
    raw["pools_created"][1]["factory"] = "0x" + "01" * 20
    block = parse_block(raw)

    assert not block.pools_created[0].ignore_pool
    assert block.pools_created[1].ignore_pool


def test_unknown_log_type_is_rejected():
    with pytest.raises(ValueError, match="unknown log type"):
        parse_block({"number": 1, "timestamp": 0, "logs": [
            {"type": "flash", "pool_address": "ab", "log_ordinal": 1},
        ]})


def test_load_blocks_skips_blank_lines(tmp_path, raw_blocks):
    path = tmp_path / "blocks.jsonl"
    path.write_text(json.dumps(raw_blocks[0]) + "\n\n" + json.dumps(raw_blocks[1]) + "\n")

    assert [b.number for b in load_blocks(path)] == [100, 101]
