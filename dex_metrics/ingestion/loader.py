"""
Turn decoded block payloads into ``BlockSegment`` records.

Input is JSON lines, one block per line::

    {"number": 12369739, "timestamp": 1620158974,
     "pools_created": [{"address": "...", "token0": {...}, "token1": {...},
                        "fee_tier": 3000, "tick_spacing": 60,
                        "transaction_id": "...", "log_ordinal": 10,
                        "factory": "1f98431c..."}],
     "initializes": [{"pool_address": "...", "ordinal": 12, "sqrt_price": "...", "tick": 0}],
     "liquidity_changes": [{"pool_address": "...", "ordinal": 30, "liquidity": "..."}],
     "logs": [{"type": "mint", "pool_address": "...", "log_ordinal": 20, ...}]}

Big integers may arrive as strings; addresses may carry a 0x prefix, mixed
case or be raw bytes. Everything is normalised to lowercase hex without 0x.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Union

from eth_utils import remove_0x_prefix
from hexbytes import HexBytes

from dex_metrics.pipeline.config.settings import UNISWAP_V3_FACTORY
from dex_metrics.pipeline.types import (
    BlockSegment,
    Burn,
    Initialize,
    Mint,
    Pool,
    PoolLiquidity,
    PoolLog,
    Swap,
    Token,
)

log = logging.getLogger(__name__)


def normalize_address(value: Union[str, bytes]) -> str:
    if isinstance(value, (bytes, bytearray, HexBytes)):
        value = HexBytes(value).hex()
    return remove_0x_prefix(str(value).strip().lower())


def _plain(raw: Any) -> Dict[str, Any]:
    """Web3 AttributeDicts and friends into a plain dict."""
    return dict(raw)


def _token(raw: Dict[str, Any]) -> Token:
    raw = _plain(raw)
    decimals = raw.get("decimals")
    return Token(
        address=normalize_address(raw["address"]),
        name=raw.get("name") or "",
        symbol=raw.get("symbol") or "",
        decimals=None if decimals is None else int(decimals),
        total_supply=int(raw.get("total_supply") or 0),
    )


def _pool(raw: Dict[str, Any], number: int, timestamp: int) -> Pool:
    raw = _plain(raw)
    factory = raw.get("factory")
    foreign = factory is not None and normalize_address(factory) != UNISWAP_V3_FACTORY
    if foreign:
        log.info("pool %s created by foreign factory %s", raw["address"], factory)
    return Pool(
        address=normalize_address(raw["address"]),
        token0=_token(raw["token0"]),
        token1=_token(raw["token1"]),
        fee_tier=int(raw["fee_tier"]),
        tick_spacing=int(raw["tick_spacing"]),
        created_at_block_number=number,
        created_at_timestamp=timestamp,
        transaction_id=normalize_address(raw.get("transaction_id", "")),
        log_ordinal=int(raw["log_ordinal"]),
        ignore_pool=bool(raw.get("ignore_pool", False)) or foreign,
    )


def _payload(raw: Dict[str, Any]):
    kind = raw["type"]
    match kind:
        case "swap":
            return Swap(
                sender=normalize_address(raw.get("sender", "")),
                recipient=normalize_address(raw.get("recipient", "")),
                origin=normalize_address(raw.get("origin", "")),
                amount0=int(raw["amount0"]),
                amount1=int(raw["amount1"]),
                sqrt_price=int(raw["sqrt_price"]),
                liquidity=int(raw.get("liquidity", 0)),
                tick=int(raw.get("tick", 0)),
            )
        case "mint":
            return Mint(
                owner=normalize_address(raw.get("owner", "")),
                sender=normalize_address(raw.get("sender", "")),
                origin=normalize_address(raw.get("origin", "")),
                amount=int(raw.get("amount", 0)),
                amount0=int(raw["amount0"]),
                amount1=int(raw["amount1"]),
                tick_lower=int(raw["tick_lower"]),
                tick_upper=int(raw["tick_upper"]),
            )
        case "burn":
            return Burn(
                owner=normalize_address(raw.get("owner", "")),
                origin=normalize_address(raw.get("origin", "")),
                amount=int(raw.get("amount", 0)),
                amount0=int(raw["amount0"]),
                amount1=int(raw["amount1"]),
                tick_lower=int(raw["tick_lower"]),
                tick_upper=int(raw["tick_upper"]),
            )
        case _:
            raise ValueError(f"unknown log type {kind!r}")


def _pool_log(raw: Dict[str, Any]) -> PoolLog:
    raw = _plain(raw)
    return PoolLog(
        pool_address=normalize_address(raw["pool_address"]),
        log_ordinal=int(raw["log_ordinal"]),
        log_index=int(raw.get("log_index", 0)),
        transaction_id=normalize_address(raw.get("transaction_id", "")),
        payload=_payload(raw),
    )


def parse_block(raw: Dict[str, Any]) -> BlockSegment:
    number = int(raw["number"])
    timestamp = int(raw["timestamp"])
    return BlockSegment(
        number=number,
        timestamp=timestamp,
        pools_created=[_pool(p, number, timestamp) for p in raw.get("pools_created", [])],
        initializes=[
            Initialize(
                pool_address=normalize_address(i["pool_address"]),
                ordinal=int(i["ordinal"]),
                sqrt_price=int(i["sqrt_price"]),
                tick=int(i.get("tick", 0)),
            )
            for i in raw.get("initializes", [])
        ],
        liquidity_changes=[
            PoolLiquidity(
                pool_address=normalize_address(c["pool_address"]),
                ordinal=int(c["ordinal"]),
                liquidity=int(c["liquidity"]),
            )
            for c in raw.get("liquidity_changes", [])
        ],
        logs=[_pool_log(entry) for entry in raw.get("logs", [])],
    )


def iter_blocks(path: Union[str, Path]) -> Iterator[BlockSegment]:
    with open(path, "r", encoding="utf-8") as fh:
        for line_no, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                raw = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{line_no}: invalid JSON: {e}") from e
            yield parse_block(raw)


def load_blocks(path: Union[str, Path]) -> List[BlockSegment]:
    blocks = list(iter_blocks(path))
    log.info("📦 Loaded %d blocks from %s", len(blocks), path)
    return blocks
