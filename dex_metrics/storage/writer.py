"""
Persist block outputs as the last value per (store, key) and load them back as
an engine snapshot.

Values are stored as text with a ``kind`` tag so Decimals keep their full
precision and record types come back as the same NamedTuples.
"""
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dex_metrics.pipeline.engine import BlockOutput
from dex_metrics.pipeline.types import Pool, PoolSqrtPrice, Tick, Token
from dex_metrics.storage.models.persisted_block import PersistedBlock
from dex_metrics.storage.models.store_value import Base, StoreValue

log = logging.getLogger(__name__)

CHUNK_SIZE = 500

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


# ── value codec ────────────────────────────────────────────────────
def _token_from_dict(data: Dict[str, Any]) -> Token:
    return Token(**{**data, "whitelist_pools": tuple(data.get("whitelist_pools", ()))})


def encode_value(value: Any) -> Tuple[str, str]:
    """Return ``(kind, text)`` for a store value."""
    # NamedTuples are tuples too, so they go first
    if isinstance(value, Pool):
        data = value._asdict()
        data["token0"] = value.token0._asdict()
        data["token1"] = value.token1._asdict()
        return "pool", json.dumps(data)
    if isinstance(value, PoolSqrtPrice):
        return "sqrt_price", json.dumps(value._asdict())
    if isinstance(value, Tick):
        return "tick", json.dumps({
            "pool_address": value.pool_address,
            "idx": value.idx,
            "price0": str(value.price0),
            "price1": str(value.price1),
        })
    if isinstance(value, tuple):
        return "list", json.dumps(list(value))
    if isinstance(value, Decimal):
        return "decimal", str(value)
    if isinstance(value, int):
        return "int", str(value)
    raise TypeError(f"cannot encode store value of type {type(value).__name__}")


def decode_value(kind: str, text: str) -> Any:
    if kind == "decimal":
        return Decimal(text)
    if kind == "int":
        return int(text)
    if kind == "list":
        return tuple(json.loads(text))
    if kind == "pool":
        data = json.loads(text)
        data["token0"] = _token_from_dict(data["token0"])
        data["token1"] = _token_from_dict(data["token1"])
        return Pool(**data)
    if kind == "sqrt_price":
        return PoolSqrtPrice(**json.loads(text))
    if kind == "tick":
        data = json.loads(text)
        return Tick(
            pool_address=data["pool_address"],
            idx=data["idx"],
            price0=Decimal(data["price0"]),
            price1=Decimal(data["price1"]),
        )
    raise ValueError(f"unknown value kind {kind!r}")


# ── writes ─────────────────────────────────────────────────────────
def _rows(output: BlockOutput, now: datetime) -> List[Dict[str, Any]]:
    rows = []
    for store_name, deltas in output.deltas.items():
        # only the last write per key survives the block
        last = {}
        for delta in deltas:
            last[delta.key] = delta
        for key, delta in last.items():
            kind, value = encode_value(delta.new_value)
            rows.append({
                "store_name": store_name,
                "key": key,
                "value": value,
                "kind": kind,
                "ordinal": delta.ordinal,
                "block_number": output.number,
                "updated_at": now,
            })
    return rows


def upsert_block_output(db: Session, output: BlockOutput) -> int:
    """
    Upsert the last value of every key changed in ``output`` and mark the block
    as persisted, in one transaction. Returns the store value row count.
    """
    now = datetime.now(timezone.utc)
    rows = _rows(output, now)

    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"unsupported database dialect {dialect!r}")

    table = StoreValue.__table__
    try:
        for start in range(0, len(rows), CHUNK_SIZE):
            chunk = rows[start:start + CHUNK_SIZE]
            stmt = insert(table).values(chunk)
            stmt = stmt.on_conflict_do_update(
                index_elements=["store_name", "key"],
                set_={
                    col: stmt.excluded[col]
                    for col in ("value", "kind", "ordinal", "block_number", "updated_at")
                },
            )
            db.execute(stmt)
        marker = insert(PersistedBlock.__table__).values(block_number=output.number, processed_at=now)
        db.execute(marker.on_conflict_do_nothing(index_elements=["block_number"]))
        db.commit()
    except SQLAlchemyError as e:
        log.exception("Upsert of block %d failed: %s", output.number, e)
        db.rollback()
        raise

    log.info("Upserted %d store values for block %d", len(rows), output.number)
    return len(rows)


# ── reads ──────────────────────────────────────────────────────────
def load_snapshot(db: Session) -> Dict[str, Dict[str, Any]]:
    """Every persisted value, grouped by store, ready for ``MetricsEngine.restore``."""
    snapshot: Dict[str, Dict[str, Any]] = {}
    for row in db.execute(select(StoreValue)).scalars():
        snapshot.setdefault(row.store_name, {})[row.key] = decode_value(row.kind, row.value)
    return snapshot


def last_block_number(db: Session) -> Optional[int]:
    row = db.execute(
        select(PersistedBlock.block_number).order_by(PersistedBlock.block_number.desc()).limit(1)
    ).first()
    return None if row is None else row[0]


def persisted_block_numbers(db: Session, after: Optional[int] = None, until: Optional[int] = None) -> Set[int]:
    """Persisted block numbers in ``(after, until]``; open ends are unbounded."""
    stmt = select(PersistedBlock.block_number)
    if after is not None:
        stmt = stmt.where(PersistedBlock.block_number > after)
    if until is not None:
        stmt = stmt.where(PersistedBlock.block_number <= until)
    return set(db.execute(stmt).scalars())


def get_value(db: Session, store_name: str, key: str) -> Optional[Any]:
    row = db.get(StoreValue, (store_name, key))
    if row is None:
        return None
    return decode_value(row.kind, row.value)


def create_tables(bind) -> None:
    Base.metadata.create_all(bind=bind)
