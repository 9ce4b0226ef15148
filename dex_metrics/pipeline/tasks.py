"""
Celery side of segment processing.

A worker restores the persisted store values, replays the blocks it was handed
in order and upserts every block output before acking. Segments are chained by
``after_block``, the last block of the segment they continue: a segment that
arrives before its predecessor is persisted is retried, blocks already marked
as persisted are skipped, and a segment that would go back in time fails.
"""
import logging
from typing import Any, Dict, List, Optional

from celery import shared_task

from dex_metrics.ingestion.loader import parse_block
from dex_metrics.pipeline.engine import MetricsEngine
from dex_metrics.storage.db import WorkerSessionLocal
from dex_metrics.storage.writer import (
    last_block_number,
    load_snapshot,
    persisted_block_numbers,
    upsert_block_output,
)
from dex_metrics.utils.errors import OrdinalOrderError, SegmentNotReadyError

log = logging.getLogger(__name__)

RETRIES = 10


def run_segment(db, blocks: List[Dict[str, Any]], after_block: Optional[int] = None) -> Dict[str, Any]:
    segment = sorted((parse_block(raw) for raw in blocks), key=lambda b: b.number)
    last = last_block_number(db)
    if not segment:
        return {"blocks": 0, "rows": 0, "last_block": last}

    if after_block is not None and (last is None or last < after_block):
        raise SegmentNotReadyError(
            f"segment continues block {after_block}, last persisted block is {last}"
        )
    if after_block is not None and segment[0].number <= after_block:
        raise OrdinalOrderError(
            f"segment starts at block {segment[0].number}, not after block {after_block}"
        )

    # blocks persisted inside the segment's span must be a prefix of it
    persisted = persisted_block_numbers(db, after=after_block, until=segment[-1].number)
    done = {b.number for b in segment if last is not None and b.number <= last}
    if persisted != done:
        raise OrdinalOrderError(
            f"persisted blocks {sorted(persisted)} do not match this segment's blocks {sorted(done)}"
        )

    pending = [b for b in segment if b.number not in done]
    engine = MetricsEngine()
    engine.restore(load_snapshot(db))

    rows = 0
    for output in engine.process_blocks(pending):
        rows += upsert_block_output(db, output)

    return {
        "blocks": len(pending),
        "rows": rows,
        "last_block": engine.last_block if engine.last_block is not None else last,
    }


@shared_task(
    name="process_segment",
    bind=True,
    max_retries=RETRIES,
    default_retry_delay=3,
)
def process_segment(self, blocks: List[Dict[str, Any]], after_block: Optional[int] = None) -> Dict[str, Any]:
    """
    Replay one segment of decoded blocks (JSON dicts, as in the JSON-lines input).

    ``after_block`` is the last block of the previous segment, ``None`` for the
    first one.
    """
    log.info("🔄  Processing segment of %d blocks after block %s", len(blocks), after_block)
    db = WorkerSessionLocal()
    try:
        summary = run_segment(db, blocks, after_block)
    except SegmentNotReadyError as exc:
        log.info("⏳ Segment after block %s is waiting: %s", after_block, exc)
        raise self.retry(exc=exc)
    finally:
        db.close()
        WorkerSessionLocal.remove()
    log.info("✅ Segment done: %s", summary)
    return summary
