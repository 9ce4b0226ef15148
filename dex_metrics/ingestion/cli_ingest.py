import json
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import find_dotenv, load_dotenv

# settings read the environment at import time
load_dotenv(find_dotenv(usecwd=True))

from dex_metrics.ingestion.loader import load_blocks
from dex_metrics.ingestion.token_meta import fill_token_meta, get_web3_client
from dex_metrics.pipeline.config.settings import DATABASE_URL, ETH_RPC_URL
from dex_metrics.pipeline.engine import MetricsEngine
from dex_metrics.storage.db import make_engine, make_session_factory
from dex_metrics.storage.writer import create_tables, last_block_number, load_snapshot, upsert_block_output
from dex_metrics.utils.metric_bank import factory_metrics, resolve, to_jsonable

log = logging.getLogger(__name__)

app = typer.Typer(help="Replay decoded AMM blocks through the metrics engine")


@app.callback()
def _main() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")


@app.command("replay")
def replay(
    input_path: Path = typer.Option(..., "--input", exists=True, dir_okay=False, help="JSON lines, one block per line"),
    persist: bool = typer.Option(False, "--persist", help="Resume from and upsert into the database"),
    rpc_url: Optional[str] = typer.Option(ETH_RPC_URL, "--rpc-url", help="Fill missing token metadata over RPC"),
    database_url: str = typer.Option(DATABASE_URL, "--database-url", help="Used with --persist"),
):
    """
    Replay blocks in order and print the factory totals.
    """
    db = None
    try:
        blocks = load_blocks(input_path)
        if rpc_url:
            w3 = get_web3_client(rpc_url)
            blocks = [
                block._replace(pools_created=[fill_token_meta(p, w3) for p in block.pools_created])
                for block in blocks
            ]

        engine = MetricsEngine()
        if persist:
            bind = make_engine(database_url)
            create_tables(bind)
            db = make_session_factory(bind)()
            engine.restore(load_snapshot(db))
            resume_after = last_block_number(db)
            if resume_after is not None:
                log.info("[cli] Resuming after block %d", resume_after)
                blocks = [b for b in blocks if b.number > resume_after]

        for output in engine.process_blocks(blocks):
            if db is not None:
                upsert_block_output(db, output)

        totals = resolve(factory_metrics(), lambda store, key: engine.stores[store].get_last(key))
        typer.echo(json.dumps({"blocks": len(blocks), **to_jsonable(totals)}, indent=2))
        log.info("[cli] Replay completed successfully")

    except Exception:
        log.error("Replay failed", exc_info=True)
        raise typer.Exit(code=1)
    finally:
        if db is not None:
            db.close()
            log.info("[cli] Database session closed")


def main():
    app()


if __name__ == "__main__":
    main()
