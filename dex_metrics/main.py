# dex_metrics/main.py
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

load_dotenv()

from dex_metrics.api import api
from dex_metrics.storage.db import engine
from dex_metrics.storage.writer import create_tables
from dex_metrics.utils.shortname import ShortNameFilter

app = FastAPI(title="dex-metrics")

logging.basicConfig(
    level=logging.INFO,
    format="[%(levelname)s] %(shortname)s: %(message)s",
)
for handler in logging.getLogger().handlers:
    handler.addFilter(ShortNameFilter())
log = logging.getLogger(__name__)

app.include_router(api.router, prefix="/api")


@app.on_event("startup")
def check_db_connection():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        create_tables(engine)
        log.info("✅ Database connected.")
    except SQLAlchemyError as e:
        log.error(f"❌ DB connection failed: {e}")
