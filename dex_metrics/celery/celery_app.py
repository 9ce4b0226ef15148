# celery_app.py  ─────────────────────────────────────────────────────────
import logging
import logging.config

from celery import Celery
from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True))

from dex_metrics.pipeline.config.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

# ── 1.  Broker / backend  ────────────────────────────────────
celery_app = Celery(
    "dex_metrics",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# ── 2.  Core config & routing ────────────────────────────────
celery_app.conf.update(
    task_serializer       ='json',
    result_serializer     ='json',
    accept_content        =['json'],
    timezone              ='UTC',
    enable_utc            =True,

    # segments of one chain must be replayed in order, one at a time per worker
    worker_prefetch_multiplier = 1,
    task_acks_late             = True,

    # --- recycle workers to avoid long‑lived memory creep
    worker_max_tasks_per_child = 20,

    task_routes = {
        "process_segment": {"queue": "segments"},
    },
)

# ── 3.  Logging ────────────────────────────────────────────
LOGGING_CONFIG = {
    "version": 1,
    "formatters": {
        "custom": {
            "format": "[%(asctime)s] [%(levelname)s] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "custom"},
    },
    "root": {"level": "INFO", "handlers": ["console"]},
}
celery_app.conf.worker_hijack_root_logger = False
logging.config.dictConfig(LOGGING_CONFIG)

# ── 4.  Task modules so Celery registers them ───────────────
import dex_metrics.pipeline.tasks  # noqa: E402,F401
