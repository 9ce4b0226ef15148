from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import NullPool

from dex_metrics.pipeline.config.settings import DATABASE_URL


def make_engine(url: str = DATABASE_URL, worker: bool = False):
    """
    SQLite gets no pool sizing (and may be shared across threads by the API);
    Postgres gets a pre-pinged pool, or no pool at all inside Celery workers.
    """
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    if worker:
        return create_engine(url, pool_pre_ping=True, poolclass=NullPool)
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def make_session_factory(bind):
    return scoped_session(
        sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=bind,
        )
    )


worker_engine = make_engine(DATABASE_URL, worker=True)
WorkerSessionLocal = make_session_factory(worker_engine)

engine = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
