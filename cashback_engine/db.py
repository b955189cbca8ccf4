import logging
import time

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, declarative_base

from cashback_engine.config import get_settings


logger = logging.getLogger(__name__)

DATABASE_URL = get_settings().database_url


def build_engine(database_url: str):
    url = make_url(database_url)

    connect_args = {}
    if url.get_backend_name().startswith("postgres"):
        connect_args = {"options": "-c timezone=utc"}
    elif url.get_backend_name() == "sqlite":
        connect_args = {"check_same_thread": False}

    return create_engine(url, connect_args=connect_args)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def wait_for_database(bind=None, *, retries: int = 3, delay_seconds: float = 1.0) -> None:
    """Probe the database with ``SELECT 1``, retrying a bounded number of times.

    Only this read-only probe is retried automatically; writes never are.
    """
    bind = bind if bind is not None else engine
    attempts = max(1, int(retries) + 1)

    for attempt in range(1, attempts + 1):
        try:
            with bind.connect() as conn:
                conn.execute(text("SELECT 1"))
            return
        except OperationalError:
            if attempt >= attempts:
                logger.error("database unreachable", extra={"attempts": attempt})
                raise
            logger.warning(
                "database connection attempt failed, retrying",
                extra={"attempt": attempt, "delay_seconds": delay_seconds},
            )
            time.sleep(delay_seconds)
