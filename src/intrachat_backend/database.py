import os
from contextlib import contextmanager
from functools import lru_cache
from typing import Callable, Generator, Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

POSTGRES_HOST = os.environ.get("POSTGRES_HOST", "localhost")
POSTGRES_PORT = os.environ.get("POSTGRES_PORT", "5432")
POSTGRES_USER = os.environ.get("POSTGRES_USER")
POSTGRES_PASSWORD = os.environ.get("POSTGRES_PASSWORD")
POSTGRES_DB = os.environ.get("POSTGRES_DB")

DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    f"postgresql+psycopg2://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)


@lru_cache(maxsize=None)
def get_engine(url: str = DATABASE_URL) -> Engine:
    """Create the process-wide engine on first use."""
    if url.startswith("sqlite"):
        return create_engine(url, future=True)

    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
        pool_use_lifo=True,
        future=True
    )


def make_session_factory(engine: Engine) -> Callable[[], Session]:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        expire_on_commit=False,  # DTOs are built after commit
        autoflush=False,
        class_=Session
    )


@lru_cache(maxsize=None)
def get_session_factory() -> Callable[[], Session]:
    return make_session_factory(get_engine())


@contextmanager
def session_scope(factory: Optional[Callable[[], Session]] = None) -> Generator[Session, None, None]:
    """
    One short-lived session per store call: commits when the block
    finishes, rolls back if it raises, and always closes.

    Args:
        factory: Session factory; defaults to the process-wide one
    """
    db = (factory or get_session_factory())()
    try:
        yield db

        if db.in_transaction():
            db.commit()
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()
