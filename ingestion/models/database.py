"""
SQLAlchemy engine, session factory and declarative base.
Synchronous: documents are processed one at a time per tenant.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from ingestion.config import settings


class Base(DeclarativeBase):
    pass


def build_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    url = url or settings.DATABASE_URL
    kwargs = {}
    if url.startswith("sqlite"):
        # Tenant batches run on worker threads
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(
        url,
        echo=settings.DB_ECHO if echo is None else echo,
        pool_pre_ping=True,
        **kwargs,
    )


def build_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    return sessionmaker(bind=engine or build_engine(), expire_on_commit=False)


def create_schema(engine: Engine) -> None:
    """Create all tables. Importing tables registers them on Base.metadata."""
    from ingestion.models import tables  # noqa: F401

    Base.metadata.create_all(engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """Commit on success, roll back and re-raise on error."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
