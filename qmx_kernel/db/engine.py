"""
Module: qmx_kernel.db.engine
Responsibility: SQLAlchemy engine creation, schema creation and the
    transactional scope used by the snapshot repository.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/models.py.  MUST NOT import from stores/ or services/.

Invariants enforced:
    - No module-level engine: every engine is created by the caller and
      handed to the repository that uses it.
    - SQLite connections may be used from the manager's worker threads
      (``check_same_thread=False``); an in-memory SQLite database shares one
      connection so all sessions see the same data.

Failure modes:
    - sqlalchemy.exc.ArgumentError for a malformed URL.
    - OperationalError when the database is unreachable.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from qmx_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def create_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for ``database_url``.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite:///qmx.db``.
        echo: If True, log all SQL statements.
    """
    url = make_url(database_url)
    kwargs: dict = {"echo": echo}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)
    logger.info(
        "engine_created",
        extra={"dialect": url.get_backend_name(), "echo": echo},
    )
    return engine


def create_tables(engine: Engine) -> None:
    """Create every snapshot table that does not exist yet."""
    from qmx_kernel.db import models  # noqa: F401  (registers tables)
    from qmx_kernel.db.base import Base

    Base.metadata.create_all(engine)
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables(engine: Engine) -> None:
    """Drop every snapshot table. FOR TESTING ONLY."""
    from qmx_kernel.db import models  # noqa: F401
    from qmx_kernel.db.base import Base

    Base.metadata.drop_all(engine)
    logger.info("tables_dropped", extra={"tables": sorted(Base.metadata.tables)})


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, the session is committed and closed.
        On exception, the session is rolled back and closed and the
        exception is re-raised.
    """
    session = factory()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()
