"""
Database engine and session management.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from tripops.core.config import settings
from tripops.db.base import Base


def build_engine(
    database_url: str = None,
    echo: bool = None,
    timeout: float = None
) -> Engine:
    """
    Create an engine for the document store.

    SQLite gets a busy timeout so concurrent writers wait instead of failing
    immediately; in-memory SQLite shares one connection across threads.
    """
    database_url = database_url or settings.DATABASE_URL
    echo = settings.DB_ECHO if echo is None else echo
    timeout = settings.STORE_TIMEOUT_SECONDS if timeout is None else timeout

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": timeout}}
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_timeout=timeout
    )


def build_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Initialize database tables."""
    # Register tables on the metadata before create_all
    import tripops.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
