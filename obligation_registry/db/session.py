"""
SQLAlchemy engine and session factory.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from obligation_registry.config import Settings
from obligation_registry.db.base import Base


def create_session_factory(settings: Settings, create_tables: bool = True) -> sessionmaker:
    """Build the engine for ``settings.DATABASE_URL`` and return a session factory."""
    url = settings.DATABASE_URL
    is_sqlite = url.startswith("sqlite")
    is_memory = is_sqlite and (url in ("sqlite://", "sqlite:///:memory:"))

    engine_kwargs = {
        "connect_args": {"check_same_thread": False} if is_sqlite else {},
        "pool_pre_ping": not is_sqlite,  # health-check connections for PostgreSQL
    }
    if is_memory:
        # one shared connection, otherwise every session sees an empty database
        engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **engine_kwargs)

    if create_tables:
        # register models on the metadata before creating tables
        import obligation_registry.models.document  # noqa: F401
        Base.metadata.create_all(bind=engine)

    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
