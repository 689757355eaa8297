from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from medvault.core.config import get_settings

settings = get_settings()


def build_engine(database_url: str) -> Engine:
    """
    Create the SQLAlchemy engine.

    SQLite connections are shared between the request threads and the
    auto key scheduler thread, so the same-thread check is disabled there.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


engine = build_engine(str(settings.database_url))

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a DB session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """
    Create all tables that do not exist yet.
    """
    # Importing the models package registers every table on Base.metadata
    import medvault.models  # noqa: F401
    from medvault.models.base import Base

    Base.metadata.create_all(bind=bind or engine)
