"""Database connection and session management."""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from procura.core.config import Settings
from procura.database.base import Base


def normalize_database_url(database_url: str) -> str:
    """Point bare PostgreSQL URLs at the psycopg driver.

    Args:
        database_url: URL as configured

    Returns:
        URL usable by SQLAlchemy
    """
    if database_url.startswith("postgresql+psycopg2://"):
        return database_url.replace("postgresql+psycopg2://", "postgresql+psycopg://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+psycopg://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+psycopg://", 1)
    return database_url


def create_db_engine(settings: Settings) -> Engine:
    """Create the engine backing the address cache.

    Args:
        settings: Application settings

    Returns:
        Engine: SQLAlchemy engine
    """
    database_url = normalize_database_url(settings.DATABASE_URL)
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=settings.DATABASE_ECHO,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=settings.DATABASE_ECHO,
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create session factory bound to an engine."""
    return sessionmaker(
        engine,
        class_=Session,
        expire_on_commit=False,
        autoflush=False,
    )


def init_db(engine: Engine) -> None:
    """Create the cache tables if they do not exist."""
    # Import models so they register on the metadata
    from procura.database import models  # noqa: F401

    Base.metadata.create_all(engine)
