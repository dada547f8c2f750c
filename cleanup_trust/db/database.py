"""
Database connection and session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.dialects import postgresql, sqlite
from cleanup_trust.config import settings


def build_engine(database_url: str):
    """Create an engine; SQLite is accepted for local runs and tests."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def insert_ignore(db: Session, model):
    """
    INSERT ... ON CONFLICT DO NOTHING for the session's dialect.

    Unique constraints decide races; callers add ``.returning(...)`` to learn
    whether their row won.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model).on_conflict_do_nothing()
    if dialect == "sqlite":
        return sqlite.insert(model).on_conflict_do_nothing()
    raise NotImplementedError(f"insert_ignore not supported for dialect {dialect}")

