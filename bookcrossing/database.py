"""
Database Configuration Module

SQLAlchemy 2.0 setup shared by the three services.

Each service owns its own engine (and therefore its own connection pool)
and creates only the tables it owns. The Database object is built by the
application factory and stored on app.state, so tests can hand every
service the same in-memory engine.

Session Management Pattern
==========================
"Session per request":
1. Request arrives -> get_db() opens a session from the service's pool
2. The handler uses it for its statements and commits
3. The session is closed in a finally block on every exit path
"""

from collections.abc import Generator, Sequence

from fastapi import Request
from sqlalchemy import Engine, Table, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from bookcrossing.config import Settings, get_settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

        class Book(Base):
            __tablename__ = "books"
            ...
    """
    pass


def build_engine(settings: Settings) -> Engine:
    """
    Create the engine for one service.

    SQLite (used for local runs and tests) does not take pool sizing
    arguments, so those are only passed for server databases.
    """
    if settings.database_url.startswith("sqlite"):
        return create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )

    return create_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,  # Verify connections are alive before using
        echo=settings.debug,  # Log SQL in debug mode
    )


class Database:
    """
    A service's private partition of the relational store.

    Usage:
        database = Database(engine=create_engine("sqlite://"))
        database.create_tables([Book.__table__])
        with database.session() as db:
            ...
    """

    def __init__(
        self,
        settings: Settings | None = None,
        engine: Engine | None = None,
    ) -> None:
        self.engine = engine or build_engine(settings or get_settings())
        self.session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
        )

    def session(self) -> Session:
        """Open a new session bound to this service's engine."""
        return self.session_factory()

    def create_tables(self, tables: Sequence[Table]) -> None:
        """
        Create the given tables if they do not exist yet.

        checkfirst=True gives CREATE TABLE IF NOT EXISTS semantics; there
        are no migrations beyond this.
        """
        Base.metadata.create_all(bind=self.engine, tables=list(tables), checkfirst=True)

    def dispose(self) -> None:
        """Close every pooled connection."""
        self.engine.dispose()


# =============================================================================
# Dependency Injection
# =============================================================================
def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI.

    Code before yield acquires a session from the service's pool, code
    after yield releases it. The finally block guarantees the release on
    error paths too, so the pool cannot be exhausted by failing requests.

    Yields:
        SQLAlchemy Session instance
    """
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()
