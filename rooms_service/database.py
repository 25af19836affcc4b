from dataclasses import dataclass

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings

Base = declarative_base()


@dataclass
class AppContext:
    """
    Process-wide resources of the Rooms service.

    Created once by the application factory and stored on ``app.state``;
    the engine is disposed when the application shuts down.
    """
    settings: Settings
    engine: Engine
    session_factory: sessionmaker

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def build_engine(database_url: str) -> Engine:
    """
    Create the SQLAlchemy engine for ``database_url``.

    In-memory SQLite databases get a single shared connection so every
    session sees the same data.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def build_context(settings: Settings) -> AppContext:
    engine = build_engine(settings.database_url)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return AppContext(settings=settings, engine=engine, session_factory=session_factory)


def get_db(request: Request):
    """
    Yield a SQLAlchemy database session for the Rooms service.

    This function is used as a FastAPI dependency to provide a scoped
    session per request and ensure the session is closed afterwards.

    Yields
    ------
    Session
        Active SQLAlchemy session bound to the application's engine.
    """
    context: AppContext = request.app.state.context
    db = context.session_factory()
    try:
        yield db
    finally:
        db.close()
