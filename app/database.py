"""
Database handle. Supports SQLite (dev) and Postgres via DATABASE_URL.

A Database is created once in main.create_app, kept on app.state and disposed
at shutdown. get_db is the single dependency for DB access in the routers.
"""
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


class Database:
    """Engine plus session factory for one database URL."""

    def __init__(self, url: str):
        self.url = url
        kwargs = {}
        # SQLite needs check_same_thread=False for FastAPI; Postgres does not
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            # In-memory databases live only as long as their one connection
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, **kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def create_all(self) -> None:
        # models must be imported so their tables are registered on Base
        import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def close(self) -> None:
        self.engine.dispose()


def get_db(request: Request):
    """FastAPI dependency: yields a DB session and closes it after the request."""
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
