from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from order_engine.core_settings import Settings
from order_engine.domain.models import Base


class Database:
    """Store handle: owns the engine and session factory for one process.

    Opened at startup and closed at shutdown by the application lifespan.
    """

    def __init__(self, settings: Settings):
        self.url = settings.database_url
        self.engine: Optional[Engine] = None
        self.session_factory: Optional[sessionmaker] = None

    def open(self) -> "Database":
        connect_args = {}
        if self.url.startswith("sqlite"):
            # Sessions are used from the request thread pool; wait on writer locks
            connect_args = {"check_same_thread": False, "timeout": 30}
        self.engine = create_engine(self.url, echo=False, future=True, pool_pre_ping=True, connect_args=connect_args)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False)
        return self

    def init_models(self) -> None:
        Base.metadata.create_all(self.engine)

    def session(self) -> Session:
        if self.session_factory is None:
            raise RuntimeError("Database is not open")
        return self.session_factory()

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.session_factory = None


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Iterator[Session]:
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()
