from contextlib import contextmanager
from typing import Generator, Iterator, Optional
import logging

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from .config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """Handle on the shared store.

    Created once per process at startup and injected through ``app.state``.
    ``connect`` builds the engine and pool, ``close`` disposes of them.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Optional[Engine] = None
        self.session_factory: Optional[sessionmaker] = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def connect(self) -> "Database":
        if self.engine is not None:
            return self

        if self.is_sqlite:
            self.engine = create_engine(
                self.url,
                echo=self.echo,
                connect_args={
                    "check_same_thread": False,
                    "timeout": settings.DB_LOCK_TIMEOUT_SECONDS,
                },
            )
            _serialize_sqlite_writers(self.engine)
        else:
            self.engine = create_engine(
                self.url,
                echo=self.echo,
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
                pool_recycle=1800,  # Recycle connections after 30 minutes
                pool_pre_ping=True,
            )

        self.session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )
        logger.info(f"Connected to {self.engine.dialect.name} database")
        return self

    def health_check(self) -> bool:
        if self.engine is None:
            return False
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.error(f"Database health check failed: {exc}")
            return False

    def create_all(self):
        """Create tables for every model registered on ``Base``."""
        from .. import models  # noqa: F401

        Base.metadata.create_all(bind=self._require_engine())

    def drop_all(self):
        from .. import models  # noqa: F401

        Base.metadata.drop_all(bind=self._require_engine())

    def new_session(self) -> Session:
        if self.session_factory is None:
            raise RuntimeError("Database is not connected")
        return self.session_factory()

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.new_session()
        try:
            yield db
        finally:
            db.close()

    def close(self):
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self.session_factory = None

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise RuntimeError("Database is not connected")
        return self.engine


def _serialize_sqlite_writers(engine: Engine):
    # pysqlite defers BEGIN until the first write, which breaks SAVEPOINT and
    # lets two readers race to upgrade their locks. Take the write lock up front.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")


# Database dependency
def get_db(request: Request) -> Generator[Session, None, None]:
    """Get database session."""
    database: Database = request.app.state.database
    db = database.new_session()
    try:
        yield db
    finally:
        db.close()


# Redis dependency
def get_redis(request: Request):
    """Get Redis client."""
    return request.app.state.redis
