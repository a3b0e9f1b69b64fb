"""Database connection, declarative base and error translation."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by every mapped model."""


class RecordNotFoundError(LookupError):
    """No row matched the lookup."""

    def __init__(self, message: str = "Record not found.") -> None:
        super().__init__(message)


class DuplicatedEntityError(ValueError):
    """A row with the same key already exists."""

    def __init__(self, message: str = "Duplicate key found.") -> None:
        super().__init__(message)


class NotAllowedError(PermissionError):
    """The caller may not perform the operation."""

    def __init__(self, message: str = "Operation is not allowed.") -> None:
        super().__init__(message)


class WrongValuesError(ValueError):
    """The supplied values are not valid."""

    def __init__(self, message: str = "provided values are not valid.") -> None:
        super().__init__(message)


_DUPLICATE_KEY = re.compile(r"\(SQLSTATE 23505\)\Z")
_UNIQUE_VIOLATION = "23505"


def is_duplicate_key_error(error: BaseException) -> bool:
    """Tell whether an error reports a unique-key violation."""
    if _DUPLICATE_KEY.search(str(error)):
        return True
    if isinstance(error, IntegrityError):
        original = error.orig
        if _UNIQUE_VIOLATION in (
            getattr(original, "pgcode", None),
            getattr(original, "sqlstate", None),
        ):
            return True
        return "UNIQUE constraint failed" in str(original)
    return False


def convert_error(error: BaseException | None) -> BaseException | None:
    """Map a database error onto the package's own error types."""
    if error is None:
        return None
    if isinstance(error, (RecordNotFoundError, DuplicatedEntityError)):
        return error
    if isinstance(error, NoResultFound):
        return RecordNotFoundError()
    if is_duplicate_key_error(error):
        return DuplicatedEntityError()
    return error


class Database:
    """A lazily connected SQLite or PostgreSQL store."""

    def __init__(self, db_type: str, connection_path: str) -> None:
        self.db_type = db_type
        self.connection_path = connection_path
        self.engine: Engine | None = None
        self._sessions: sessionmaker[Session] | None = None

    def connect(self) -> None:
        """Open the connection and create any missing tables."""
        if self.db_type == "sqlite3":
            engine = self._sqlite_engine()
        elif self.db_type == "postgres":
            engine = self._postgres_engine()
        else:
            raise ValueError("invalid dbtype")
        with engine.connect():
            pass
        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as exc:
            logger.warning("schema migration failed: %s", exc)
        self.engine = engine
        self._sessions = sessionmaker(engine, expire_on_commit=False)

    def _sqlite_engine(self) -> Engine:
        path = self.connection_path
        if path in ("", ":memory:"):
            return create_engine(
                "sqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(f"sqlite:///{path}")

    def _postgres_engine(self) -> Engine:
        path = self.connection_path
        if "://" in path:
            scheme, rest = path.split("://", 1)
            if scheme == "postgres":
                path = f"postgresql://{rest}"
            return create_engine(path)
        return create_engine("postgresql+psycopg2://", connect_args={"dsn": path})

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on error."""
        if self._sessions is None:
            raise RuntimeError("database is not connected")
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception as exc:
            session.rollback()
            converted = convert_error(exc)
            if converted is exc:
                raise
            raise converted from exc
        finally:
            session.close()