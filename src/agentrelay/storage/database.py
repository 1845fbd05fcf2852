"""SQLite engine shared by the workflow state and usage counter stores."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

if TYPE_CHECKING:
    from collections.abc import Generator

    from sqlalchemy.engine import Engine

DEFAULT_DB_PATH = Path.home() / ".agentrelay" / "agentrelay.db"


def _sqlite_engine(db_path: Path) -> Engine:
    if str(db_path) == ":memory:":
        # One shared connection, otherwise every session sees an empty database
        return create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{db_path}")


class Database:
    """Owns the engine and hands out transactional sessions."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path) if db_path is not None else DEFAULT_DB_PATH
        self._engine = _sqlite_engine(self.db_path)
        self._sessions = sessionmaker(bind=self._engine)

    def create_tables(self) -> None:
        Base.metadata.create_all(self._engine)

    def drop_tables(self) -> None:
        Base.metadata.drop_all(self._engine)

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Session committed when the block exits, rolled back if it raises."""
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """Close pooled connections."""
        self._engine.dispose()


def init_database(db_path: Path | str | None = None) -> Database:
    """Open the database (``~/.agentrelay/agentrelay.db`` by default) with its tables created."""
    db = Database(db_path)
    db.create_tables()
    return db
