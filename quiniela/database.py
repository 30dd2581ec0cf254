import threading
from contextlib import contextmanager
from typing import Dict

from sqlmodel import SQLModel, Session, create_engine
from .config import DATABASE_URL

# Create engine with SQLite
engine = create_engine(
    DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)


def create_db_and_tables():
    """Create all database tables."""
    from . import models  # noqa: F401  (register tables on the metadata)

    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session


# One lock per season seen; the registry only grows for the life of the process
_season_locks: Dict[int, threading.Lock] = {}
_season_locks_guard = threading.Lock()


@contextmanager
def season_lock(season_id: int):
    """
    Serialize standings/bracket recomputation for one season.

    A recompute reads results and manual overrides and writes standings,
    rankings and slots; two of them interleaving on the same season could
    drop an administrator's decision.
    """
    with _season_locks_guard:
        lock = _season_locks.setdefault(season_id, threading.Lock())
    with lock:
        yield
