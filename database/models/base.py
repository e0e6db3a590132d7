"""
database/models/base.py
========================
Single source of truth for Base, the Engine and the SessionFactory.

Principles:
  - exactly one Base across the project
  - exactly one Engine (singleton), never one per call
  - get_session_local() always returns the same sessionmaker
  - check_same_thread=False : CourseService serializes access with its own
                              lock, callers may sit on any thread
  - expire_on_commit=False  : returned records stay readable after the
                              session that loaded them is closed
"""

from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy import create_engine

# ─── Singleton ──────────────────────────────────────────────────────────────
Base = declarative_base()

_engine       = None
_SessionLocal = None


def get_engine():
    """The process-wide engine, created on first use."""
    global _engine
    if _engine is None:
        from database.db_utils import get_db_path
        _engine = create_engine(
            f"sqlite:///{get_db_path()}",
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
        )
    return _engine


def get_session_local():
    """
    The process-wide sessionmaker.

        # inside a CRUD (through BaseCRUD.get_session):
        super().__init__(MyModel, get_session_local)   ← the callable, no ()

        # directly in a service or script:
        with get_session_local()() as session:
    """
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
    return _SessionLocal


def reset_engine():
    """
    Dispose the engine and forget the sessionmaker.
    Only needed when the database path changes at runtime.
    """
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine       = None
    _SessionLocal = None
