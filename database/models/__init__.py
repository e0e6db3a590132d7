from .base import Base, get_engine, get_session_local

# ---- Models ----------------------------------------------------------------
from .audit_log import AuditLog
from .group import Group, GroupStatus
from .participant import Participant
from .sequence_counters import SequenceCounters
from .yearly_archive import YearlyArchive

__all__ = [
    # session / base
    "Base", "get_engine", "get_session_local",
    # models
    "AuditLog", "Group", "GroupStatus", "Participant", "SequenceCounters", "YearlyArchive",
]

import sqlite3 as _sqlite3
from sqlalchemy import event as _sa_event
from sqlalchemy.engine import Engine as _Engine


@_sa_event.listens_for(_Engine, "connect")
def _set_sqlite_pragma(dbapi_conn, _record):
    """
    Every new SQLite connection: enforce foreign keys and hand transaction
    control to SQLAlchemy so SAVEPOINTs (begin_nested) behave.
    """
    if isinstance(dbapi_conn, _sqlite3.Connection):
        dbapi_conn.isolation_level = None
        dbapi_conn.execute("PRAGMA foreign_keys = ON")


@_sa_event.listens_for(_Engine, "begin")
def _sqlite_begin(conn):
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN")


def init_db():
    """Create all tables."""
    Base.metadata.create_all(bind=get_engine())
