"""
tests/conftest.py
=================
Shared pytest fixtures — in-memory SQLite, no production DB touched.
"""
import itertools
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool


# ─── Engine (session-scoped) ──────────────────────────────────────────────────

@pytest.fixture(scope="session")
def db_engine():
    # importing the package registers the SQLite connect/begin listeners
    from database.models import Base
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    return engine


# ─── Per-test session (rolled back) ──────────────────────────────────────────

@pytest.fixture
def db_session(db_engine):
    """
    Each test runs inside one outer transaction that is rolled back on
    teardown. The session works in SAVEPOINTs, so the CRUD commit() and the
    CRUD rollback-on-error only touch the current operation.
    """
    connection = db_engine.connect()
    outer = connection.begin()
    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )

    yield session

    session.close()
    outer.rollback()
    connection.close()


# ─── session_factory for CRUD injection ──────────────────────────────────────

@pytest.fixture
def session_factory(db_session):
    """Returns lambda → db_session; BaseCRUD leaves shared sessions open."""
    db_session._is_shared_test_session = True
    yield lambda: db_session
    db_session._is_shared_test_session = False


# ─── Clock ───────────────────────────────────────────────────────────────────

class FrozenClock:
    def __init__(self, today: date):
        self.today = today


@pytest.fixture(autouse=True)
def clock(monkeypatch):
    """database.db_utils.today() frozen on Monday 2024-01-01; move it with clock.today = ..."""
    frozen = FrozenClock(date(2024, 1, 1))
    monkeypatch.setattr("database.db_utils.today", lambda: frozen.today)
    return frozen


@pytest.fixture(autouse=True)
def _default_counters(monkeypatch):
    """Counters always seed at 3530/0 regardless of the developer's environment."""
    monkeypatch.delenv("NUMBERING_INITIAL_PREFIX", raising=False)
    monkeypatch.delenv("NUMBERING_INITIAL_SEQ", raising=False)


# ─── Repositories / service ──────────────────────────────────────────────────

@pytest.fixture
def groups_crud(session_factory):
    from database.crud.groups_crud import GroupsCRUD
    return GroupsCRUD(session_factory)


@pytest.fixture
def participants_crud(session_factory):
    from database.crud.participants_crud import ParticipantsCRUD
    return ParticipantsCRUD(session_factory)


@pytest.fixture
def archives_crud(session_factory):
    from database.crud.archives_crud import ArchivesCRUD
    return ArchivesCRUD(session_factory)


@pytest.fixture
def service(session_factory, clock):
    from services.course_service import CourseService
    return CourseService(session_factory)


# ─── Model factories ─────────────────────────────────────────────────────────

@pytest.fixture
def make_group(db_session):
    from database.models.group import Group, GroupStatus
    from utils.date_utils import period_end

    def _f(period_start, status=GroupStatus.PLANNED, group_number=None, is_locked=False, **kw):
        g = Group(
            period_start=period_start,
            period_end=period_end(period_start),
            status=status,
            group_number=group_number,
            **kw,
        )
        if is_locked:
            g.is_locked = True
        db_session.add(g)
        db_session.commit()
        return g
    return _f


@pytest.fixture
def make_participant(db_session):
    """Inserts a participant directly; created_at strictly increases per call."""
    from database.models.participant import Participant
    from utils.date_utils import period_end
    _n = itertools.count(1)
    base = datetime(2023, 12, 1, 9, 0, 0)

    def _f(period_start, unique_number="", person_name=None, **kw):
        n = next(_n)
        kw.setdefault("medical_exam_date", period_start - timedelta(days=3))
        kw.setdefault("created_at", base + timedelta(minutes=n))
        p = Participant(
            person_name=person_name or f"Trainee {n}",
            period_start=period_start,
            period_end=period_end(period_start),
            unique_number=unique_number,
            **kw,
        )
        db_session.add(p)
        db_session.commit()
        return p
    return _f


@pytest.fixture
def set_counters(db_session):
    """Force the counters row to (prefix, seq)."""
    from services.numbering_service import NumberingService

    def _f(prefix, seq):
        current = NumberingService.read_counters(db_session)
        saved = NumberingService.save_counters(db_session, current, prefix, seq)
        db_session.commit()
        return saved
    return _f
