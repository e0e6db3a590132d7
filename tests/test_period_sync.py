"""
tests/test_period_sync.py
==========================
PeriodSyncService: first group, placeholders, pruning, repair, and the
best-effort guarantee.
"""
from datetime import date

from sqlalchemy import select

from database.models.group import Group, GroupStatus
from database.models.participant import Participant
from services.period_sync_service import PeriodSyncService

WEEK1 = date(2024, 1, 1)
WEEK2 = date(2024, 1, 8)
WEEK3 = date(2024, 1, 15)
WEEK4 = date(2024, 1, 22)


def _groups(db_session):
    return {g.period_start: g for g in db_session.execute(select(Group)).scalars()}


class TestFirstGroup:

    def test_empty_system(self, groups_crud, db_session):
        report = groups_crud.sync_periods(today=WEEK1)

        groups = _groups(db_session)
        assert sorted(groups) == [WEEK1, WEEK2, WEEK3]
        assert groups[WEEK1].status is GroupStatus.ACTIVE
        assert groups[WEEK1].group_number == 1
        assert groups[WEEK1].period_end == WEEK2
        assert groups[WEEK2].status is GroupStatus.PLANNED
        assert groups[WEEK3].status is GroupStatus.PLANNED
        assert report.first_active == WEEK1
        assert report.created == [WEEK1, WEEK2, WEEK3]

    def test_mid_week_today_uses_next_monday(self, groups_crud, db_session):
        groups_crud.sync_periods(today=date(2024, 1, 3))
        assert sorted(_groups(db_session)) == [WEEK2, WEEK3, WEEK4]

    def test_earliest_participant_period_becomes_active(self, groups_crud, make_participant, db_session):
        early = make_participant(WEEK2)
        late = make_participant(WEEK3)

        groups_crud.sync_periods(today=date(2024, 1, 3))

        groups = _groups(db_session)
        assert groups[WEEK2].status is GroupStatus.ACTIVE
        assert groups[WEEK3].status is GroupStatus.PLANNED
        assert early.unique_number == "3531-1"
        assert late.unique_number == ""

    def test_clock_default(self, groups_crud, db_session, clock):
        clock.today = WEEK2
        groups_crud.sync_periods()
        assert _groups(db_session)[WEEK2].status is GroupStatus.ACTIVE


class TestPlaceholders:

    def test_lookahead_after_active(self, groups_crud, make_group, db_session):
        make_group(WEEK2, status=GroupStatus.ACTIVE, group_number=1)
        groups_crud.sync_periods(today=WEEK1)
        assert sorted(_groups(db_session)) == [WEEK2, WEEK3, WEEK4]

    def test_participant_period_gets_group(self, groups_crud, make_group, make_participant, db_session):
        make_group(WEEK1, status=GroupStatus.ACTIVE, group_number=1)
        far = date(2024, 3, 4)
        make_participant(far)

        groups_crud.sync_periods(today=WEEK1)

        assert _groups(db_session)[far].status is GroupStatus.PLANNED

    def test_idempotent(self, groups_crud):
        groups_crud.sync_periods(today=WEEK1)
        assert not groups_crud.sync_periods(today=WEEK1).changed


class TestPrune:

    def test_stray_planned_removed(self, groups_crud, make_group, db_session):
        make_group(WEEK1, status=GroupStatus.ACTIVE, group_number=1)
        stray = date(2024, 2, 5)
        make_group(stray)

        report = groups_crud.sync_periods(today=WEEK1)

        assert stray in report.pruned
        assert stray not in _groups(db_session)

    def test_planned_with_participants_kept(self, groups_crud, make_group, make_participant, db_session):
        make_group(WEEK1, status=GroupStatus.ACTIVE, group_number=1)
        busy = date(2024, 2, 12)
        make_group(busy)
        make_participant(busy)

        groups_crud.sync_periods(today=WEEK1)

        assert busy in _groups(db_session)

    def test_completed_never_pruned(self, groups_crud, make_group, db_session):
        old = date(2023, 6, 5)
        make_group(old, status=GroupStatus.COMPLETED, group_number=1, is_locked=True)
        make_group(WEEK1, status=GroupStatus.ACTIVE, group_number=2)

        groups_crud.sync_periods(today=WEEK1)

        assert old in _groups(db_session)


class TestRepair:

    def test_active_without_number(self, groups_crud, make_group, db_session):
        make_group(date(2023, 12, 4), status=GroupStatus.COMPLETED, group_number=4)
        broken = make_group(WEEK1, status=GroupStatus.ACTIVE)

        report = groups_crud.sync_periods(today=WEEK1)

        assert broken.group_number == 5
        assert report.repaired_number == 5


class TestBestEffort:

    def test_failure_is_swallowed_and_rolled_back(self, db_session, monkeypatch):
        pending = Participant(
            person_name="Pending", medical_exam_date=date(2023, 12, 28),
            period_start=WEEK1, period_end=WEEK2,
        )
        db_session.add(pending)
        db_session.flush()

        def boom(session, today):
            session.add(Group(period_start=WEEK3, period_end=WEEK4, status=GroupStatus.PLANNED))
            session.flush()
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(PeriodSyncService, "_run", staticmethod(boom))

        report = PeriodSyncService.sync_periods(db_session, WEEK1)

        assert report.failed
        assert db_session.get(Participant, pending.id) is not None
        assert _groups(db_session) == {}

    def test_required_periods(self, db_session, make_group, make_participant):
        make_group(WEEK2, status=GroupStatus.ACTIVE, group_number=1)
        make_participant(date(2024, 5, 6))
        required = PeriodSyncService.required_periods(db_session, WEEK1)
        assert required == {WEEK2, WEEK3, WEEK4, date(2024, 5, 6)}
