"""
database/crud/archives_crud.py
===============================
ArchivesCRUD — yearly archiving and single-group restore.

archive_year(year):
  guard   : nothing Active, nothing Planned starting in or before the year
  move    : Completed groups of the year and their participants become JSON
            snapshots inside the year's YearlyArchive row (created or extended)
  reset   : NumberingService.reset_yearly() marks the year boundary

restore_group(year, group_number):
  the group and its participants come back verbatim (fresh updated_at) as
  long as nothing live already uses the group number, the period or any of
  the participants' unique numbers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy import extract, or_, select

from constants import AuditActions
from database.crud.base_crud import BaseCRUD
from database.db_utils import utc_now
from database.mappers.snapshot_mapper import from_snapshot, to_snapshot
from database.models import get_session_local
from database.models.group import Group, GroupStatus
from database.models.participant import Participant
from database.models.yearly_archive import YearlyArchive
from exceptions import ArchiveNotReadyError, NotFoundError, NumberCollisionError
from services.numbering_service import Counters, NumberingService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchivedSummary:
    year: int
    archive_id: str
    groups: int
    participants: int
    counters: Optional[Counters] = None


class ArchivesCRUD(BaseCRUD):

    def __init__(self, session_factory=None):
        super().__init__(YearlyArchive, session_factory or get_session_local)

    # ── guard ────────────────────────────────────────────────────────────

    @staticmethod
    def blocking_groups(session, year: int) -> List[Group]:
        """Groups that must be finished before `year` can be archived."""
        return list(session.execute(
            select(Group).where(or_(
                Group.status == GroupStatus.ACTIVE,
                (Group.status == GroupStatus.PLANNED) & (Group.period_start <= date(year, 12, 31)),
            )).order_by(Group.period_start)
        ).scalars().all())

    # ── archive ──────────────────────────────────────────────────────────

    def archive_year(self, year: int, *, current_user=None) -> ArchivedSummary:
        with self.get_session() as session:
            blocking = self.blocking_groups(session, year)
            if blocking:
                raise ArchiveNotReadyError(
                    year, [f"{g.period_start} ({g.status.value})" for g in blocking],
                )

            groups = session.execute(
                select(Group).where(
                    Group.status == GroupStatus.COMPLETED,
                    extract("year", Group.period_start) == year,
                ).order_by(Group.period_start)
            ).scalars().all()
            periods = [g.period_start for g in groups]
            participants = []
            if periods:
                participants = session.execute(
                    select(Participant).where(Participant.period_start.in_(periods))
                    .order_by(Participant.period_start, Participant.created_at, Participant.id)
                ).scalars().all()

            archive = session.get(YearlyArchive, year)
            if archive is None:
                archive = YearlyArchive(year=year, groups=[], participants=[])
                session.add(archive)

            # JSON columns are reassigned, never mutated in place
            archive.groups = list(archive.groups or []) + [to_snapshot(g) for g in groups]
            archive.participants = list(archive.participants or []) + [to_snapshot(p) for p in participants]
            archive.archived_at = utc_now()

            for p in participants:
                session.delete(p)
            for g in groups:
                session.delete(g)
            session.flush()

            counters = NumberingService.reset_yearly(session, year)

            self._audit(
                session, action=AuditActions.ARCHIVE, record_id=archive.archive_id,
                after={"year": year, "groups": len(groups), "participants": len(participants)},
                user=current_user,
            )
            session.commit()
            logger.info(f"Archived {year}: {len(groups)} group(s), "
                        f"{len(participants)} participant(s); counters {counters.prefix}/{counters.seq}")
            return ArchivedSummary(year, archive.archive_id, len(groups), len(participants), counters)

    # ── restore ──────────────────────────────────────────────────────────

    def restore_group(self, year: int, group_number: int, *, current_user=None) -> Group:
        with self.get_session() as session:
            archive = session.get(YearlyArchive, year)
            if archive is None:
                raise NotFoundError("Archive", year)

            snapshot = next(
                (g for g in archive.groups or [] if g.get("group_number") == group_number), None,
            )
            if snapshot is None:
                raise NotFoundError("Archived group", f"{year}/#{group_number}")

            period = snapshot["period_start"]
            members = [p for p in archive.participants or [] if p.get("period_start") == period]
            group = from_snapshot(Group, snapshot)

            # collisions
            if session.execute(
                select(Group.id).where(Group.group_number == group_number)
            ).first() is not None:
                raise NumberCollisionError(f"Group #{group_number} already exists")
            if session.execute(
                select(Group.id).where(Group.period_start == group.period_start)
            ).first() is not None:
                raise NumberCollisionError(f"A group for period {group.period_start} already exists")
            numbers = [p["unique_number"] for p in members if p.get("unique_number")]
            if numbers:
                taken = session.execute(
                    select(Participant.unique_number).where(Participant.unique_number.in_(numbers))
                ).scalars().all()
                if taken:
                    raise NumberCollisionError(
                        f"Unique number(s) already in use: {', '.join(sorted(taken))}"
                    )

            now = utc_now()
            group.updated_at = now
            session.add(group)
            for data in members:
                p = from_snapshot(Participant, data)
                p.updated_at = now
                session.add(p)
            session.flush()

            archive.groups = [g for g in archive.groups if g is not snapshot]
            archive.participants = [p for p in archive.participants if p.get("period_start") != period]
            if not archive.groups and not archive.participants:
                session.delete(archive)

            self._audit(
                session, action=AuditActions.RESTORE, record_id=group.id,
                after={"year": year, "group_number": group_number, "participants": len(members)},
                user=current_user,
            )
            session.commit()
            logger.info(f"Restored group #{group_number} ({group.period_start}) from {year} "
                        f"with {len(members)} participant(s)")
            return group

    # ── queries ──────────────────────────────────────────────────────────

    def get_archive(self, year: int) -> Optional[YearlyArchive]:
        with self.get_session() as session:
            return session.get(YearlyArchive, year)

    def list_archives(self) -> List[YearlyArchive]:
        with self.get_session() as session:
            return list(session.execute(
                select(YearlyArchive).order_by(YearlyArchive.year)
            ).scalars().all())
