# services/period_sync_service.py
"""
Period Synchronizer
===================
Reconciles the groups table with the periods participants actually use plus
a forward-looking window of placeholders. Runs after every participant
add/update/delete and after every group transition.

  1. repair   : an Active group without a number gets max + 1
  2. required : every participant period, the base period (the Active group's,
                or the next Monday when nothing is Active) and the
                Course.LOOKAHEAD_PERIODS periods after it
  3. create   : missing required periods become Planned groups. On an empty
                system the very first group is created Active instead, on the
                earliest participant period (or the next Monday), and its
                participants are numbered
  4. prune    : Planned groups outside the required set have no participants
                by construction and are deleted

Best-effort: the whole run sits in a SAVEPOINT. Any failure is logged and
rolled back to it; the caller's own changes are untouched and nothing is
raised. The next run corrects whatever was left inconsistent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from sqlalchemy import select

from database import db_utils
from database.crud.groups_crud import find_active_group, next_group_number
from database.models.group import Group, GroupStatus
from database.models.participant import Participant
from services.numbering_service import NumberingService
from utils.date_utils import lookahead_periods, next_monday, period_end

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    created: List[date] = field(default_factory=list)
    pruned: List[date] = field(default_factory=list)
    repaired_number: Optional[int] = None
    first_active: Optional[date] = None
    failed: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.created or self.pruned or self.repaired_number)


class PeriodSyncService:

    @staticmethod
    def sync_periods(db_session, today: Optional[date] = None) -> SyncReport:
        """Run one reconciliation pass inside a savepoint. Never raises."""
        try:
            with db_session.begin_nested():
                report = PeriodSyncService._run(db_session, today or db_utils.today())
        except Exception as e:
            logger.warning(f"Period sync failed (non-critical): {e}", exc_info=True)
            return SyncReport(failed=True)

        if report.changed:
            logger.info(
                f"Period sync: created={[str(d) for d in report.created]} "
                f"pruned={[str(d) for d in report.pruned]} "
                f"repaired_number={report.repaired_number}"
            )
        return report

    @staticmethod
    def required_periods(db_session, today: date) -> set:
        active = find_active_group(db_session)
        base = active.period_start if active is not None else next_monday(today)
        used = db_session.execute(select(Participant.period_start).distinct()).scalars().all()
        return set(used) | set(lookahead_periods(base))

    @staticmethod
    def _run(db_session, today: date) -> SyncReport:
        report = SyncReport()
        db_session.flush()

        # ① repair
        active = find_active_group(db_session)
        if active is not None and active.group_number is None:
            active.group_number = next_group_number(db_session)
            active.updated_at = db_utils.utc_now()
            report.repaired_number = active.group_number

        groups = db_session.execute(select(Group)).scalars().all()
        existing = {g.period_start: g for g in groups}
        now = db_utils.utc_now()

        # ② very first group
        if not existing:
            used = db_session.execute(select(Participant.period_start).distinct()).scalars().all()
            start = min(set(used) | {next_monday(today)})
            group = Group(
                period_start=start,
                period_end=period_end(start),
                status=GroupStatus.ACTIVE,
                group_number=next_group_number(db_session),
                created_at=now,
                updated_at=now,
                activated_at=now,
            )
            db_session.add(group)
            db_session.flush()
            existing[start] = group
            report.created.append(start)
            report.first_active = start
            NumberingService.allocate_batch(db_session, start)

        # ③ required set, missing periods become Planned
        required = PeriodSyncService.required_periods(db_session, today)
        for start in sorted(required - set(existing)):
            db_session.add(Group(
                period_start=start,
                period_end=period_end(start),
                status=GroupStatus.PLANNED,
                created_at=now,
                updated_at=now,
            ))
            report.created.append(start)
        db_session.flush()

        # ④ prune
        for start, group in existing.items():
            if group.status is GroupStatus.PLANNED and start not in required:
                db_session.delete(group)
                report.pruned.append(start)
        db_session.flush()

        return report
