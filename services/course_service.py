# services/course_service.py
"""
CourseService — the single entry point used by the CLI and any front end.

Wires the repositories (groups, participants, archives) and the numbering
service together. Every public method runs under one re-entrant lock, so
operations from different threads never interleave: each one finishes its
own session and commit before the next starts.
"""

from __future__ import annotations

import functools
import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from database.crud.archives_crud import ArchivedSummary, ArchivesCRUD
from database.crud.groups_crud import Activated, ActivationResult, GroupsCRUD
from database.crud.participants_crud import BulkResult, ParticipantsCRUD
from database.models import get_session_local
from database.models.group import Group, GroupStatus
from database.models.participant import Participant
from database.models.yearly_archive import YearlyArchive
from services.numbering_service import Counters, NumberingService
from services.period_sync_service import SyncReport

logger = logging.getLogger(__name__)


def _serialized(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


@dataclass
class StartupReport:
    demoted: int = 0
    counters: Optional[Counters] = None
    sync: Optional[SyncReport] = None
    gaps: List[str] = field(default_factory=list)


class CourseService:

    def __init__(self, session_factory=None, *, current_user=None):
        self.session_factory = session_factory or get_session_local
        self.current_user = current_user
        self.groups = GroupsCRUD(self.session_factory)
        self.participants = ParticipantsCRUD(self.session_factory)
        self.archives = ArchivesCRUD(self.session_factory)
        self._lock = threading.RLock()

    # ── participants ─────────────────────────────────────────────────────

    @_serialized
    def add_participant(self, data: Dict[str, Any], today: Optional[date] = None) -> Participant:
        return self.participants.add_participant(data, today, current_user=self.current_user)

    @_serialized
    def update_participant(self, participant_id: str, patch: Dict[str, Any]) -> Participant:
        return self.participants.update_participant(participant_id, patch, current_user=self.current_user)

    @_serialized
    def delete_participant(self, participant_id: str) -> bool:
        return self.participants.delete_participant(participant_id, current_user=self.current_user)

    @_serialized
    def bulk_set_flag(self, ids: Iterable[str], flag: str, value: bool) -> BulkResult:
        return self.participants.bulk_set_flag(ids, flag, value, current_user=self.current_user)

    @_serialized
    def bulk_set_completed(self, ids: Iterable[str]) -> BulkResult:
        return self.participants.bulk_set_completed(ids, current_user=self.current_user)

    @_serialized
    def list_participants(self, period_start: Optional[date] = None) -> List[Participant]:
        return self.participants.list_participants(period_start)

    # ── group lifecycle ──────────────────────────────────────────────────

    @_serialized
    def activate_group(self, group_id: str) -> ActivationResult:
        return self.groups.activate(group_id, current_user=self.current_user)

    @_serialized
    def confirm_swap_and_activate(self, group_id: str) -> Activated:
        return self.groups.confirm_swap(group_id, current_user=self.current_user)

    @_serialized
    def close_active_group(self, group_id: Optional[str] = None) -> Group:
        return self.groups.close(group_id, current_user=self.current_user)

    @_serialized
    def demote_active_to_planned(self) -> Group:
        return self.groups.demote_active_to_planned(current_user=self.current_user)

    @_serialized
    def reopen_group(self, group_id: str) -> ActivationResult:
        return self.groups.reopen(group_id, current_user=self.current_user)

    @_serialized
    def lock_group(self, group_id: str) -> Group:
        return self.groups.lock(group_id, current_user=self.current_user)

    @_serialized
    def unlock_group(self, group_id: str) -> Group:
        return self.groups.unlock(group_id, current_user=self.current_user)

    @_serialized
    def list_groups(self, status: Optional[GroupStatus] = None) -> List[Group]:
        return self.groups.list_groups(status)

    @_serialized
    def get_active_group(self) -> Optional[Group]:
        return self.groups.get_active()

    @_serialized
    def sync_periods(self, today: Optional[date] = None) -> SyncReport:
        return self.groups.sync_periods(today)

    # ── archive ──────────────────────────────────────────────────────────

    @_serialized
    def archive_year(self, year: int) -> ArchivedSummary:
        return self.archives.archive_year(year, current_user=self.current_user)

    @_serialized
    def restore_group(self, year: int, group_number: int) -> Group:
        return self.archives.restore_group(year, group_number, current_user=self.current_user)

    @_serialized
    def list_archives(self) -> List[YearlyArchive]:
        return self.archives.list_archives()

    # ── numbering ────────────────────────────────────────────────────────

    @_serialized
    def get_counters(self) -> Counters:
        with self.groups.get_session() as session:
            counters = NumberingService.read_counters(session)
            session.commit()    # keeps a freshly seeded row
            return counters

    @_serialized
    def find_number_gaps(self) -> List[str]:
        with self.groups.get_session() as session:
            return NumberingService.find_gaps(session)

    @_serialized
    def is_number_available(self, number: str, exclude_id: Optional[str] = None) -> bool:
        with self.groups.get_session() as session:
            return NumberingService.is_number_available(session, number, exclude_id=exclude_id)

    # ── startup ──────────────────────────────────────────────────────────

    @_serialized
    def startup_check(self, today: Optional[date] = None) -> StartupReport:
        """
        Integrity pass run once per start:
          - counters row present (seeded from configuration otherwise)
          - at most one Active group
          - groups reconciled with participants and the lookahead window
          - numbering gaps reported, never auto-fixed
        """
        report = StartupReport()
        report.counters = self.get_counters()
        report.demoted = self.groups.ensure_single_active()
        report.sync = self.groups.sync_periods(today)
        report.gaps = self.find_number_gaps()
        if report.gaps:
            logger.warning(f"Numbering gaps detected: {', '.join(report.gaps)}")
        logger.info(f"Startup check: counters {report.counters.prefix}/{report.counters.seq}, "
                    f"{report.demoted} extra active group(s) demoted")
        return report
