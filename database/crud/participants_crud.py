"""
database/crud/participants_crud.py
===================================
ParticipantsCRUD — trainee enrollments.

Every mutation follows the same order:
  1. lock check (Completed + locked group → LockedGroupError, nothing else runs)
  2. field validation (required fields, medical validity, manual number)
  3. write + flush
  4. number bookkeeping (issue in the Active period, release on leave/delete)
  5. period synchronization (best-effort, never raises)
  6. audit row, single commit
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select

from constants import AuditActions, ParticipantFlags
from database.crud.base_crud import BaseCRUD
from database.crud.groups_crud import check_period_writable, find_group_by_period
from database.db_utils import utc_now
from database.models import get_session_local
from database.models.group import Group, GroupStatus
from database.models.participant import Participant
from exceptions import (
    DuplicateNumberError, InvalidTransitionError, InvalidValueError, LockedGroupError,
    MedicalExpiredError, MissingFieldError, NotFoundError,
)
from services.numbering_service import NumberingService
from services.period_sync_service import PeriodSyncService
from utils.date_utils import compute_period, is_medical_valid_for_period, to_date

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("person_name", "company_name", "national_id", "birth_place", "citizenship")


@dataclass
class BulkResult:
    success: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


def _as_date(value, field_name: str) -> date:
    try:
        return to_date(value)
    except (TypeError, ValueError):
        raise InvalidValueError(field_name, value, "expected a date (YYYY-MM-DD)")


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class ParticipantsCRUD(BaseCRUD):

    def __init__(self, session_factory=None):
        super().__init__(Participant, session_factory or get_session_local)

    # ── helpers ──────────────────────────────────────────────────────────

    def _load(self, session, participant_id: str) -> Participant:
        p = session.get(Participant, participant_id)
        if p is None:
            raise NotFoundError("Participant", participant_id)
        return p

    def _load_group(self, session, group_id: str) -> Group:
        group = session.get(Group, group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        return group

    @staticmethod
    def _check_joinable(group: Optional[Group]):
        """Lock first; an unlocked Completed group only takes corrections."""
        if group is None:
            return
        if group.is_read_only:
            raise LockedGroupError(group.group_number, group.period_start)
        if group.status is GroupStatus.COMPLETED:
            raise InvalidTransitionError(
                f"Group #{group.group_number} is completed: it accepts corrections only",
                current=group.status.value, target="join",
            )

    @staticmethod
    def _check_medical(medical: date, period_start: date):
        if not is_medical_valid_for_period(medical, period_start):
            raise MedicalExpiredError(medical, period_start)

    @staticmethod
    def _check_manual_number(session, number: str, exclude_id: Optional[str] = None):
        NumberingService.require_pair(number)
        if not NumberingService.is_number_available(session, number, exclude_id=exclude_id):
            raise DuplicateNumberError(number)

    @staticmethod
    def _refresh_completion(p: Participant):
        # completed_at is an audit trail: set once, never cleared
        if p.is_completed and p.completed_at is None:
            p.completed_at = utc_now()

    @staticmethod
    def _issue_if_active(session, p: Participant) -> Optional[str]:
        group = find_group_by_period(session, p.period_start)
        if group is None or group.status is not GroupStatus.ACTIVE or p.unique_number:
            return None
        number, _counters = NumberingService.allocate_next(session)
        p.unique_number = number
        session.flush()
        return number

    # ── create ───────────────────────────────────────────────────────────

    def add_participant(self, data: Dict[str, Any], today: Optional[date] = None, *,
                        current_user=None) -> Participant:
        with self.get_session() as session:
            group_id = data.get("group_id")
            medical_raw = data.get("medical_exam_date")

            if group_id:
                group = self._load_group(session, group_id)
                start, end = group.period_start, group.period_end
            else:
                if not medical_raw:
                    raise MissingFieldError("medical_exam_date")
                start, end = compute_period(_as_date(medical_raw, "medical_exam_date"))
                group = find_group_by_period(session, start)
            self._check_joinable(group)

            person_name = _clean(data.get("person_name"))
            if not person_name:
                raise MissingFieldError("person_name")
            if not medical_raw:
                raise MissingFieldError("medical_exam_date")
            medical = _as_date(medical_raw, "medical_exam_date")
            self._check_medical(medical, start)

            manual_number = _clean(data.get("unique_number")) or ""
            if manual_number:
                self._check_manual_number(session, manual_number)

            p = Participant(
                person_name=person_name,
                company_name=_clean(data.get("company_name")),
                national_id=_clean(data.get("national_id")),
                birth_place=_clean(data.get("birth_place")),
                citizenship=_clean(data.get("citizenship")),
                medical_exam_date=medical,
                period_start=start,
                period_end=end,
                unique_number=manual_number,
                completed_override=data.get("completed_override"),
                **{flag: bool(data.get(flag, False)) for flag in ParticipantFlags.ALL},
            )
            self._stamp_create(p)
            self._refresh_completion(p)
            session.add(p)
            session.flush()

            PeriodSyncService.sync_periods(session, today)
            issued = self._issue_if_active(session, p)

            self._audit(session, action=AuditActions.CREATE, after=self._to_dict(p), user=current_user)
            session.commit()
            logger.info(f"Participant {p.id} added to period {start}"
                        + (f" with number {issued}" if issued else ""))
            return p

    # ── update ───────────────────────────────────────────────────────────

    def update_participant(self, participant_id: str, patch: Dict[str, Any], *,
                           current_user=None) -> Participant:
        with self.get_session() as session:
            p = self._load(session, participant_id)
            current_group = check_period_writable(session, p.period_start)

            # target period: explicit group, else derived from a new medical date
            target_start, target_end = p.period_start, p.period_end
            target_group = current_group
            if patch.get("group_id"):
                target_group = self._load_group(session, patch["group_id"])
                if target_group.is_read_only:
                    raise LockedGroupError(target_group.group_number, target_group.period_start)
                target_start, target_end = target_group.period_start, target_group.period_end

            new_medical = None
            if patch.get("medical_exam_date"):
                new_medical = _as_date(patch["medical_exam_date"], "medical_exam_date")

            if (not patch.get("group_id") and new_medical is not None
                    and new_medical != p.medical_exam_date):
                target_start, target_end = compute_period(new_medical)
                target_group = find_group_by_period(session, target_start)

            moving = target_start != p.period_start
            if target_group is not None and target_group.is_read_only:
                raise LockedGroupError(target_group.group_number, target_group.period_start)
            if moving:
                self._check_joinable(target_group)

            # validation
            if "person_name" in patch and not _clean(patch["person_name"]):
                raise MissingFieldError("person_name")
            medical = new_medical or p.medical_exam_date
            if moving or (new_medical is not None and new_medical != p.medical_exam_date):
                self._check_medical(medical, target_start)

            manual_number = _clean(patch.get("unique_number")) or ""
            if manual_number and manual_number != p.unique_number:
                self._check_manual_number(session, manual_number, exclude_id=p.id)
            else:
                manual_number = ""

            for flag in ParticipantFlags.ALL:
                if flag in patch and not isinstance(patch[flag], bool):
                    raise InvalidValueError(flag, patch[flag], "expected true/false")

            # write
            before = self._to_dict(p)
            for name in PROFILE_FIELDS:
                if name in patch:
                    setattr(p, name, _clean(patch[name]))
            p.medical_exam_date = medical
            for flag in ParticipantFlags.ALL:
                if flag in patch:
                    setattr(p, flag, patch[flag])
            if "completed_override" in patch:
                p.completed_override = patch["completed_override"]
            self._refresh_completion(p)
            if manual_number:
                p.unique_number = manual_number

            if moving:
                p.period_start, p.period_end = target_start, target_end
                # only a number issued in the Active period goes back to the pool
                leaving_active = current_group is not None and current_group.status is GroupStatus.ACTIVE
                if p.unique_number and not manual_number and leaving_active:
                    released = p.unique_number
                    p.unique_number = ""
                    session.flush()
                    NumberingService.release(session, released)
            self._stamp_update(p)
            session.flush()

            PeriodSyncService.sync_periods(session)
            if moving:
                self._issue_if_active(session, p)

            self._audit(session, action=AuditActions.UPDATE, before=before,
                        after=self._to_dict(p), user=current_user)
            session.commit()
            return p

    # ── delete ───────────────────────────────────────────────────────────

    def delete_participant(self, participant_id: str, *, current_user=None) -> bool:
        with self.get_session() as session:
            p = session.get(Participant, participant_id)
            if p is None:
                return False
            check_period_writable(session, p.period_start)

            before = self._to_dict(p)
            number = p.unique_number
            session.delete(p)
            session.flush()

            if NumberingService.is_valid_format(number):
                NumberingService.release(session, number)
            PeriodSyncService.sync_periods(session)

            self._audit(session, action=AuditActions.DELETE, before=before, user=current_user)
            session.commit()
            logger.info(f"Participant {participant_id} deleted"
                        + (f", number {number} released" if number else ""))
            return True

    # ── bulk actions ─────────────────────────────────────────────────────

    def _bulk(self, ids: Iterable[str], apply, action: str, current_user=None) -> BulkResult:
        result = BulkResult()
        with self.get_session() as session:
            for pid in ids:
                p = session.get(Participant, pid)
                if p is None:
                    result.failed += 1
                    result.errors.append(f"{pid}: not found")
                    continue
                try:
                    check_period_writable(session, p.period_start)
                    before = self._to_dict(p)
                    apply(p)
                except (LockedGroupError, InvalidValueError) as e:
                    result.failed += 1
                    result.errors.append(f"{p.person_name}: {e}")
                    continue
                self._refresh_completion(p)
                self._stamp_update(p)
                self._audit(session, action=action, before=before,
                            after=self._to_dict(p), user=current_user)
                result.success += 1
            session.commit()
        logger.info(f"Bulk {action}: {result.success} ok, {result.failed} failed")
        return result

    def bulk_set_flag(self, ids: Iterable[str], flag: str, value: bool, *,
                      current_user=None) -> BulkResult:
        if flag not in ParticipantFlags.ALL:
            raise InvalidValueError("flag", flag, f"one of {', '.join(ParticipantFlags.ALL)}")

        def apply(p: Participant):
            setattr(p, flag, bool(value))

        return self._bulk(ids, apply, AuditActions.UPDATE, current_user)

    def bulk_set_completed(self, ids: Iterable[str], *, current_user=None) -> BulkResult:
        """Marks completed only participants whose four flags are all set."""
        def apply(p: Participant):
            if not p.completed_computed:
                raise InvalidValueError("completed", True, "not all progress flags are set")
            p.completed_override = True

        return self._bulk(ids, apply, AuditActions.UPDATE, current_user)

    # ── queries ──────────────────────────────────────────────────────────

    def list_participants(self, period_start: Optional[date] = None) -> List[Participant]:
        with self.get_session() as session:
            q = select(Participant).order_by(Participant.created_at, Participant.id)
            if period_start is not None:
                q = q.where(Participant.period_start == period_start)
            return list(session.execute(q).scalars().all())

    def get_by_number(self, number: str) -> Optional[Participant]:
        with self.get_session() as session:
            return session.execute(
                select(Participant).where(Participant.unique_number == number)
            ).scalars().first()
