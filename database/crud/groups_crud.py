"""
database/crud/groups_crud.py
=============================
GroupsCRUD — group repository and lifecycle state machine.

    Planned ──activate──▶ Active ──close──▶ Completed(locked)
       ▲                    │                  ▲   │
       └─────demote─────────┘            lock  │   │ unlock
                                               │   ▼
                            Active ◀──reopen── Completed(unlocked)

Rules:
  - at most one Active group; activating while another group is Active
    returns NeedsConfirmation and changes nothing
  - confirm_swap() demotes the current Active group, then activates
  - demotion releases the group number and clears the period's unique numbers
  - close() never activates anything else
  - lock/unlock only on Completed groups
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Set, Tuple, Union

from sqlalchemy import func, select

from constants import AuditActions
from database.crud.base_crud import BaseCRUD
from database.db_utils import utc_now
from database.models import get_session_local
from database.models.group import Group, GroupStatus
from database.models.participant import Participant
from exceptions import InvalidTransitionError, LockedGroupError, NotFoundError
from services.numbering_service import Counters, NumberingService

logger = logging.getLogger(__name__)


# ─── Results ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Activated:
    group: Group
    issued: Tuple[str, ...] = ()
    counters: Optional[Counters] = None


@dataclass(frozen=True)
class NeedsConfirmation:
    """Another group is Active; the caller must ask for an explicit swap."""
    group: Group
    current_active: Group


ActivationResult = Union[Activated, NeedsConfirmation]


# ─── Session-level helpers (shared with the synchronizer and participants) ──

def find_active_group(session) -> Optional[Group]:
    return session.execute(
        select(Group).where(Group.status == GroupStatus.ACTIVE)
        .order_by(Group.updated_at.desc())
    ).scalars().first()


def find_group_by_period(session, period_start: date) -> Optional[Group]:
    return session.execute(
        select(Group).where(Group.period_start == period_start)
    ).scalars().first()


def next_group_number(session) -> int:
    """max(live group numbers) + 1."""
    session.flush()
    current = session.execute(select(func.max(Group.group_number))).scalar()
    return (current or 0) + 1


def check_period_writable(session, period_start: Optional[date]) -> Optional[Group]:
    """LockedGroupError when the period's group is Completed and locked."""
    if period_start is None:
        return None
    group = find_group_by_period(session, period_start)
    if group is not None and group.is_read_only:
        raise LockedGroupError(group.group_number, group.period_start)
    return group


class GroupsCRUD(BaseCRUD):

    ALLOWED_TRANSITIONS: Dict[GroupStatus, Set[GroupStatus]] = {
        GroupStatus.PLANNED:   {GroupStatus.ACTIVE},
        GroupStatus.ACTIVE:    {GroupStatus.PLANNED, GroupStatus.COMPLETED},
        GroupStatus.COMPLETED: {GroupStatus.ACTIVE},
    }

    def __init__(self, session_factory=None):
        super().__init__(Group, session_factory or get_session_local)

    # ── internals ────────────────────────────────────────────────────────

    def _load(self, session, group_id: str) -> Group:
        group = session.get(Group, group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        return group

    def _require_active(self, session) -> Group:
        active = find_active_group(session)
        if active is None:
            raise NotFoundError("Active group")
        return active

    def _check_transition(self, group: Group, target: GroupStatus):
        if target not in self.ALLOWED_TRANSITIONS[group.status]:
            raise InvalidTransitionError(current=group.status.value, target=target.value)

    def _activate_in(self, session, group: Group, *, current_user=None) -> Activated:
        """Unconditional activation; the caller has dealt with any other Active group."""
        self._check_transition(group, GroupStatus.ACTIVE)
        before = self._to_dict(group)

        if group.group_number is None:
            group.group_number = next_group_number(session)
        group.status = GroupStatus.ACTIVE
        group.activated_at = utc_now()
        self._stamp_update(group)
        session.flush()

        issued, counters = NumberingService.allocate_batch(session, group.period_start)
        self._audit(session, action=AuditActions.ACTIVATE, before=before,
                    after=self._to_dict(group), user=current_user)
        logger.info(f"Group #{group.group_number} ({group.period_start}) activated, "
                    f"{len(issued)} number(s) issued")
        return Activated(group, tuple(issued), counters)

    def _demote_in(self, session, group: Group, *, current_user=None) -> Group:
        """Active → Planned: number released, period numbers cleared."""
        self._check_transition(group, GroupStatus.PLANNED)
        before = self._to_dict(group)

        group.status = GroupStatus.PLANNED
        group.group_number = None
        group.activated_at = None
        self._stamp_update(group)
        session.flush()

        NumberingService.clear_period(session, group.period_start)
        self._audit(session, action=AuditActions.DEMOTE, before=before,
                    after=self._to_dict(group), user=current_user)
        logger.info(f"Group {group.period_start} demoted to planned "
                    f"(released number {before.get('group_number')})")
        return group

    def _after_transition(self, session):
        from services.period_sync_service import PeriodSyncService
        PeriodSyncService.sync_periods(session)

    # ── transitions ──────────────────────────────────────────────────────

    def activate(self, group_id: str, *, current_user=None) -> ActivationResult:
        with self.get_session() as session:
            group = self._load(session, group_id)
            if group.status is GroupStatus.ACTIVE:
                return Activated(group)

            current = find_active_group(session)
            if current is not None:
                logger.info(f"Activation of {group.period_start} needs confirmation: "
                            f"group #{current.group_number} is active")
                return NeedsConfirmation(group, current)

            result = self._activate_in(session, group, current_user=current_user)
            self._after_transition(session)
            session.commit()
            return result

    def confirm_swap(self, group_id: str, *, current_user=None) -> Activated:
        with self.get_session() as session:
            group = self._load(session, group_id)
            if group.status is GroupStatus.ACTIVE:
                return Activated(group)
            self._check_transition(group, GroupStatus.ACTIVE)

            current = find_active_group(session)
            if current is not None:
                self._demote_in(session, current, current_user=current_user)
                session.flush()

            result = self._activate_in(session, group, current_user=current_user)
            self._after_transition(session)
            session.commit()
            return result

    def demote_active_to_planned(self, *, current_user=None) -> Group:
        with self.get_session() as session:
            group = self._require_active(session)
            self._demote_in(session, group, current_user=current_user)
            self._after_transition(session)
            session.commit()
            return group

    def close(self, group_id: Optional[str] = None, *, current_user=None) -> Group:
        with self.get_session() as session:
            active = self._require_active(session)
            if group_id is not None and group_id != active.id:
                target = self._load(session, group_id)
                raise InvalidTransitionError(
                    "Only the active group can be closed",
                    current=target.status.value, target=GroupStatus.COMPLETED.value,
                )
            before = self._to_dict(active)

            active.status = GroupStatus.COMPLETED
            active.is_locked = True
            active.closed_at = utc_now()
            self._stamp_update(active)

            self._audit(session, action=AuditActions.CLOSE, before=before,
                        after=self._to_dict(active), user=current_user)
            self._after_transition(session)
            session.commit()
            logger.info(f"Group #{active.group_number} ({active.period_start}) closed and locked")
            return active

    def reopen(self, group_id: str, *, current_user=None) -> ActivationResult:
        with self.get_session() as session:
            group = self._load(session, group_id)
            if group.status is GroupStatus.ACTIVE:
                return Activated(group)
            if group.status is not GroupStatus.COMPLETED:
                raise InvalidTransitionError(
                    "Only completed groups can be reopened",
                    current=group.status.value, target=GroupStatus.ACTIVE.value,
                )

            current = find_active_group(session)
            if current is not None:
                return NeedsConfirmation(group, current)

            result = self._activate_in(session, group, current_user=current_user)
            self._after_transition(session)
            session.commit()
            return result

    def _set_lock(self, group_id: str, locked: bool, *, current_user=None) -> Group:
        with self.get_session() as session:
            group = self._load(session, group_id)
            if group.status is not GroupStatus.COMPLETED:
                raise InvalidTransitionError(
                    f"Only completed groups can be {'locked' if locked else 'unlocked'}",
                    current=group.status.value, target=group.status.value,
                )
            if bool(group.is_locked) == locked:
                return group
            before = self._to_dict(group)
            group.is_locked = locked
            self._stamp_update(group)
            self._audit(session, action=AuditActions.LOCK if locked else AuditActions.UNLOCK,
                        before=before, after=self._to_dict(group), user=current_user)
            session.commit()
            return group

    def lock(self, group_id: str, *, current_user=None) -> Group:
        return self._set_lock(group_id, True, current_user=current_user)

    def unlock(self, group_id: str, *, current_user=None) -> Group:
        return self._set_lock(group_id, False, current_user=current_user)

    # ── startup integrity ────────────────────────────────────────────────

    def ensure_single_active(self) -> int:
        """
        Keep the most recently updated Active group, demote the rest.
        Returns how many groups were demoted.
        """
        with self.get_session() as session:
            actives = session.execute(
                select(Group).where(Group.status == GroupStatus.ACTIVE)
                .order_by(Group.updated_at.desc(), Group.id)
            ).scalars().all()
            if len(actives) <= 1:
                return 0

            for extra in actives[1:]:
                logger.warning(f"Multiple active groups: demoting {extra.period_start}")
                self._demote_in(session, extra)
                session.flush()
            session.commit()
            return len(actives) - 1

    # ── queries ──────────────────────────────────────────────────────────

    def get_by_period(self, period_start: date) -> Optional[Group]:
        with self.get_session() as session:
            return find_group_by_period(session, period_start)

    def get_active(self) -> Optional[Group]:
        with self.get_session() as session:
            return find_active_group(session)

    def list_groups(self, status: Optional[GroupStatus] = None) -> List[Group]:
        with self.get_session() as session:
            q = select(Group).order_by(Group.period_start)
            if status is not None:
                q = q.where(Group.status == GroupStatus(status))
            return list(session.execute(q).scalars().all())

    def participant_counts(self) -> Dict[date, int]:
        """period_start → number of live participants."""
        with self.get_session() as session:
            rows = session.execute(
                select(Participant.period_start, func.count(Participant.id))
                .group_by(Participant.period_start)
            ).all()
            return {period: count for period, count in rows}

    # ── synchronization ──────────────────────────────────────────────────

    def sync_periods(self, today: Optional[date] = None):
        """Standalone synchronizer run (startup, CLI, day rollover)."""
        from services.period_sync_service import PeriodSyncService
        with self.get_session() as session:
            report = PeriodSyncService.sync_periods(session, today)
            session.commit()
            return report
