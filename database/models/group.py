"""
database/models/group.py
========================
One row per weekly period that has, or will soon have, participants.

status is a closed enum; is_locked is only meaningful (and only settable to
True) while the group is Completed. Leaving Completed clears the lock.
"""
import enum
import uuid

from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, Enum, Index, text
from sqlalchemy.orm import validates

from .base import Base
from database.db_utils import utc_now
from exceptions import InvalidTransitionError


def new_id() -> str:
    return str(uuid.uuid4())


class GroupStatus(str, enum.Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"


class Group(Base):
    __tablename__ = "groups"
    __table_args__ = (
        # at most one active group, enforced by the store as well
        Index(
            "uq_groups_single_active", "status",
            unique=True,
            sqlite_where=text("status = 'active'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    group_number = Column(Integer, nullable=True, unique=True)

    period_start = Column(Date, nullable=False, unique=True, index=True)
    period_end = Column(Date, nullable=False)

    status = Column(
        Enum(
            GroupStatus,
            name="group_status",
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=GroupStatus.PLANNED,
    )
    is_locked = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)
    activated_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)

    @validates("status")
    def _validate_status(self, _key, value):
        value = GroupStatus(value)
        if value is not GroupStatus.COMPLETED and self.is_locked:
            self.is_locked = False
        return value

    @validates("is_locked")
    def _validate_lock(self, _key, value):
        value = bool(value)
        if value and self.status is not None and GroupStatus(self.status) is not GroupStatus.COMPLETED:
            raise InvalidTransitionError(
                "Only completed groups can be locked",
                current=GroupStatus(self.status).value, target="locked",
            )
        return value

    @property
    def is_read_only(self) -> bool:
        """Completed and locked: participants of this period cannot change."""
        return self.status is GroupStatus.COMPLETED and bool(self.is_locked)

    def __repr__(self):
        return (f"<Group(id={self.id!r}, number={self.group_number}, "
                f"period={self.period_start}, status={getattr(self.status, 'value', self.status)})>")
