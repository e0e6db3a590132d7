from sqlalchemy import Column, String, Date, DateTime, Boolean, Index

from .base import Base
from .group import new_id
from database.db_utils import utc_now


class Participant(Base):
    """
    One trainee enrollment.

    period_start / period_end are a denormalized copy of the owning group's
    period (groups are looked up by period_start, there is no live FK).
    unique_number stays "" until issued.
    """
    __tablename__ = "participants"
    __table_args__ = (
        Index("ix_participants_period_created", "period_start", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)

    person_name = Column(String(200), nullable=False)
    company_name = Column(String(200), nullable=True)
    national_id = Column(String(32), nullable=True)
    birth_place = Column(String(120), nullable=True)
    citizenship = Column(String(80), nullable=True)

    medical_exam_date = Column(Date, nullable=False)
    period_start = Column(Date, nullable=False, index=True)
    period_end = Column(Date, nullable=False)

    unique_number = Column(String(20), nullable=False, default="", index=True)

    # Progress flags
    submitted = Column(Boolean, nullable=False, default=False)
    documents = Column(Boolean, nullable=False, default=False)
    handed_over = Column(Boolean, nullable=False, default=False)
    paid = Column(Boolean, nullable=False, default=False)
    completed_override = Column(Boolean, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)
    completed_at = Column(DateTime, nullable=True)

    @property
    def completed_computed(self) -> bool:
        return bool(self.submitted and self.documents and self.handed_over and self.paid)

    @property
    def is_completed(self) -> bool:
        if self.completed_override is not None:
            return bool(self.completed_override)
        return self.completed_computed

    def __repr__(self):
        return (f"<Participant(id={self.id!r}, name={self.person_name!r}, "
                f"number={self.unique_number!r}, period={self.period_start})>")
