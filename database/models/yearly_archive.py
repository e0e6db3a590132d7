from sqlalchemy import Column, Integer, DateTime, JSON

from .base import Base
from database.db_utils import utc_now


class YearlyArchive(Base):
    """
    Verbatim snapshots of the groups and participants removed by a year's
    archiving pass. Entries only ever leave through restore.
    """
    __tablename__ = "yearly_archives"

    year = Column(Integer, primary_key=True, autoincrement=False)
    groups = Column(JSON, nullable=False, default=list)
    participants = Column(JSON, nullable=False, default=list)
    archived_at = Column(DateTime, nullable=False, default=utc_now)

    @property
    def archive_id(self) -> str:
        return f"archive-{self.year}"

    def __repr__(self):
        return (f"<YearlyArchive(year={self.year}, groups={len(self.groups or [])}, "
                f"participants={len(self.participants or [])})>")
