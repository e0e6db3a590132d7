from sqlalchemy import Column, Integer, DateTime

from .base import Base
from database.db_utils import utc_now


class SequenceCounters(Base):
    """
    Singleton row (id=1) holding the last issued (prefix, seq) pair.

    version is bumped on every write; writers must present the version they
    read (optimistic concurrency, see NumberingService.save_counters).
    """
    __tablename__ = "sequence_counters"

    id = Column(Integer, primary_key=True)
    last_prefix = Column(Integer, nullable=False)
    last_seq = Column(Integer, nullable=False)
    last_reset_year = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    def __repr__(self):
        return (f"<SequenceCounters(prefix={self.last_prefix}, seq={self.last_seq}, "
                f"version={self.version})>")
