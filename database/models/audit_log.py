from sqlalchemy import Column, Integer, String, DateTime, Text, func
from .base import Base


class AuditLog(Base):
    __tablename__ = "audit_log"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=True)     # operator id supplied by the caller, if any
    action = Column(String(50), nullable=False)  # create | update | delete | activate | close | archive ...
    table_name = Column(String(50), nullable=False)
    record_id = Column(String(64), nullable=True)
    details = Column(Text, nullable=True)        # JSON {"before": ..., "after": ...}
    timestamp = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action={self.action!r}, table={self.table_name!r})>"
