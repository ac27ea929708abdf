"""AuditEvent model: append-only lifecycle record. Never updated or deleted."""
from sqlalchemy import Column, DateTime, Integer, String, Text

from awareness.db.session import Base


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(128), nullable=False, index=True)
    event_type = Column(String(64), nullable=False, index=True)
    employee_id = Column(String(128), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    metadata_json = Column(Text, nullable=False, default="{}")  # ids, counts, scores only
