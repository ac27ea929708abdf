"""TrainingSession model: one per (tenant, employee, attempt)."""
import uuid

from sqlalchemy import Column, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from awareness.db.session import Base, utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class TrainingSession(Base):
    __tablename__ = "training_sessions"
    __table_args__ = (
        Index("ix_training_sessions_tenant_employee", "tenant_id", "employee_id"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    tenant_id = Column(String(128), nullable=False, index=True)
    employee_id = Column(String(128), nullable=False)
    attempt_number = Column(Integer, nullable=False, default=1)

    # curriculum-generating | in-progress | evaluating | passed | failed
    # | in-remediation | exhausted | abandoned
    status = Column(String(32), nullable=False)
    # "{tenant}:{employee}" while this is the employee's live session, else NULL
    active_key = Column(String(260), unique=True, nullable=True)

    role_profile_id = Column(String(64), nullable=False)
    role_profile_version = Column(Integer, nullable=False)
    config_hash = Column(String(64), nullable=False)
    app_version = Column(String(32), nullable=False)

    # JSON: CurriculumOutline (null until generated)
    curriculum_json = Column(Text, nullable=True)
    aggregate_score = Column(Float, nullable=True)  # 0.0-1.0, set by evaluation
    # JSON array of module titles below the pass threshold
    weak_areas_json = Column(Text, nullable=True)
    remediates_session_id = Column(String(36), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    modules = relationship(
        "TrainingModule",
        back_populates="session",
        order_by="TrainingModule.module_index",
    )
