"""RoleProfile model: confirmed job expectations that gate training (written by intake)."""
import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from awareness.db.session import Base, utcnow


class RoleProfile(Base):
    __tablename__ = "role_profiles"
    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_id", name="uq_role_profiles_tenant_employee"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(128), nullable=False, index=True)
    employee_id = Column(String(128), nullable=False)
    status = Column(String(16), nullable=False, default="draft")  # draft | confirmed
    version = Column(Integer, nullable=False, default=1)
    job_expectations_json = Column(Text, nullable=False, default="[]")
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
