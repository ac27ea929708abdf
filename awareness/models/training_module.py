"""TrainingModule model: one curriculum slot of a session, mutated strictly in index order."""
import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from awareness.db.session import Base, utcnow

# SQLite doesn't have native JSON; content and responses are stored as JSON text


class TrainingModule(Base):
    __tablename__ = "training_modules"
    __table_args__ = (
        UniqueConstraint("session_id", "module_index", name="uq_training_modules_session_index"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(128), nullable=False, index=True)
    session_id = Column(String(36), ForeignKey("training_sessions.id"), nullable=False, index=True)
    module_index = Column(Integer, nullable=False)  # 0-based, stable
    title = Column(String(255), nullable=False)
    topic_area = Column(String(255), nullable=False)
    job_expectation_indices_json = Column(Text, nullable=False, default="[]")

    # locked | content-generating | learning | scenario-active | quiz-active | scored
    status = Column(String(32), nullable=False, default="locked")
    content_json = Column(Text, nullable=True)  # ModuleContent, immutable once set
    scenario_responses_json = Column(Text, nullable=False, default="[]")
    quiz_answers_json = Column(Text, nullable=False, default="[]")
    module_score = Column(Float, nullable=True)  # 0.0-1.0, set once when scored

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    session = relationship("TrainingSession", back_populates="modules")
