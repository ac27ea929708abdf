"""SQLAlchemy declarative base and model imports for Alembic."""
from awareness.db.session import Base

# Import all models so Alembic can see them
from awareness.models.audit_event import AuditEvent  # noqa: F401
from awareness.models.role_profile import RoleProfile  # noqa: F401
from awareness.models.training_module import TrainingModule  # noqa: F401
from awareness.models.training_session import TrainingSession  # noqa: F401

__all__ = ["Base", "AuditEvent", "RoleProfile", "TrainingModule", "TrainingSession"]
