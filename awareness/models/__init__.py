from awareness.models.audit_event import AuditEvent
from awareness.models.role_profile import RoleProfile
from awareness.models.training_module import TrainingModule
from awareness.models.training_session import TrainingSession

__all__ = ["AuditEvent", "RoleProfile", "TrainingModule", "TrainingSession"]
