"""Typed failures raised by the training engines and mapped to HTTP responses by the API layer."""


class TrainingError(Exception):
    code = "training_error"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])


# ---------- precondition violations: caller error, never retried automatically ----------

class PreconditionViolation(TrainingError):
    code = "precondition_failed"
    status_code = 422


class TenantNotFound(PreconditionViolation):
    """Tenant is not configured."""
    code = "tenant_not_found"
    status_code = 404


class NoRoleProfile(PreconditionViolation):
    """No confirmed role profile found."""
    code = "no_role_profile"
    status_code = 404


class SessionNotFound(PreconditionViolation):
    """No training session found."""
    code = "session_not_found"
    status_code = 404


class ModuleNotFound(PreconditionViolation):
    """Module not found."""
    code = "module_not_found"
    status_code = 404


class SessionAlreadyActive(PreconditionViolation):
    """An active training session already exists."""
    code = "session_already_active"


class SessionNotActive(PreconditionViolation):
    """Session does not accept this operation in its current status."""
    code = "session_not_active"


class AttemptsExhausted(PreconditionViolation):
    """All training attempts have been used."""
    code = "attempts_exhausted"


class RemediationNotAvailable(PreconditionViolation):
    """Remediation is not available for this employee."""
    code = "remediation_not_available"


class ModuleNotUnlockable(PreconditionViolation):
    """Module cannot be started before the previous module is scored."""
    code = "module_not_unlockable"


class UnknownScenario(PreconditionViolation):
    """Scenario not found in module."""
    code = "unknown_scenario"
    status_code = 404


class ScenarioAlreadyAnswered(PreconditionViolation):
    """Scenario has already been answered."""
    code = "scenario_already_answered"


class ScenarioNotAvailable(PreconditionViolation):
    """Module is not accepting scenario answers."""
    code = "scenario_not_available"


class QuizNotAvailable(PreconditionViolation):
    """Module is not accepting quiz submissions."""
    code = "quiz_not_available"


class QuizIncomplete(PreconditionViolation):
    """Quiz answers must cover every question exactly once."""
    code = "quiz_incomplete"


class IncompleteModules(PreconditionViolation):
    """Not all modules have been scored."""
    code = "incomplete_modules"


# ---------- concurrency ----------

class Conflict(TrainingError):
    """Resource was modified by another request; refresh and retry."""
    code = "conflict"
    status_code = 409


# ---------- scoring / AI ----------

class AiUnavailable(TrainingError):
    """AI evaluation service temporarily unavailable."""
    code = "ai_unavailable"
    status_code = 503


class EvaluationFailed(TrainingError):
    """Response could not be evaluated."""
    code = "evaluation_failed"
    status_code = 422


class ContentGenerationFailed(TrainingError):
    """Content generation failed; retry to resume."""
    code = "generation_failed"
    status_code = 503
