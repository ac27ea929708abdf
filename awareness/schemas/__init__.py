from awareness.schemas.audit import AuditEventSchema
from awareness.schemas.content import (
    CurriculumModuleSchema,
    CurriculumOutlineSchema,
    ModuleContentClientSchema,
    ModuleContentSchema,
    QuizQuestionSchema,
    RoleProfileSchema,
    ScenarioSchema,
)
from awareness.schemas.training import (
    EvaluationResultSchema,
    QuizResultSchema,
    QuizSubmitSchema,
    ScenarioResultSchema,
    ScenarioSubmitSchema,
    SessionStateOutSchema,
    SessionStateSchema,
    TrainingModuleRecord,
    TrainingSessionRecord,
)

__all__ = [
    "AuditEventSchema",
    "CurriculumModuleSchema",
    "CurriculumOutlineSchema",
    "EvaluationResultSchema",
    "ModuleContentClientSchema",
    "ModuleContentSchema",
    "QuizQuestionSchema",
    "QuizResultSchema",
    "QuizSubmitSchema",
    "RoleProfileSchema",
    "ScenarioResultSchema",
    "ScenarioSchema",
    "ScenarioSubmitSchema",
    "SessionStateOutSchema",
    "SessionStateSchema",
    "TrainingModuleRecord",
    "TrainingSessionRecord",
]
