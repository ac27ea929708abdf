"""Pydantic schemas for training sessions, modules, submissions and results."""
import json
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from awareness.schemas.content import (
    CurriculumOutlineSchema,
    ModuleContentClientSchema,
    ModuleContentSchema,
    ResponseType,
)

MAX_FREE_TEXT_LENGTH = 2000

SessionStatus = Literal[
    "curriculum-generating",
    "in-progress",
    "evaluating",
    "passed",
    "failed",
    "in-remediation",
    "exhausted",
    "abandoned",
]
ModuleStatus = Literal[
    "locked",
    "content-generating",
    "learning",
    "scenario-active",
    "quiz-active",
    "scored",
]
NextAction = Literal["complete", "remediation-available", "exhausted"]


# ---------- stored responses ----------

class ScenarioResponseSchema(BaseModel):
    scenario_id: str
    response_type: ResponseType
    selected_option: str | None = None
    free_text_response: str | None = None
    score: float = Field(ge=0.0, le=1.0)
    rationale: str | None = None
    submitted_at: datetime


class QuizAnswerSchema(BaseModel):
    question_id: str
    response_type: ResponseType
    selected_option: str | None = None
    free_text_response: str | None = None
    score: float = Field(ge=0.0, le=1.0)
    rationale: str | None = None
    submitted_at: datetime


# ---------- records (parsed rows) ----------

def _loads(raw: str | None, default):
    return json.loads(raw) if raw else default


class TrainingModuleRecord(BaseModel):
    id: str
    tenant_id: str
    session_id: str
    module_index: int
    title: str
    topic_area: str
    job_expectation_indices: list[int] = []
    status: ModuleStatus
    content: ModuleContentSchema | None = None
    scenario_responses: list[ScenarioResponseSchema] = []
    quiz_answers: list[QuizAnswerSchema] = []
    module_score: float | None = Field(default=None, ge=0.0, le=1.0)
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "TrainingModuleRecord":
        return cls(
            id=row.id,
            tenant_id=row.tenant_id,
            session_id=row.session_id,
            module_index=row.module_index,
            title=row.title,
            topic_area=row.topic_area,
            job_expectation_indices=_loads(row.job_expectation_indices_json, []),
            status=row.status,
            content=_loads(row.content_json, None),
            scenario_responses=_loads(row.scenario_responses_json, []),
            quiz_answers=_loads(row.quiz_answers_json, []),
            module_score=row.module_score,
            version=row.version,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def answered_scenario_ids(self) -> set[str]:
        return {r.scenario_id for r in self.scenario_responses}

    def all_scenarios_answered(self) -> bool:
        return self.content is not None and len(self.scenario_responses) >= len(self.content.scenarios)


class TrainingSessionRecord(BaseModel):
    id: str
    tenant_id: str
    employee_id: str
    attempt_number: int = Field(ge=1)
    status: SessionStatus
    active: bool
    role_profile_id: str
    role_profile_version: int
    config_hash: str
    app_version: str
    curriculum: CurriculumOutlineSchema | None = None
    aggregate_score: float | None = Field(default=None, ge=0.0, le=1.0)
    weak_areas: list[str] | None = None
    remediates_session_id: str | None = None
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "TrainingSessionRecord":
        return cls(
            id=row.id,
            tenant_id=row.tenant_id,
            employee_id=row.employee_id,
            attempt_number=row.attempt_number,
            status=row.status,
            active=row.active_key is not None,
            role_profile_id=row.role_profile_id,
            role_profile_version=row.role_profile_version,
            config_hash=row.config_hash,
            app_version=row.app_version,
            curriculum=_loads(row.curriculum_json, None),
            aggregate_score=row.aggregate_score,
            weak_areas=_loads(row.weak_areas_json, None),
            remediates_session_id=row.remediates_session_id,
            version=row.version,
            created_at=row.created_at,
            updated_at=row.updated_at,
            completed_at=row.completed_at,
        )


# ---------- client views ----------

class ModuleOutSchema(BaseModel):
    id: str
    module_index: int
    title: str
    topic_area: str
    status: ModuleStatus
    content: ModuleContentClientSchema | None = None
    scenario_responses: list[ScenarioResponseSchema] = []
    quiz_answers: list[QuizAnswerSchema] = []
    module_score: float | None = None
    version: int

    @classmethod
    def from_record(cls, record: TrainingModuleRecord) -> "ModuleOutSchema":
        return cls(
            id=record.id,
            module_index=record.module_index,
            title=record.title,
            topic_area=record.topic_area,
            status=record.status,
            content=record.content.to_client() if record.content else None,
            scenario_responses=record.scenario_responses,
            quiz_answers=record.quiz_answers,
            module_score=record.module_score,
            version=record.version,
        )


class SessionStateSchema(BaseModel):
    session: TrainingSessionRecord
    modules: list[TrainingModuleRecord]


class SessionStateOutSchema(BaseModel):
    session: TrainingSessionRecord
    modules: list[ModuleOutSchema]
    max_attempts: int | None = None

    @classmethod
    def from_state(cls, state: SessionStateSchema, max_attempts: int | None = None) -> "SessionStateOutSchema":
        return cls(
            session=state.session,
            modules=[ModuleOutSchema.from_record(m) for m in state.modules],
            max_attempts=max_attempts,
        )


# ---------- submissions ----------

class ScenarioSubmitSchema(BaseModel):
    scenario_id: str = Field(min_length=1)
    selected_option: str | None = None
    free_text_response: str | None = None


class QuizAnswerSubmitSchema(BaseModel):
    question_id: str = Field(min_length=1)
    selected_option: str | None = None
    free_text_response: str | None = None


class QuizSubmitSchema(BaseModel):
    answers: list[QuizAnswerSubmitSchema] = Field(min_length=1)


# ---------- results ----------

class ItemScoreSchema(BaseModel):
    score: float = Field(ge=0.0, le=1.0)
    rationale: str | None = None


class ScenarioResultSchema(BaseModel):
    scenario_id: str
    score: float
    rationale: str | None = None
    module_status: ModuleStatus
    scenarios_remaining: int


class QuizAnswerResultSchema(BaseModel):
    question_id: str
    score: float
    rationale: str | None = None


class QuizResultSchema(BaseModel):
    module_index: int
    module_score: float
    answers: list[QuizAnswerResultSchema]
    session_status: SessionStatus


class EvaluationResultSchema(BaseModel):
    session_id: str
    aggregate_score: float
    passed: bool
    attempt_number: int
    weak_areas: list[str] = []
    next_action: NextAction
    status: SessionStatus
