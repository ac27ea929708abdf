"""Pydantic schemas for generated curriculum and module content.

Answer keys (`correct`) and rubrics are server-only; `to_client()` strips them.
"""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

ResponseType = Literal["multiple-choice", "free-text"]


class McOptionSchema(BaseModel):
    key: str
    text: str
    correct: bool = False


class McOptionClientSchema(BaseModel):
    key: str
    text: str


class _AssessedItem(BaseModel):
    id: str = Field(min_length=1)
    response_type: ResponseType
    options: list[McOptionSchema] | None = None
    rubric: str | None = None

    @model_validator(mode="after")
    def _check_grading_material(self):
        if self.response_type == "multiple-choice":
            if not self.options:
                raise ValueError(f"multiple-choice item '{self.id}' has no options")
            correct = sum(1 for o in self.options if o.correct)
            if correct != 1:
                raise ValueError(
                    f"multiple-choice item '{self.id}' must have exactly one correct option (found {correct})"
                )
        elif not self.rubric:
            raise ValueError(f"free-text item '{self.id}' has no rubric")
        return self

    def answer_key(self) -> str | None:
        """Key of the correct option for multiple-choice items."""
        for option in self.options or []:
            if option.correct:
                return option.key
        return None

    def _client_options(self) -> list[McOptionClientSchema] | None:
        if self.options is None:
            return None
        return [McOptionClientSchema(key=o.key, text=o.text) for o in self.options]


class ScenarioSchema(_AssessedItem):
    narrative: str


class QuizQuestionSchema(_AssessedItem):
    text: str


class ScenarioClientSchema(BaseModel):
    id: str
    narrative: str
    response_type: ResponseType
    options: list[McOptionClientSchema] | None = None


class QuizQuestionClientSchema(BaseModel):
    id: str
    text: str
    response_type: ResponseType
    options: list[McOptionClientSchema] | None = None


class ModuleContentClientSchema(BaseModel):
    instruction: str
    scenarios: list[ScenarioClientSchema]
    quiz_questions: list[QuizQuestionClientSchema]
    generated_at: datetime | None = None


class ModuleContentSchema(BaseModel):
    instruction: str = Field(min_length=1)
    scenarios: list[ScenarioSchema] = Field(min_length=1)
    quiz_questions: list[QuizQuestionSchema] = Field(min_length=1)
    generated_at: datetime | None = None

    @model_validator(mode="after")
    def _check_unique_ids(self):
        for label, items in (("scenario", self.scenarios), ("quiz question", self.quiz_questions)):
            ids = [item.id for item in items]
            if len(ids) != len(set(ids)):
                raise ValueError(f"duplicate {label} ids")
        return self

    def scenario(self, scenario_id: str) -> ScenarioSchema | None:
        return next((s for s in self.scenarios if s.id == scenario_id), None)

    def to_client(self) -> ModuleContentClientSchema:
        return ModuleContentClientSchema(
            instruction=self.instruction,
            scenarios=[
                ScenarioClientSchema(
                    id=s.id,
                    narrative=s.narrative,
                    response_type=s.response_type,
                    options=s._client_options(),
                )
                for s in self.scenarios
            ],
            quiz_questions=[
                QuizQuestionClientSchema(
                    id=q.id,
                    text=q.text,
                    response_type=q.response_type,
                    options=q._client_options(),
                )
                for q in self.quiz_questions
            ],
            generated_at=self.generated_at,
        )


class CurriculumModuleSchema(BaseModel):
    title: str = Field(min_length=1)
    topic_area: str = Field(min_length=1)
    job_expectation_indices: list[int] = []


class CurriculumOutlineSchema(BaseModel):
    modules: list[CurriculumModuleSchema] = Field(min_length=1, max_length=20)
    generated_at: datetime | None = None


class RoleProfileSchema(BaseModel):
    id: str
    tenant_id: str
    employee_id: str
    version: int
    job_expectations: list[str]
