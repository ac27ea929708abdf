import json
from dataclasses import dataclass

import pytest

from awareness.core.config import PolicyContext, Settings, resolve_policy
from awareness.core.errors import ContentGenerationFailed
from awareness.db.base import Base
from awareness.db.session import build_engine, build_session_factory, utcnow
from awareness.models.role_profile import RoleProfile
from awareness.schemas.content import (
    CurriculumModuleSchema,
    CurriculumOutlineSchema,
    McOptionSchema,
    ModuleContentSchema,
    QuizQuestionSchema,
    ScenarioSchema,
)
from awareness.schemas.training import (
    ItemScoreSchema,
    QuizAnswerSubmitSchema,
    QuizSubmitSchema,
    ScenarioSubmitSchema,
)
from awareness.services.audit import AuditEmitter
from awareness.services.collaborators import DatabaseRoleProfileProvider
from awareness.services.guard import ConcurrencyGuard
from awareness.services.module_engine import ModuleEngine
from awareness.services.retention import TranscriptPurger
from awareness.services.session_engine import SessionEngine

TENANT = "acme"
EMPLOYEE = "emp-001"
CORRECT_KEY = "a"
WRONG_KEY = "b"


@pytest.fixture
def anyio_backend():
    """Force anyio to use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'training.db'}",
        sqlite_busy_timeout=10.0,
        llm_api_url="http://llm.test/v1/chat/completions",
        admin_token="test-admin-token",
    )


@pytest.fixture
async def db_engine(settings):
    engine = build_engine(settings.database_url, settings.sqlite_busy_timeout)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


# ---------- fake collaborators ----------

def mc_options() -> list[McOptionSchema]:
    return [McOptionSchema(key=k, text=f"Option {k}", correct=(k == CORRECT_KEY)) for k in ("a", "b", "c")]


def build_content(scenario_count: int = 2, question_count: int = 2, free_text_questions: int = 0) -> ModuleContentSchema:
    scenarios = [
        ScenarioSchema(id=f"s{i}", narrative=f"Scenario {i}", response_type="multiple-choice", options=mc_options())
        for i in range(scenario_count)
    ]
    questions = [
        QuizQuestionSchema(id=f"q{i}", text=f"Question {i}", response_type="multiple-choice", options=mc_options())
        for i in range(question_count)
    ]
    questions += [
        QuizQuestionSchema(
            id=f"ft{i}",
            text=f"Explain control {i}",
            response_type="free-text",
            rubric="Mentions verifying the sender through a second channel",
        )
        for i in range(free_text_questions)
    ]
    return ModuleContentSchema(
        instruction="Verify before you trust.",
        scenarios=scenarios,
        quiz_questions=questions,
        generated_at=utcnow(),
    )


class FakeCurriculumGenerator:
    def __init__(self, module_count: int = 3):
        self.module_count = module_count
        self.calls = 0
        self.fail = False

    async def generate_curriculum(self, tenant_id, profile, max_modules):
        self.calls += 1
        if self.fail:
            raise ContentGenerationFailed()
        return CurriculumOutlineSchema(
            modules=[
                CurriculumModuleSchema(title=f"Topic {i}", topic_area=f"area-{i}", job_expectation_indices=[0])
                for i in range(self.module_count)
            ],
            generated_at=utcnow(),
        )


class FakeContentGenerator:
    def __init__(self):
        self.calls = 0
        self.fail = False
        self.free_text_questions = 0

    async def generate_module_content(self, tenant_id, profile, module):
        self.calls += 1
        if self.fail:
            raise RuntimeError("model timed out")
        return build_content(free_text_questions=self.free_text_questions)


class FakeEvaluator:
    def __init__(self, score: float = 0.8):
        self.score = score
        self.rationale = "Covers the rubric"
        self.calls: list[tuple[str, str, str]] = []
        self.error: Exception | None = None

    async def evaluate(self, question, rubric, response):
        self.calls.append((question, rubric, response))
        if self.error is not None:
            raise self.error
        return ItemScoreSchema(score=self.score, rationale=self.rationale)


class RecordingAuditSink:
    def __init__(self):
        self.events = []
        self.fail = False

    async def log(self, tenant_id, event):
        if self.fail:
            raise RuntimeError("audit store down")
        self.events.append((tenant_id, event))

    def types(self) -> list[str]:
        return [event.event_type for _, event in self.events]


async def seed_profile(session_factory, tenant_id: str = TENANT, employee_id: str = EMPLOYEE) -> None:
    async with session_factory() as db:
        async with db.begin():
            db.add(
                RoleProfile(
                    tenant_id=tenant_id,
                    employee_id=employee_id,
                    status="confirmed",
                    version=2,
                    job_expectations_json=json.dumps(["Handles customer invoices", "Approves vendor payments"]),
                    confirmed_at=utcnow(),
                )
            )


@dataclass
class Harness:
    settings: Settings
    session_factory: object
    guard: ConcurrencyGuard
    sessions: SessionEngine
    modules: ModuleEngine
    purger: TranscriptPurger
    curriculum: FakeCurriculumGenerator
    content: FakeContentGenerator
    evaluator: FakeEvaluator
    audit: RecordingAuditSink
    policy: PolicyContext
    employee_id: str = EMPLOYEE

    async def start(self):
        state = await self.sessions.start(self.policy, self.employee_id)
        return state.session

    async def answer_scenarios(self, session_id: str, module_index: int):
        module = await self.modules.generate_content(self.policy, session_id, module_index)
        for scenario in module.content.scenarios:
            await self.modules.submit_scenario_answer(
                self.policy,
                session_id,
                module_index,
                ScenarioSubmitSchema(scenario_id=scenario.id, selected_option=CORRECT_KEY),
            )
        return module

    def quiz_for(self, module, correct: bool = True) -> QuizSubmitSchema:
        answers = []
        for question in module.content.quiz_questions:
            if question.response_type == "multiple-choice":
                answers.append(
                    QuizAnswerSubmitSchema(question_id=question.id, selected_option=CORRECT_KEY if correct else WRONG_KEY)
                )
            else:
                answers.append(
                    QuizAnswerSubmitSchema(question_id=question.id, free_text_response="I would call them back.")
                )
        return QuizSubmitSchema(answers=answers)

    async def complete_module(self, session_id: str, module_index: int, correct: bool = True):
        module = await self.answer_scenarios(session_id, module_index)
        return await self.modules.submit_quiz(self.policy, session_id, module_index, self.quiz_for(module, correct))

    async def complete_all(self, session_id: str, correct: bool = True):
        for index in range(self.curriculum.module_count):
            await self.complete_module(session_id, index, correct)


@pytest.fixture
async def role_profile(session_factory):
    await seed_profile(session_factory)


@pytest.fixture
async def harness(settings, session_factory, role_profile):
    guard = ConcurrencyGuard(session_factory)
    profiles = DatabaseRoleProfileProvider(session_factory)
    audit_sink = RecordingAuditSink()
    emitter = AuditEmitter(audit_sink)
    curriculum = FakeCurriculumGenerator()
    content = FakeContentGenerator()
    evaluator = FakeEvaluator()
    return Harness(
        settings=settings,
        session_factory=session_factory,
        guard=guard,
        sessions=SessionEngine(guard, curriculum, profiles, emitter, app_version="test"),
        modules=ModuleEngine(guard, content, evaluator, profiles, emitter),
        purger=TranscriptPurger(guard, settings),
        curriculum=curriculum,
        content=content,
        evaluator=evaluator,
        audit=audit_sink,
        policy=resolve_policy(TENANT, settings),
    )
