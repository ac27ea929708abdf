"""Per-module progression: content generation, scenario answers, quiz submission.

Each operation reads a snapshot, checks preconditions against it, does any slow
work (content generation, free-text grading) with no transaction open, then
writes through the ConcurrencyGuard expecting the module version it read.
"""
import json
import logging

from awareness.core.config import PolicyContext
from awareness.core.errors import (
    ContentGenerationFailed,
    EvaluationFailed,
    ModuleNotFound,
    ModuleNotUnlockable,
    NoRoleProfile,
    QuizIncomplete,
    QuizNotAvailable,
    ScenarioAlreadyAnswered,
    ScenarioNotAvailable,
    SessionNotActive,
    SessionNotFound,
    TrainingError,
    UnknownScenario,
)
from awareness.db.session import utcnow
from awareness.schemas.content import CurriculumModuleSchema, QuizQuestionSchema, ScenarioSchema
from awareness.schemas.training import (
    ItemScoreSchema,
    MAX_FREE_TEXT_LENGTH,
    QuizAnswerResultSchema,
    QuizAnswerSchema,
    QuizResultSchema,
    QuizSubmitSchema,
    ScenarioResponseSchema,
    ScenarioResultSchema,
    ScenarioSubmitSchema,
    SessionStateSchema,
    TrainingModuleRecord,
)
from awareness.services import scoring
from awareness.services.audit import AuditEmitter
from awareness.services.collaborators import AnswerEvaluator, ContentGenerator, RoleProfileProvider
from awareness.services.guard import ConcurrencyGuard
from awareness.services.redaction import redact_optional
from awareness.services.state_machine import transition_module, transition_session

logger = logging.getLogger(__name__)

ACTIVE_SESSION_STATUSES = ("in-progress",)
CONTENT_READY_STATUSES = ("learning", "scenario-active", "quiz-active", "scored")


def _dump_list(items) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items])


def _stored_text(value: str | None, keep_text: bool) -> str | None:
    """Text as persisted: dropped when transcripts are off, otherwise secret-redacted."""
    return redact_optional(value) if keep_text else None


class ModuleEngine:
    def __init__(
        self,
        guard: ConcurrencyGuard,
        content_generator: ContentGenerator,
        evaluator: AnswerEvaluator,
        profiles: RoleProfileProvider,
        audit: AuditEmitter,
    ):
        self.guard = guard
        self.content_generator = content_generator
        self.evaluator = evaluator
        self.profiles = profiles
        self.audit = audit

    # ---------- reads ----------

    async def _load(self, tenant_id: str, session_id: str, module_index: int) -> tuple[SessionStateSchema, TrainingModuleRecord]:
        async with self.guard.snapshot() as repo:
            state = await repo.load_state(tenant_id, session_id)
        if state is None:
            raise SessionNotFound()
        if state.session.status not in ACTIVE_SESSION_STATUSES:
            raise SessionNotActive(f"Session is {state.session.status}")
        module = next((m for m in state.modules if m.module_index == module_index), None)
        if module is None:
            raise ModuleNotFound(f"Module {module_index} not found")
        return state, module

    async def _reload_module(self, tx, module: TrainingModuleRecord) -> TrainingModuleRecord:
        row = await tx.repo.find_module(tx.tenant_id, module.session_id, module.module_index)
        return TrainingModuleRecord.from_row(row)

    # ---------- scoring ----------

    async def _score_item(
        self,
        item: ScenarioSchema | QuizQuestionSchema,
        prompt_text: str,
        selected_option: str | None,
        free_text_response: str | None,
    ) -> ItemScoreSchema:
        if item.response_type == "multiple-choice":
            if not selected_option:
                raise EvaluationFailed(f"Item '{item.id}' requires a selected option")
            return ItemScoreSchema(score=scoring.score_mc_answer(selected_option, item.answer_key()))

        if free_text_response is None or not free_text_response.strip():
            raise EvaluationFailed(f"Item '{item.id}' requires a free-text response")
        if len(free_text_response) > MAX_FREE_TEXT_LENGTH:
            raise EvaluationFailed(
                f"Employee response exceeds maximum length of {MAX_FREE_TEXT_LENGTH} characters"
            )
        result = await self.evaluator.evaluate(prompt_text, item.rubric, free_text_response)
        return ItemScoreSchema(score=scoring.clamp_score(result.score), rationale=result.rationale)

    # ---------- operations ----------

    async def generate_content(self, policy: PolicyContext, session_id: str, module_index: int) -> TrainingModuleRecord:
        """Unlock the module and attach generated content.

        Returns the module unchanged when content already exists. A failed
        generation leaves the module in content-generating; calling again resumes.
        """
        tenant_id = policy.tenant_id
        state, module = await self._load(tenant_id, session_id, module_index)

        if module.status in CONTENT_READY_STATUSES:
            return module

        earlier = [m for m in state.modules if m.module_index < module_index]
        if any(m.status != "scored" for m in earlier):
            raise ModuleNotUnlockable(
                f"Module {module_index} cannot start before module {module_index - 1} is scored"
            )

        expected_version = module.version
        if module.status == "locked":
            async with self.guard.transaction(tenant_id) as tx:
                await tx.claim_session(session_id, ACTIVE_SESSION_STATUSES)
                await tx.claim_module(
                    module.id,
                    module.version,
                    ["locked"],
                    status=transition_module("locked", "generate-content"),
                )
            expected_version += 1

        profile = await self.profiles.find_confirmed_profile(tenant_id, state.session.employee_id)
        if profile is None:
            raise NoRoleProfile()

        outline = CurriculumModuleSchema(
            title=module.title,
            topic_area=module.topic_area,
            job_expectation_indices=module.job_expectation_indices,
        )
        try:
            content = await self.content_generator.generate_module_content(tenant_id, profile, outline)
        except TrainingError:
            raise
        except Exception as exc:
            logger.exception("Content generation failed for module %d of session %s", module_index, session_id)
            raise ContentGenerationFailed() from exc

        async with self.guard.transaction(tenant_id) as tx:
            await tx.claim_session(session_id, ACTIVE_SESSION_STATUSES)
            await tx.claim_module(
                module.id,
                expected_version,
                ["content-generating"],
                status=transition_module("content-generating", "content-ready"),
                content_json=content.model_dump_json(),
            )
            updated = await self._reload_module(tx, module)

        logger.info("Module %d of session %s ready", module_index, session_id)
        return updated

    async def submit_scenario_answer(
        self,
        policy: PolicyContext,
        session_id: str,
        module_index: int,
        submission: ScenarioSubmitSchema,
    ) -> ScenarioResultSchema:
        tenant_id = policy.tenant_id
        _, module = await self._load(tenant_id, session_id, module_index)

        if module.status not in ("learning", "scenario-active"):
            raise ScenarioNotAvailable(f"Module {module_index} is {module.status}")

        scenario = module.content.scenario(submission.scenario_id)
        if scenario is None:
            raise UnknownScenario(f"Scenario '{submission.scenario_id}' not found in module")
        if submission.scenario_id in module.answered_scenario_ids():
            raise ScenarioAlreadyAnswered()

        result = await self._score_item(
            scenario, scenario.narrative, submission.selected_option, submission.free_text_response
        )

        keep_text = policy.transcripts_enabled
        response = ScenarioResponseSchema(
            scenario_id=scenario.id,
            response_type=scenario.response_type,
            selected_option=submission.selected_option,
            free_text_response=_stored_text(submission.free_text_response, keep_text),
            score=result.score,
            rationale=_stored_text(result.rationale, keep_text),
            submitted_at=utcnow(),
        )
        responses = [*module.scenario_responses, response]
        new_status = module.status
        if module.status == "learning":
            new_status = transition_module("learning", "start-scenario")

        async with self.guard.transaction(tenant_id) as tx:
            await tx.claim_session(session_id, ACTIVE_SESSION_STATUSES)
            await tx.claim_module(
                module.id,
                module.version,
                ["learning", "scenario-active"],
                status=new_status,
                scenario_responses_json=_dump_list(responses),
            )

        return ScenarioResultSchema(
            scenario_id=scenario.id,
            score=result.score,
            rationale=result.rationale,
            module_status=new_status,
            scenarios_remaining=len(module.content.scenarios) - len(responses),
        )

    async def begin_quiz(self, policy: PolicyContext, session_id: str, module_index: int) -> TrainingModuleRecord:
        tenant_id = policy.tenant_id
        _, module = await self._load(tenant_id, session_id, module_index)

        if module.status == "quiz-active":
            return module
        if module.status != "scenario-active" or not module.all_scenarios_answered():
            raise QuizNotAvailable("All scenarios must be answered before the quiz")

        async with self.guard.transaction(tenant_id) as tx:
            await tx.claim_session(session_id, ACTIVE_SESSION_STATUSES)
            await tx.claim_module(
                module.id,
                module.version,
                ["scenario-active"],
                status=transition_module("scenario-active", "scenarios-complete"),
            )
            return await self._reload_module(tx, module)

    async def submit_quiz(
        self,
        policy: PolicyContext,
        session_id: str,
        module_index: int,
        submission: QuizSubmitSchema,
    ) -> QuizResultSchema:
        tenant_id = policy.tenant_id
        state, module = await self._load(tenant_id, session_id, module_index)

        if module.status == "scenario-active":
            if not module.all_scenarios_answered():
                raise QuizNotAvailable("All scenarios must be answered before the quiz")
        elif module.status != "quiz-active":
            raise QuizNotAvailable(f"Module {module_index} is {module.status}")

        questions = module.content.quiz_questions
        submitted_ids = [a.question_id for a in submission.answers]
        expected_ids = {q.id for q in questions}
        if len(submitted_ids) != len(set(submitted_ids)) or set(submitted_ids) != expected_ids:
            raise QuizIncomplete(
                f"Expected exactly one answer for each of {len(questions)} questions, got {len(submitted_ids)}"
            )

        by_id = {a.question_id: a for a in submission.answers}
        keep_text = policy.transcripts_enabled
        answers: list[QuizAnswerSchema] = []
        results: list[QuizAnswerResultSchema] = []
        for question in questions:
            submitted = by_id[question.id]
            result = await self._score_item(
                question, question.text, submitted.selected_option, submitted.free_text_response
            )
            answers.append(
                QuizAnswerSchema(
                    question_id=question.id,
                    response_type=question.response_type,
                    selected_option=submitted.selected_option,
                    free_text_response=_stored_text(submitted.free_text_response, keep_text),
                    score=result.score,
                    rationale=_stored_text(result.rationale, keep_text),
                    submitted_at=utcnow(),
                )
            )
            results.append(QuizAnswerResultSchema(question_id=question.id, score=result.score, rationale=result.rationale))

        module_score = scoring.compute_module_score([a.score for a in answers])
        mc_count = sum(1 for q in questions if q.response_type == "multiple-choice")
        scored_status = module.status
        if scored_status == "scenario-active":
            scored_status = transition_module(scored_status, "scenarios-complete")
        scored_status = transition_module(scored_status, "quiz-scored")

        async with self.guard.transaction(tenant_id) as tx:
            await tx.claim_session(session_id, ACTIVE_SESSION_STATUSES)
            await tx.claim_module(
                module.id,
                module.version,
                ["scenario-active", "quiz-active"],
                status=scored_status,
                quiz_answers_json=_dump_list(answers),
                module_score=module_score,
            )
            session_status = state.session.status
            if await tx.repo.count_unscored_modules(tenant_id, session_id, module.id) == 0:
                session_status = transition_session(session_status, "all-modules-scored")
                await tx.claim_session(session_id, ACTIVE_SESSION_STATUSES, status=session_status)

            scored = await self._reload_module(tx, module)
            tx.after_commit(lambda: self.audit.module_completed(state.session, scored, module_score))
            tx.after_commit(
                lambda: self.audit.quiz_submitted(state.session, scored, mc_count, len(questions) - mc_count)
            )

        logger.info("Module %d of session %s scored", module_index, session_id)
        return QuizResultSchema(
            module_index=module_index,
            module_score=module_score,
            answers=results,
            session_status=session_status,
        )
