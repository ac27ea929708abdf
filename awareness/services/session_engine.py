"""Session lifecycle: start, remediation, evaluation, abandonment, reads.

The employee's live session is marked by active_key; the unique index on it
keeps at most one live session per (tenant, employee) even under concurrent
starts.
"""
import json
import logging

from sqlalchemy.exc import IntegrityError

from awareness.core.config import PolicyContext, get_settings
from awareness.core.errors import (
    AttemptsExhausted,
    ContentGenerationFailed,
    IncompleteModules,
    NoRoleProfile,
    RemediationNotAvailable,
    SessionAlreadyActive,
    SessionNotActive,
    SessionNotFound,
    TrainingError,
)
from awareness.db.session import utcnow
from awareness.schemas.content import RoleProfileSchema
from awareness.schemas.training import EvaluationResultSchema, SessionStateSchema, TrainingSessionRecord
from awareness.services import scoring
from awareness.services.audit import AuditEmitter
from awareness.services.collaborators import CurriculumGenerator, RoleProfileProvider
from awareness.services.guard import ConcurrencyGuard
from awareness.services.repository import active_key_for
from awareness.services.state_machine import (
    SESSION_NON_TERMINAL_STATES,
    is_session_terminal,
    transition_session,
)

logger = logging.getLogger(__name__)

# statuses in which the curriculum is still being built
GENERATING_STATUSES = {
    "curriculum-generating": "curriculum-generated",
    "in-remediation": "remediation-modules-ready",
}


class SessionEngine:
    def __init__(
        self,
        guard: ConcurrencyGuard,
        curriculum_generator: CurriculumGenerator,
        profiles: RoleProfileProvider,
        audit: AuditEmitter,
        app_version: str | None = None,
    ):
        self.guard = guard
        self.curriculum_generator = curriculum_generator
        self.profiles = profiles
        self.audit = audit
        self.app_version = app_version or get_settings().app_version

    # ---------- reads ----------

    async def get_current(self, tenant_id: str, employee_id: str) -> SessionStateSchema:
        """The live session, or the most recent one when none is live."""
        async with self.guard.snapshot() as repo:
            row = await repo.find_active_session(tenant_id, employee_id)
            if row is None:
                row = await repo.find_latest_session(tenant_id, employee_id)
            if row is None:
                raise SessionNotFound()
            return await repo.load_state(tenant_id, row.id)

    async def history(
        self,
        tenant_id: str,
        employee_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SessionStateSchema]:
        async with self.guard.snapshot() as repo:
            rows = await repo.session_history(tenant_id, employee_id, limit=limit, offset=offset)
            return [await repo.load_state(tenant_id, row.id) for row in rows]

    async def _require_profile(self, tenant_id: str, employee_id: str) -> RoleProfileSchema:
        profile = await self.profiles.find_confirmed_profile(tenant_id, employee_id)
        if profile is None:
            raise NoRoleProfile()
        return profile

    # ---------- start ----------

    async def start(self, policy: PolicyContext, employee_id: str) -> SessionStateSchema:
        """Open a new attempt, or resume one whose curriculum is not yet built."""
        tenant_id = policy.tenant_id
        profile = await self._require_profile(tenant_id, employee_id)

        async with self.guard.snapshot() as repo:
            active = await repo.find_active_session(tenant_id, employee_id)
            latest = None if active else await repo.find_latest_session(tenant_id, employee_id)

        if active is not None:
            record = TrainingSessionRecord.from_row(active)
            if record.status in GENERATING_STATUSES:
                logger.info("Resuming curriculum generation for session %s", record.id)
                return await self._build_curriculum(policy, profile, record)
            raise SessionAlreadyActive()

        attempt_number = self._next_attempt_number(policy, latest)
        try:
            async with self.guard.transaction(tenant_id) as tx:
                row = tx.repo.add_session(
                    tenant_id=tenant_id,
                    employee_id=employee_id,
                    attempt_number=attempt_number,
                    status="curriculum-generating",
                    active_key=active_key_for(tenant_id, employee_id),
                    role_profile_id=profile.id,
                    role_profile_version=profile.version,
                    config_hash=policy.config_hash,
                    app_version=self.app_version,
                    version=1,
                )
                await tx.db.flush()
                record = TrainingSessionRecord.from_row(row)
        except IntegrityError as exc:
            raise SessionAlreadyActive() from exc

        logger.info("Session %s created (attempt %d)", record.id, attempt_number)
        return await self._build_curriculum(policy, profile, record)

    @staticmethod
    def _next_attempt_number(policy: PolicyContext, latest) -> int:
        if latest is None or latest.status == "passed":
            return 1
        if latest.status == "exhausted":
            raise AttemptsExhausted()
        attempt_number = latest.attempt_number + 1
        if attempt_number > policy.max_attempts:
            raise AttemptsExhausted()
        return attempt_number

    async def _build_curriculum(
        self,
        policy: PolicyContext,
        profile: RoleProfileSchema,
        session: TrainingSessionRecord,
    ) -> SessionStateSchema:
        """Generate the curriculum and move the session to in-progress with locked modules."""
        try:
            curriculum = await self.curriculum_generator.generate_curriculum(
                policy.tenant_id, profile, policy.max_modules
            )
        except TrainingError:
            raise
        except Exception as exc:
            logger.exception("Curriculum generation failed for session %s", session.id)
            raise ContentGenerationFailed() from exc

        if len(curriculum.modules) > policy.max_modules:
            curriculum = curriculum.model_copy(update={"modules": curriculum.modules[: policy.max_modules]})

        event = GENERATING_STATUSES[session.status]
        async with self.guard.transaction(policy.tenant_id) as tx:
            await tx.claim_session(
                session.id,
                [session.status],
                expected_version=session.version,
                status=transition_session(session.status, event),
                curriculum_json=curriculum.model_dump_json(),
            )
            tx.repo.add_modules(policy.tenant_id, session.id, curriculum)
            await tx.db.flush()
            state = await tx.repo.load_state(policy.tenant_id, session.id)
            if event == "curriculum-generated":
                tx.after_commit(lambda: self.audit.session_started(state.session, len(state.modules)))

        logger.info("Session %s in progress with %d modules", session.id, len(state.modules))
        return state

    # ---------- remediation ----------

    async def start_remediation(self, policy: PolicyContext, employee_id: str) -> SessionStateSchema:
        """Supersede the failed session with a fresh attempt over the full curriculum."""
        tenant_id = policy.tenant_id
        if not policy.enable_remediation:
            raise RemediationNotAvailable("Remediation is disabled for this tenant")
        profile = await self._require_profile(tenant_id, employee_id)

        async with self.guard.snapshot() as repo:
            active = await repo.find_active_session(tenant_id, employee_id)
        if active is None:
            raise RemediationNotAvailable()

        failed = TrainingSessionRecord.from_row(active)
        if failed.status == "in-remediation":
            return await self._build_curriculum(policy, profile, failed)
        if failed.status != "failed":
            raise RemediationNotAvailable(f"Most recent session is {failed.status}")

        attempt_number = failed.attempt_number + 1
        if attempt_number > policy.max_attempts:
            raise AttemptsExhausted()

        weak_areas = failed.weak_areas or []
        try:
            async with self.guard.transaction(tenant_id) as tx:
                await tx.claim_session(failed.id, ["failed"], expected_version=failed.version, active_key=None)
                row = tx.repo.add_session(
                    tenant_id=tenant_id,
                    employee_id=employee_id,
                    attempt_number=attempt_number,
                    status="in-remediation",
                    active_key=active_key_for(tenant_id, employee_id),
                    role_profile_id=profile.id,
                    role_profile_version=profile.version,
                    config_hash=policy.config_hash,
                    app_version=self.app_version,
                    weak_areas_json=json.dumps(weak_areas),
                    remediates_session_id=failed.id,
                    version=1,
                )
                await tx.db.flush()
                record = TrainingSessionRecord.from_row(row)
                tx.after_commit(lambda: self.audit.remediation_initiated(record, failed.id, len(weak_areas)))
        except IntegrityError as exc:
            raise SessionAlreadyActive() from exc

        logger.info("Remediation session %s opened for attempt %d", record.id, attempt_number)
        return await self._build_curriculum(policy, profile, record)

    # ---------- evaluate ----------

    async def evaluate(self, policy: PolicyContext, session_id: str) -> EvaluationResultSchema:
        tenant_id = policy.tenant_id
        async with self.guard.snapshot() as repo:
            state = await repo.load_state(tenant_id, session_id)
        if state is None:
            raise SessionNotFound()

        session = state.session
        if session.status not in ("in-progress", "evaluating"):
            raise SessionNotActive(f"Session is {session.status}")
        if not state.modules or any(m.status != "scored" for m in state.modules):
            raise IncompleteModules()

        module_scores = [m.module_score for m in state.modules]
        aggregate_score = scoring.compute_aggregate_score(module_scores)
        passed = scoring.is_passing(aggregate_score, policy.pass_threshold)
        weak_areas = [] if passed else scoring.identify_weak_areas(
            ((m.title, m.module_score) for m in state.modules), policy.pass_threshold
        )

        status = session.status
        if status == "in-progress":
            status = transition_session(status, "all-modules-scored")
        if passed:
            status = transition_session(status, "evaluation-passed")
            next_action = "complete"
        elif session.attempt_number < policy.max_attempts and policy.enable_remediation:
            status = transition_session(status, "evaluation-failed")
            next_action = "remediation-available"
        else:
            status = transition_session(status, "evaluation-exhausted")
            next_action = "exhausted"

        values = {
            "status": status,
            "aggregate_score": aggregate_score,
            "weak_areas_json": json.dumps(weak_areas),
            "completed_at": utcnow(),
        }
        if is_session_terminal(status):
            values["active_key"] = None

        async with self.guard.transaction(tenant_id) as tx:
            await tx.claim_session(session_id, ["in-progress", "evaluating"], **values)
            tx.after_commit(
                lambda: self.audit.evaluation_completed(session, aggregate_score, passed, len(weak_areas))
            )
            if status == "exhausted":
                tx.after_commit(lambda: self.audit.session_exhausted(session, aggregate_score))

        logger.info("Session %s evaluated: %s", session_id, status)
        return EvaluationResultSchema(
            session_id=session_id,
            aggregate_score=aggregate_score,
            passed=passed,
            attempt_number=session.attempt_number,
            weak_areas=weak_areas,
            next_action=next_action,
            status=status,
        )

    # ---------- abandon ----------

    async def abandon(self, policy: PolicyContext, session_id: str) -> TrainingSessionRecord:
        tenant_id = policy.tenant_id
        async with self.guard.snapshot() as repo:
            state = await repo.load_state(tenant_id, session_id)
        if state is None:
            raise SessionNotFound()

        session = state.session
        if is_session_terminal(session.status) or not session.active:
            raise SessionNotActive(f"Session is {session.status}")

        modules_completed = sum(1 for m in state.modules if m.status == "scored")
        async with self.guard.transaction(tenant_id) as tx:
            await tx.claim_session(
                session_id,
                SESSION_NON_TERMINAL_STATES,
                expected_version=session.version,
                status=transition_session(session.status, "session-abandoned"),
                active_key=None,
                completed_at=utcnow(),
            )
            row = await tx.repo.find_session(tenant_id, session_id)
            abandoned = TrainingSessionRecord.from_row(row)
            tx.after_commit(
                lambda: self.audit.session_abandoned(abandoned, modules_completed, len(state.modules))
            )

        logger.info("Session %s abandoned after %d modules", session_id, modules_completed)
        return abandoned
