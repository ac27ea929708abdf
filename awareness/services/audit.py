"""Audit sink and per-event emitters.

Emitters are called from post-commit hooks. The sink is append-only and
best-effort: a failed write is logged and never reaches the caller.
"""
import json
import logging

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from awareness.db.session import utcnow
from awareness.models.audit_event import AuditEvent
from awareness.schemas.audit import AuditEventSchema
from awareness.schemas.training import TrainingModuleRecord, TrainingSessionRecord
from awareness.services.collaborators import AuditSink

logger = logging.getLogger(__name__)


class DatabaseAuditSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def log(self, tenant_id: str, event: AuditEventSchema) -> None:
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    db.add(
                        AuditEvent(
                            tenant_id=tenant_id,
                            event_type=event.event_type,
                            employee_id=event.employee_id,
                            timestamp=event.timestamp,
                            metadata_json=json.dumps(event.metadata),
                        )
                    )
        except Exception:
            logger.exception("Audit write failed: %s for tenant %s", event.event_type, tenant_id)


class AuditEmitter:
    """Builds the metadata for each lifecycle event and hands it to the sink."""

    def __init__(self, sink: AuditSink):
        self.sink = sink

    async def _emit(self, tenant_id: str, event_type: str, employee_id: str, metadata: dict) -> None:
        try:
            event = AuditEventSchema(
                event_type=event_type,
                employee_id=employee_id,
                timestamp=utcnow(),
                metadata=metadata,
            )
        except ValidationError:
            logger.exception("Dropping malformed audit event %s", event_type)
            return
        try:
            await self.sink.log(tenant_id, event)
        except Exception:
            logger.exception("Audit sink raised for %s", event_type)

    async def session_started(self, session: TrainingSessionRecord, module_count: int) -> None:
        await self._emit(
            session.tenant_id,
            "training-session-started",
            session.employee_id,
            {
                "session_id": session.id,
                "attempt_number": session.attempt_number,
                "role_profile_version": session.role_profile_version,
                "config_hash": session.config_hash,
                "module_count": module_count,
            },
        )

    async def module_completed(self, session: TrainingSessionRecord, module: TrainingModuleRecord,
                               module_score: float) -> None:
        await self._emit(
            session.tenant_id,
            "training-module-completed",
            session.employee_id,
            {
                "session_id": session.id,
                "module_index": module.module_index,
                "module_score": module_score,
                "scenario_count": len(module.scenario_responses),
            },
        )

    async def quiz_submitted(self, session: TrainingSessionRecord, module: TrainingModuleRecord,
                             mc_count: int, free_text_count: int) -> None:
        await self._emit(
            session.tenant_id,
            "training-quiz-submitted",
            session.employee_id,
            {
                "session_id": session.id,
                "module_index": module.module_index,
                "question_count": mc_count + free_text_count,
                "mc_count": mc_count,
                "free_text_count": free_text_count,
            },
        )

    async def evaluation_completed(self, session: TrainingSessionRecord, aggregate_score: float,
                                   passed: bool, weak_area_count: int) -> None:
        await self._emit(
            session.tenant_id,
            "training-evaluation-completed",
            session.employee_id,
            {
                "session_id": session.id,
                "attempt_number": session.attempt_number,
                "aggregate_score": aggregate_score,
                "passed": passed,
                "weak_area_count": weak_area_count,
            },
        )

    async def remediation_initiated(self, session: TrainingSessionRecord, previous_session_id: str,
                                    weak_area_count: int) -> None:
        await self._emit(
            session.tenant_id,
            "training-remediation-initiated",
            session.employee_id,
            {
                "session_id": session.id,
                "previous_session_id": previous_session_id,
                "attempt_number": session.attempt_number,
                "weak_area_count": weak_area_count,
            },
        )

    async def session_abandoned(self, session: TrainingSessionRecord, modules_completed: int,
                                total_modules: int) -> None:
        await self._emit(
            session.tenant_id,
            "training-session-abandoned",
            session.employee_id,
            {
                "session_id": session.id,
                "attempt_number": session.attempt_number,
                "modules_completed": modules_completed,
                "total_modules": total_modules,
            },
        )

    async def session_exhausted(self, session: TrainingSessionRecord, final_score: float) -> None:
        await self._emit(
            session.tenant_id,
            "training-session-exhausted",
            session.employee_id,
            {
                "session_id": session.id,
                "total_attempts": session.attempt_number,
                "final_score": final_score,
            },
        )
