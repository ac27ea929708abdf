"""Tenant-scoped reads and inserts for sessions, modules and role profiles.

Every query filters on tenant_id. Status-changing writes go through the
ConcurrencyGuard, not through this class.
"""
import json

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from awareness.models.role_profile import RoleProfile
from awareness.models.training_module import TrainingModule
from awareness.models.training_session import TrainingSession
from awareness.schemas.content import CurriculumOutlineSchema
from awareness.schemas.training import SessionStateSchema, TrainingModuleRecord, TrainingSessionRecord


def active_key_for(tenant_id: str, employee_id: str) -> str:
    return f"{tenant_id}:{employee_id}"


class TrainingRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ---------- sessions ----------

    async def find_session(self, tenant_id: str, session_id: str) -> TrainingSession | None:
        result = await self.db.execute(
            select(TrainingSession)
            .where(TrainingSession.tenant_id == tenant_id, TrainingSession.id == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_active_session(self, tenant_id: str, employee_id: str) -> TrainingSession | None:
        result = await self.db.execute(
            select(TrainingSession)
            .where(
                TrainingSession.tenant_id == tenant_id,
                TrainingSession.active_key == active_key_for(tenant_id, employee_id),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_latest_session(self, tenant_id: str, employee_id: str) -> TrainingSession | None:
        sessions = await self.session_history(tenant_id, employee_id, limit=1)
        return sessions[0] if sessions else None

    async def session_history(
        self,
        tenant_id: str,
        employee_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[TrainingSession]:
        stmt = (
            select(TrainingSession)
            .where(TrainingSession.tenant_id == tenant_id, TrainingSession.employee_id == employee_id)
            .order_by(TrainingSession.created_at.desc(), TrainingSession.attempt_number.desc())
            .execution_options(populate_existing=True)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    def add_session(self, **fields) -> TrainingSession:
        session = TrainingSession(**fields)
        self.db.add(session)
        return session

    async def load_state(self, tenant_id: str, session_id: str) -> SessionStateSchema | None:
        """Session plus its modules, parsed into records."""
        row = await self.find_session(tenant_id, session_id)
        if row is None:
            return None
        modules = await self.find_modules(tenant_id, session_id)
        return SessionStateSchema(
            session=TrainingSessionRecord.from_row(row),
            modules=[TrainingModuleRecord.from_row(m) for m in modules],
        )

    # ---------- modules ----------

    async def find_modules(self, tenant_id: str, session_id: str) -> list[TrainingModule]:
        result = await self.db.execute(
            select(TrainingModule)
            .where(TrainingModule.tenant_id == tenant_id, TrainingModule.session_id == session_id)
            .order_by(TrainingModule.module_index.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def find_module(self, tenant_id: str, session_id: str, module_index: int) -> TrainingModule | None:
        result = await self.db.execute(
            select(TrainingModule)
            .where(
                TrainingModule.tenant_id == tenant_id,
                TrainingModule.session_id == session_id,
                TrainingModule.module_index == module_index,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def count_unscored_modules(self, tenant_id: str, session_id: str, excluding_module_id: str) -> int:
        result = await self.db.execute(
            select(func.count(TrainingModule.id)).where(
                TrainingModule.tenant_id == tenant_id,
                TrainingModule.session_id == session_id,
                TrainingModule.id != excluding_module_id,
                TrainingModule.status != "scored",
            )
        )
        return int(result.scalar_one())

    async def find_modules_updated_before(self, tenant_id: str, cutoff) -> list[tuple[TrainingModule, str]]:
        """Modules last written at or before cutoff, with the owning session's status."""
        result = await self.db.execute(
            select(TrainingModule, TrainingSession.status)
            .join(TrainingSession, TrainingSession.id == TrainingModule.session_id)
            .where(
                TrainingModule.tenant_id == tenant_id,
                TrainingSession.tenant_id == tenant_id,
                TrainingModule.updated_at <= cutoff,
            )
            .order_by(TrainingModule.updated_at.asc())
        )
        return [(module, status) for module, status in result.all()]

    async def tenant_ids(self) -> list[str]:
        result = await self.db.execute(select(TrainingModule.tenant_id).distinct())
        return list(result.scalars().all())

    def add_modules(self, tenant_id: str, session_id: str, curriculum: CurriculumOutlineSchema) -> list[TrainingModule]:
        modules = [
            TrainingModule(
                tenant_id=tenant_id,
                session_id=session_id,
                module_index=index,
                title=outline.title,
                topic_area=outline.topic_area,
                job_expectation_indices_json=json.dumps(outline.job_expectation_indices),
                status="locked",
                scenario_responses_json="[]",
                quiz_answers_json="[]",
                version=1,
            )
            for index, outline in enumerate(curriculum.modules)
        ]
        self.db.add_all(modules)
        return modules

    # ---------- role profiles ----------

    async def find_confirmed_profile(self, tenant_id: str, employee_id: str) -> RoleProfile | None:
        result = await self.db.execute(
            select(RoleProfile).where(
                RoleProfile.tenant_id == tenant_id,
                RoleProfile.employee_id == employee_id,
                RoleProfile.status == "confirmed",
            )
        )
        return result.scalar_one_or_none()
