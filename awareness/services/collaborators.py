"""Interfaces the engines depend on, plus the database-backed role-profile provider."""
import json
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from awareness.schemas.audit import AuditEventSchema
from awareness.schemas.content import (
    CurriculumModuleSchema,
    CurriculumOutlineSchema,
    ModuleContentSchema,
    RoleProfileSchema,
)
from awareness.schemas.training import ItemScoreSchema
from awareness.services.repository import TrainingRepository


class CurriculumGenerator(Protocol):
    async def generate_curriculum(
        self,
        tenant_id: str,
        profile: RoleProfileSchema,
        max_modules: int,
    ) -> CurriculumOutlineSchema: ...


class ContentGenerator(Protocol):
    async def generate_module_content(
        self,
        tenant_id: str,
        profile: RoleProfileSchema,
        module: CurriculumModuleSchema,
    ) -> ModuleContentSchema: ...


class AnswerEvaluator(Protocol):
    async def evaluate(self, question: str, rubric: str, response: str) -> ItemScoreSchema: ...


class RoleProfileProvider(Protocol):
    async def find_confirmed_profile(self, tenant_id: str, employee_id: str) -> RoleProfileSchema | None: ...


class AuditSink(Protocol):
    async def log(self, tenant_id: str, event: AuditEventSchema) -> None: ...


class DatabaseRoleProfileProvider:
    """Reads confirmed profiles written by the intake flow."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_confirmed_profile(self, tenant_id: str, employee_id: str) -> RoleProfileSchema | None:
        async with self.session_factory() as db:
            row = await TrainingRepository(db).find_confirmed_profile(tenant_id, employee_id)
        if row is None:
            return None
        return RoleProfileSchema(
            id=row.id,
            tenant_id=row.tenant_id,
            employee_id=row.employee_id,
            version=row.version,
            job_expectations=json.loads(row.job_expectations_json or "[]"),
        )
