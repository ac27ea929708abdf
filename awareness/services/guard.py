"""Precondition-checked transactional writes for sessions and modules.

Each claim is a single conditional UPDATE that matches the row only while it
still has the status (and version) the caller read. Zero matched rows means a
concurrent request got there first, which surfaces as Conflict.
"""
import inspect
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Iterable

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from awareness.core.errors import Conflict
from awareness.db.session import utcnow
from awareness.models.training_module import TrainingModule
from awareness.models.training_session import TrainingSession
from awareness.services.repository import TrainingRepository

logger = logging.getLogger(__name__)

AfterCommit = Callable[[], Awaitable[None] | None]
READ_ONLY_OPTIONS = {"sqlite_begin": "DEFERRED"}


class GuardedTransaction:
    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id
        self.repo = TrainingRepository(db)
        self._after_commit: list[AfterCommit] = []

    async def claim_session(
        self,
        session_id: str,
        allowed_statuses: Iterable[str],
        expected_version: int | None = None,
        **values,
    ) -> None:
        conditions = [
            TrainingSession.tenant_id == self.tenant_id,
            TrainingSession.id == session_id,
            TrainingSession.status.in_(list(allowed_statuses)),
        ]
        if expected_version is not None:
            conditions.append(TrainingSession.version == expected_version)

        stmt = (
            update(TrainingSession)
            .where(*conditions)
            .values(version=TrainingSession.version + 1, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            logger.info("Session %s changed concurrently; claim rejected", session_id)
            raise Conflict()

    async def claim_module(
        self,
        module_id: str,
        expected_version: int,
        allowed_statuses: Iterable[str],
        **values,
    ) -> None:
        stmt = (
            update(TrainingModule)
            .where(
                TrainingModule.tenant_id == self.tenant_id,
                TrainingModule.id == module_id,
                TrainingModule.status.in_(list(allowed_statuses)),
                TrainingModule.version == expected_version,
            )
            .values(version=TrainingModule.version + 1, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            logger.info("Module %s changed concurrently; claim rejected", module_id)
            raise Conflict()

    def after_commit(self, callback: AfterCommit) -> None:
        """Register a hook that runs only if the transaction commits."""
        self._after_commit.append(callback)

    async def _run_after_commit(self) -> None:
        for callback in self._after_commit:
            try:
                outcome = callback()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Post-commit hook failed for tenant %s", self.tenant_id)


class ConcurrencyGuard:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def transaction(self, tenant_id: str) -> AsyncIterator[GuardedTransaction]:
        """Open a tenant-scoped transaction; commit on success, roll back on any error."""
        async with self.session_factory() as db:
            tx = GuardedTransaction(db, tenant_id)
            async with db.begin():
                yield tx
        await tx._run_after_commit()

    @asynccontextmanager
    async def snapshot(self) -> AsyncIterator[TrainingRepository]:
        """Read-only view for precondition checks before any slow work."""
        async with self.session_factory() as db:
            await db.connection(execution_options=READ_ONLY_OPTIONS)
            yield TrainingRepository(db)
