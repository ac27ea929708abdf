"""Wiring of engines and collaborators for the application."""
from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from awareness.core.config import Settings
from awareness.services.audit import AuditEmitter, DatabaseAuditSink
from awareness.services.collaborators import DatabaseRoleProfileProvider
from awareness.services.evaluator import FreeTextEvaluator
from awareness.services.generation import LLMContentGenerator
from awareness.services.guard import ConcurrencyGuard
from awareness.services.llm import ChatCompletionClient
from awareness.services.module_engine import ModuleEngine
from awareness.services.retention import TranscriptPurger
from awareness.services.session_engine import SessionEngine


@dataclass
class TrainingServices:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    guard: ConcurrencyGuard
    sessions: SessionEngine
    modules: ModuleEngine
    purger: TranscriptPurger


def build_services(
    settings: Settings,
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    llm_transport: httpx.AsyncBaseTransport | None = None,
) -> TrainingServices:
    client = ChatCompletionClient.from_settings(settings, transport=llm_transport)
    generator = LLMContentGenerator(client)
    profiles = DatabaseRoleProfileProvider(session_factory)
    audit = AuditEmitter(DatabaseAuditSink(session_factory))
    guard = ConcurrencyGuard(session_factory)

    return TrainingServices(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        guard=guard,
        sessions=SessionEngine(guard, generator, profiles, audit, app_version=settings.app_version),
        modules=ModuleEngine(guard, generator, FreeTextEvaluator(client), profiles, audit),
        purger=TranscriptPurger(guard, settings),
    )


__all__ = ["TrainingServices", "build_services"]
