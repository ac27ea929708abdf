"""Transcript retention: scrub free text from modules of finished sessions.

Scores stay; only free-text answers and grading rationales are removed. Modules
of live sessions are skipped and picked up again on the next run. Audit events
are not touched.
"""
import json
import logging
from datetime import datetime, timedelta

from pydantic import BaseModel

from awareness.core.config import Settings, get_settings, resolve_policy
from awareness.core.errors import Conflict, TenantNotFound
from awareness.db.session import utcnow
from awareness.services.guard import ConcurrencyGuard
from awareness.services.state_machine import SESSION_TERMINAL_STATES

logger = logging.getLogger(__name__)

MODULE_STATUSES = ("locked", "content-generating", "learning", "scenario-active", "quiz-active", "scored")
FREE_TEXT_FIELDS = ("free_text_response", "rationale")


class PurgeResult(BaseModel):
    tenant_id: str
    modules_processed: int = 0
    modules_purged: int = 0
    modules_skipped: int = 0


def _has_free_text(entries: list[dict]) -> bool:
    return any(entry.get(field) for entry in entries for field in FREE_TEXT_FIELDS)


def _scrub(entries: list[dict]) -> list[dict]:
    return [{**entry, **{field: None for field in FREE_TEXT_FIELDS}} for entry in entries]


class TranscriptPurger:
    def __init__(self, guard: ConcurrencyGuard, settings: Settings | None = None):
        self.guard = guard
        self.settings = settings or get_settings()

    async def purge(self, tenant_id: str, now: datetime | None = None) -> PurgeResult:
        result = PurgeResult(tenant_id=tenant_id)
        policy = resolve_policy(tenant_id, self.settings)
        if policy.retention_days is None:
            return result

        cutoff = (now or utcnow()) - timedelta(days=policy.retention_days)
        async with self.guard.snapshot() as repo:
            candidates = await repo.find_modules_updated_before(tenant_id, cutoff)

        for module, session_status in candidates:
            result.modules_processed += 1
            if session_status not in SESSION_TERMINAL_STATES:
                result.modules_skipped += 1
                continue

            responses = json.loads(module.scenario_responses_json or "[]")
            answers = json.loads(module.quiz_answers_json or "[]")
            if not _has_free_text(responses) and not _has_free_text(answers):
                continue

            try:
                async with self.guard.transaction(tenant_id) as tx:
                    await tx.claim_module(
                        module.id,
                        module.version,
                        MODULE_STATUSES,
                        scenario_responses_json=json.dumps(_scrub(responses)),
                        quiz_answers_json=json.dumps(_scrub(answers)),
                    )
            except Conflict:
                result.modules_skipped += 1
                continue
            result.modules_purged += 1

        logger.info(
            "Transcript purge for tenant %s: processed=%d purged=%d skipped=%d",
            tenant_id,
            result.modules_processed,
            result.modules_purged,
            result.modules_skipped,
        )
        return result

    async def purge_all(self, now: datetime | None = None) -> list[PurgeResult]:
        """Purge every tenant that has training data or a configured policy."""
        async with self.guard.snapshot() as repo:
            tenant_ids = set(await repo.tenant_ids())
        tenant_ids.update(self.settings.tenants)

        results = []
        for tenant_id in sorted(tenant_ids):
            try:
                results.append(await self.purge(tenant_id, now=now))
            except TenantNotFound:
                logger.warning("Skipping purge for unconfigured tenant %s", tenant_id)
        return results
