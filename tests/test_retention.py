from datetime import timedelta

import pytest

from awareness.core.config import TenantPolicyOverride
from awareness.db.session import utcnow
from awareness.services.retention import TranscriptPurger

pytestmark = pytest.mark.anyio


def _later(days: int = 60):
    return utcnow() + timedelta(days=days)


@pytest.fixture
def purger(harness):
    settings = harness.settings.model_copy(update={"tenants": {"acme": TenantPolicyOverride(retention_days=30)}})
    return TranscriptPurger(harness.guard, settings)


async def _finished_session_with_free_text(harness):
    harness.content.free_text_questions = 1
    session = await harness.start()
    await harness.complete_all(session.id)
    await harness.sessions.evaluate(harness.policy, session.id)
    return session


async def _modules(harness, session_id):
    async with harness.guard.snapshot() as repo:
        state = await repo.load_state(harness.policy.tenant_id, session_id)
    return state.modules


async def test_no_retention_window_is_a_no_op(harness):
    session = await _finished_session_with_free_text(harness)

    result = await harness.purger.purge("acme", now=_later())

    assert result.modules_processed == 0
    modules = await _modules(harness, session.id)
    assert all(a.free_text_response for m in modules for a in m.quiz_answers if a.response_type == "free-text")


async def test_expired_transcripts_are_scrubbed_and_scores_kept(harness, purger):
    session = await _finished_session_with_free_text(harness)
    before = await _modules(harness, session.id)

    result = await purger.purge("acme", now=_later())

    assert (result.modules_processed, result.modules_purged, result.modules_skipped) == (3, 3, 0)
    after = await _modules(harness, session.id)
    for old, new in zip(before, after):
        assert new.module_score == old.module_score
        assert [a.score for a in new.quiz_answers] == [a.score for a in old.quiz_answers]
        assert all(a.free_text_response is None and a.rationale is None for a in new.quiz_answers)


async def test_recent_transcripts_survive(harness, purger):
    await _finished_session_with_free_text(harness)

    result = await purger.purge("acme", now=utcnow())

    assert result.modules_processed == 0


async def test_live_session_modules_are_skipped(harness, purger):
    harness.content.free_text_questions = 1
    session = await harness.start()
    await harness.complete_module(session.id, 0)

    result = await purger.purge("acme", now=_later())

    assert result.modules_purged == 0
    assert result.modules_skipped == 3
    modules = await _modules(harness, session.id)
    free_text = [a for a in modules[0].quiz_answers if a.response_type == "free-text"][0]
    assert free_text.free_text_response == "I would call them back."


async def test_multiple_choice_only_modules_are_left_alone(harness, purger):
    session = await harness.start()
    await harness.complete_all(session.id)
    await harness.sessions.evaluate(harness.policy, session.id)
    before = await _modules(harness, session.id)

    result = await purger.purge("acme", now=_later())

    assert result.modules_processed == 3
    assert result.modules_purged == 0
    after = await _modules(harness, session.id)
    assert [m.version for m in after] == [m.version for m in before]


async def test_purge_is_idempotent(harness, purger):
    await _finished_session_with_free_text(harness)
    await purger.purge("acme", now=_later())

    again = await purger.purge("acme", now=_later())

    assert again.modules_purged == 0
    assert again.modules_skipped == 0


async def test_purge_all_covers_tenants_with_training_data(harness, purger):
    await _finished_session_with_free_text(harness)

    results = await purger.purge_all(now=_later())

    assert [r.tenant_id for r in results] == ["acme"]
    assert results[0].modules_purged == 3
