import asyncio

import pytest
from sqlalchemy import func, select

from awareness.core.errors import Conflict, PreconditionViolation, SessionAlreadyActive
from awareness.models.training_session import TrainingSession
from awareness.schemas.training import ItemScoreSchema, ScenarioSubmitSchema

pytestmark = pytest.mark.anyio


class RendezvousEvaluator:
    """Holds every grading call until `parties` calls are in flight."""

    def __init__(self, parties: int = 2):
        self.parties = parties
        self.arrived = 0
        self.ready = asyncio.Event()

    async def evaluate(self, question, rubric, response):
        self.arrived += 1
        if self.arrived >= self.parties:
            self.ready.set()
        await asyncio.wait_for(self.ready.wait(), timeout=5)
        return ItemScoreSchema(score=1.0, rationale="ok")


class GateEvaluator:
    """Signals when grading starts, then waits to be released."""

    def __init__(self):
        self.arrived = asyncio.Event()
        self.release = asyncio.Event()

    async def evaluate(self, question, rubric, response):
        self.arrived.set()
        await asyncio.wait_for(self.release.wait(), timeout=5)
        return ItemScoreSchema(score=1.0, rationale="ok")


async def _prepare_quiz(harness):
    harness.content.free_text_questions = 1
    harness.modules.evaluator = RendezvousEvaluator()
    session = await harness.start()
    module = await harness.answer_scenarios(session.id, 0)
    return session, module


async def test_concurrent_quiz_submissions_one_wins(harness):
    session, module = await _prepare_quiz(harness)
    submission = harness.quiz_for(module)

    results = await asyncio.gather(
        harness.modules.submit_quiz(harness.policy, session.id, 0, submission),
        harness.modules.submit_quiz(harness.policy, session.id, 0, submission),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], Conflict)

    async with harness.guard.snapshot() as repo:
        state = await repo.load_state(harness.policy.tenant_id, session.id)
    assert state.modules[0].status == "scored"
    assert len(state.modules[0].quiz_answers) == len(module.content.quiz_questions)
    assert harness.audit.types().count("training-module-completed") == 1


async def test_abandon_during_quiz_grading_rejects_stale_submission(harness):
    session, module = await _prepare_quiz(harness)
    harness.modules.evaluator = evaluator = GateEvaluator()

    async def abandon_while_grading():
        await evaluator.arrived.wait()
        try:
            return await harness.sessions.abandon(harness.policy, session.id)
        finally:
            evaluator.release.set()

    quiz, abandoned = await asyncio.gather(
        harness.modules.submit_quiz(harness.policy, session.id, 0, harness.quiz_for(module)),
        abandon_while_grading(),
        return_exceptions=True,
    )

    assert abandoned.status == "abandoned"
    assert isinstance(quiz, Conflict)
    async with harness.guard.snapshot() as repo:
        state = await repo.load_state(harness.policy.tenant_id, session.id)
    assert state.session.status == "abandoned"
    assert state.modules[0].quiz_answers == []


async def test_concurrent_starts_create_one_session(harness):
    results = await asyncio.gather(harness.start(), harness.start(), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) >= 1
    for failure in failures:
        assert isinstance(failure, (SessionAlreadyActive, Conflict))

    async with harness.session_factory() as db:
        count = (await db.execute(select(func.count(TrainingSession.id)))).scalar_one()
    assert count == 1


async def test_stale_duplicate_scenario_answer_is_rejected(harness):
    session = await harness.start()
    await harness.modules.generate_content(harness.policy, session.id, 0)
    answer = ScenarioSubmitSchema(scenario_id="s0", selected_option="a")
    results = await asyncio.gather(
        harness.modules.submit_scenario_answer(harness.policy, session.id, 0, answer),
        harness.modules.submit_scenario_answer(harness.policy, session.id, 0, answer),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], (Conflict, PreconditionViolation))
    async with harness.guard.snapshot() as repo:
        state = await repo.load_state(harness.policy.tenant_id, session.id)
    assert [r.scenario_id for r in state.modules[0].scenario_responses] == ["s0"]


async def test_snapshots_do_not_block_each_other_or_a_starting_writer(harness):
    session = await harness.start()

    async with harness.guard.snapshot() as first:
        assert (await first.find_session(harness.policy.tenant_id, session.id)) is not None
        async with harness.guard.snapshot() as second:
            state = await second.load_state(harness.policy.tenant_id, session.id)
            assert state.session.id == session.id
        async with harness.guard.transaction(harness.policy.tenant_id) as tx:
            assert (await tx.repo.find_session(harness.policy.tenant_id, session.id)) is not None
