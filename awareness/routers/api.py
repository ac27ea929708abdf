"""API routes: training session lifecycle and module progression (JSON)."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from awareness.core.config import PolicyContext, resolve_policy
from awareness.core.errors import SessionNotFound
from awareness.core.security import Identity, identity_from_headers
from awareness.schemas.training import (
    EvaluationResultSchema,
    ModuleOutSchema,
    QuizResultSchema,
    QuizSubmitSchema,
    ScenarioResultSchema,
    ScenarioSubmitSchema,
    SessionStateOutSchema,
    TrainingSessionRecord,
)
from awareness.services import TrainingServices

router = APIRouter(prefix="/api/training", tags=["training"])


def get_services(request: Request) -> TrainingServices:
    return request.app.state.services


def get_identity(request: Request) -> Identity:
    identity = identity_from_headers(request.headers)
    if identity is None:
        raise HTTPException(status_code=401, detail="Missing tenant or employee identity")
    return identity


def get_policy(
    identity: Annotated[Identity, Depends(get_identity)],
    services: Annotated[TrainingServices, Depends(get_services)],
) -> PolicyContext:
    return resolve_policy(identity.tenant_id, services.settings)


async def get_active_session_id(
    identity: Annotated[Identity, Depends(get_identity)],
    services: Annotated[TrainingServices, Depends(get_services)],
) -> str:
    """The caller's live session; module and evaluation routes act on it only."""
    async with services.guard.snapshot() as repo:
        row = await repo.find_active_session(identity.tenant_id, identity.employee_id)
    if row is None:
        raise SessionNotFound("No active training session")
    return row.id


Services = Annotated[TrainingServices, Depends(get_services)]
CurrentIdentity = Annotated[Identity, Depends(get_identity)]
Policy = Annotated[PolicyContext, Depends(get_policy)]
ActiveSessionId = Annotated[str, Depends(get_active_session_id)]


# ---------- session ----------

@router.get("/session", response_model=SessionStateOutSchema)
async def get_session(identity: CurrentIdentity, policy: Policy, services: Services):
    """Current session (live, or most recent) with its modules."""
    state = await services.sessions.get_current(identity.tenant_id, identity.employee_id)
    return SessionStateOutSchema.from_state(state, policy.max_attempts)


@router.post("/session", response_model=SessionStateOutSchema, status_code=201)
async def start_session(identity: CurrentIdentity, policy: Policy, services: Services):
    state = await services.sessions.start(policy, identity.employee_id)
    return SessionStateOutSchema.from_state(state, policy.max_attempts)


@router.post("/session/remediation", response_model=SessionStateOutSchema, status_code=201)
async def start_remediation(identity: CurrentIdentity, policy: Policy, services: Services):
    state = await services.sessions.start_remediation(policy, identity.employee_id)
    return SessionStateOutSchema.from_state(state, policy.max_attempts)


@router.get("/history", response_model=list[SessionStateOutSchema])
async def get_history(
    identity: CurrentIdentity,
    policy: Policy,
    services: Services,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    states = await services.sessions.history(identity.tenant_id, identity.employee_id, limit=limit, offset=offset)
    return [SessionStateOutSchema.from_state(s, policy.max_attempts) for s in states]


@router.post("/evaluate", response_model=EvaluationResultSchema)
async def evaluate_session(policy: Policy, session_id: ActiveSessionId, services: Services):
    return await services.sessions.evaluate(policy, session_id)


@router.post("/abandon", response_model=TrainingSessionRecord)
async def abandon_session(policy: Policy, session_id: ActiveSessionId, services: Services):
    return await services.sessions.abandon(policy, session_id)


# ---------- modules ----------

@router.post("/module/{module_index}/content", response_model=ModuleOutSchema)
async def generate_module_content(
    module_index: int,
    policy: Policy,
    session_id: ActiveSessionId,
    services: Services,
):
    """Unlock the module and return its content (answer keys and rubrics stripped)."""
    module = await services.modules.generate_content(policy, session_id, module_index)
    return ModuleOutSchema.from_record(module)


@router.post("/module/{module_index}/scenario", response_model=ScenarioResultSchema)
async def submit_scenario(
    module_index: int,
    body: ScenarioSubmitSchema,
    policy: Policy,
    session_id: ActiveSessionId,
    services: Services,
):
    return await services.modules.submit_scenario_answer(policy, session_id, module_index, body)


@router.post("/module/{module_index}/quiz/start", response_model=ModuleOutSchema)
async def start_quiz(
    module_index: int,
    policy: Policy,
    session_id: ActiveSessionId,
    services: Services,
):
    module = await services.modules.begin_quiz(policy, session_id, module_index)
    return ModuleOutSchema.from_record(module)


@router.post("/module/{module_index}/quiz", response_model=QuizResultSchema)
async def submit_quiz(
    module_index: int,
    body: QuizSubmitSchema,
    policy: Policy,
    session_id: ActiveSessionId,
    services: Services,
):
    return await services.modules.submit_quiz(policy, session_id, module_index, body)
