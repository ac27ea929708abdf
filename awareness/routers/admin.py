"""Maintenance routes for schedulers; guarded by the admin token."""
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException

from awareness.core.security import verify_admin_token
from awareness.routers.api import get_services
from awareness.services import TrainingServices
from awareness.services.retention import PurgeResult

router = APIRouter(prefix="/api/admin", tags=["admin"])


def require_admin(
    services: Annotated[TrainingServices, Depends(get_services)],
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    if not verify_admin_token(x_admin_token, services.settings.admin_token):
        raise HTTPException(status_code=401, detail="Invalid or missing admin token")


@router.post("/purge-transcripts", response_model=dict[str, list[PurgeResult]])
async def purge_transcripts(
    _: Annotated[None, Depends(require_admin)],
    services: Annotated[TrainingServices, Depends(get_services)],
):
    """Scrub expired free-text transcripts for every tenant with a retention window."""
    results = await services.purger.purge_all()
    return {"results": results}
