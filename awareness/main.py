"""Security Awareness Training - FastAPI app entry point.

Run with: uvicorn awareness.main:app
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from awareness.core.config import Settings, get_settings
from awareness.core.errors import TrainingError
from awareness.db.base import Base
from awareness.db.session import AsyncSessionLocal, engine
from awareness.routers import admin, api
from awareness.services import TrainingServices, build_services

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def training_error_handler(request: Request, exc: TrainingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s on %s %s", exc.code, request.method, request.url.path)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "message": exc.message})


def create_app(services: TrainingServices | None = None) -> FastAPI:
    settings = services.settings if services else get_settings()
    services = services or build_services(settings, engine, AsyncSessionLocal)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # create tables (async); alembic owns schema changes in deployed databases
        async with services.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        yield
        await services.engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Security awareness training sessions, modules and evaluation",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.services = services
    app.add_exception_handler(TrainingError, training_error_handler)

    app.include_router(api.router)
    app.include_router(admin.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


configure_logging(get_settings())
app = create_app()
