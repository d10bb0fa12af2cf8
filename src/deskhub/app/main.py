"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from deskhub import __version__
from deskhub.adapters.instance import DockerContainerController
from deskhub.app.api.v1 import admin_router, workspaces_router
from deskhub.app.config import get_settings
from deskhub.app.logging import setup_logging
from deskhub.app.metrics import get_metrics_response
from deskhub.app.middleware import LoggingMiddleware
from deskhub.control import ProvisioningSweeper
from deskhub.core.errors import DeskHubError
from deskhub.core.logging_schema import LogEvent
from deskhub.infra import (
    close_db,
    close_docker,
    create_tables,
    get_docker_client,
    get_engine,
    get_session_factory,
    init_db,
)
from deskhub.services import WorkspaceOrchestrator

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()

    await init_db()
    if settings.database.url.startswith("sqlite"):
        # Local development without alembic
        await create_tables(get_engine())

    containers = DockerContainerController()
    orchestrator = WorkspaceOrchestrator(get_session_factory(), containers)
    app.state.orchestrator = orchestrator

    sweeper_task: asyncio.Task | None = None
    if settings.sweeper.enabled:
        sweeper = ProvisioningSweeper(get_session_factory(), containers)
        sweeper_task = asyncio.create_task(sweeper.run())

    logger.info("Starting application", extra={"event": LogEvent.APP_STARTED})

    yield

    logger.info("Shutting down application", extra={"event": LogEvent.APP_STOPPED})
    if sweeper_task is not None:
        sweeper_task.cancel()
        try:
            await sweeper_task
        except asyncio.CancelledError:
            pass

    await orchestrator.close()
    await containers.close()
    await close_docker()
    await close_db()


app = FastAPI(title="deskhub", version=__version__, lifespan=lifespan)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(DeskHubError)
async def deskhub_error_handler(request: Request, exc: DeskHubError) -> JSONResponse:
    """Handle DeskHubError exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


app.include_router(workspaces_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


async def _check_service(check_fn) -> str:
    """Check service health and return status string."""
    try:
        await check_fn()
        return "connected"
    except RuntimeError:
        return "not initialized"
    except Exception as e:
        return f"error: {e}"


async def _check_database() -> None:
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))


async def _check_docker() -> None:
    await get_docker_client().ping()


@app.get("/health")
async def health():
    results = await asyncio.gather(
        _check_service(_check_database),
        _check_service(_check_docker),
    )

    services = {
        "database": results[0],
        "docker": results[1],
    }
    is_degraded = any(s != "connected" for s in services.values())

    return {
        "status": "degraded" if is_degraded else "ok",
        "version": __version__,
        "services": services,
    }


async def metrics():
    """Prometheus metrics endpoint."""
    return get_metrics_response()


if get_settings().metrics.enabled:
    app.add_api_route("/metrics", metrics, methods=["GET"], include_in_schema=False)


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("deskhub.app.main:app", host="0.0.0.0", port=8000, log_config=None)
