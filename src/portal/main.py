"""
Sto. Niño Portal API entry point.

Builds the FastAPI app: backing services are brought up in the lifespan,
the versioned API is mounted under /api/v1, and in development a small
set of endpoints for poking at the maintenance jobs is added.
"""

from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from portal.api import api_router
from portal.core import scheduler
from portal.core.config import settings
from portal.core.database import close_db, init_db
from portal.core.locks import KeyedLock
from portal.core.notifications import Notifier
from portal.core.redis import close_redis, init_redis
from portal.modules.lifecycle.jobs import register_lifecycle_jobs


async def _bring_up(label: str, start: Callable[[], Awaitable[object]]) -> None:
    # Outside production a missing backing service is reported and skipped
    try:
        await start()
    except Exception as e:
        print(f"[FAIL] {label}: {e}")
        if settings.is_production:
            raise
    else:
        print(f"[OK] {label}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start Redis, the database and the scheduler; tear down in reverse."""
    print(f"Sto. Nino Portal API starting ({settings.python_env})")

    # Rate limits fall back to process memory when Redis is down
    await _bring_up("Redis", init_redis)
    await _bring_up("Database", init_db)

    app.state.locks = KeyedLock()
    app.state.notifier = Notifier()

    async def _start_jobs() -> None:
        register_lifecycle_jobs(app.state.locks, app.state.notifier)
        await scheduler.start_scheduler()

    await _bring_up("Maintenance scheduler", _start_jobs)

    yield

    print("Sto. Nino Portal API stopping")
    await scheduler.stop_scheduler()
    await app.state.notifier.drain()
    await close_redis()
    await close_db()
    print("[OK] Shutdown complete")


debug_router = APIRouter(prefix="/debug/jobs", tags=["Debug"])


@debug_router.get("")
async def list_jobs():
    return {"jobs": scheduler.list_registered_jobs()}


@debug_router.post("/{job_id}/trigger")
async def trigger_job(job_id: str):
    """Run lifecycle_purge_tokens or lifecycle_reconcile immediately."""
    try:
        return await scheduler.trigger_job_manually(job_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@debug_router.post("/{job_id}/pause")
async def pause_job(job_id: str):
    return {"job_id": job_id, "paused": scheduler.pause_job(job_id)}


@debug_router.post("/{job_id}/resume")
async def resume_job(job_id: str):
    return {"job_id": job_id, "resumed": scheduler.resume_job(job_id)}


def create_app() -> FastAPI:
    development = settings.is_development
    application = FastAPI(
        title="Sto. Niño Portal API",
        description="Identity and student lifecycle engine for the Sto. Niño school portal",
        version="0.1.0",
        docs_url="/docs" if development else None,
        redoc_url="/redoc" if development else None,
        lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(api_router, prefix="/api/v1")
    if development:
        application.include_router(debug_router)

    @application.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        return {
            "service": "Sto. Niño Portal API",
            "status": "running",
            "environment": settings.python_env,
        }

    @application.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "healthy"}

    @application.get("/ready", tags=["Health"])
    async def readiness_check() -> dict[str, str]:
        return {"status": "ready"}

    return application


app = create_app()
