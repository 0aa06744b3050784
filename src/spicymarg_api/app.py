from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from loguru import logger

from spicymarg_api.core.settings import settings
from spicymarg_api.db.session import async_session
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing
from .scheduling import FunnelJobScheduler
from .services.notifications import StageNotifier


APP_VERSION = "0.1.0"


def _session_factory():
    return async_session()


def _resolve_schedule_path() -> Path:
    schedule_path = Path(settings.metrics_schedule_path)
    if not schedule_path.is_absolute():
        schedule_path = Path(__file__).resolve().parent.parent.parent / schedule_path
    return schedule_path


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Missing CRM credentials outside development abort startup here.
    app.state.stage_notifier = StageNotifier.from_settings(settings)

    schedule_path = _resolve_schedule_path()
    job_scheduler = FunnelJobScheduler(session_factory=_session_factory, config_path=schedule_path)
    app.state.funnel_job_scheduler = job_scheduler

    scheduler_enabled = settings.metrics_scheduler_enabled
    if scheduler_enabled:
        try:
            job_scheduler.start()
        except FileNotFoundError as exc:
            logger.exception("Metrics scheduler failed to start", error=str(exc))
        else:
            logger.info("Metrics scheduler enabled", schedule_path=str(schedule_path))
    else:
        logger.info("Metrics scheduler disabled", reason="metrics_scheduler_enabled is false")

    try:
        yield
    finally:
        if scheduler_enabled and job_scheduler.is_running:
            await job_scheduler.stop()


def create_app() -> FastAPI:
    """Application factory for the funnel API."""
    configure_logging(
        service_name="spicymarg-api",
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="Spicy Marg Funnel API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name="spicymarg-api",
        service_version=APP_VERSION,
        environment=settings.environment,
    )

    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
