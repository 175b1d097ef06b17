"""FastAPI application bootstrap and router wiring."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schoolmaster.api.routers import health, jobs, uploads, users
from schoolmaster.core.config import Settings, get_settings
from schoolmaster.db.session import create_db_engine, create_session_factory, init_db
from schoolmaster.services.job_registry import JobRegistry
from schoolmaster.workers.scheduler import ImportScheduler

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema on startup; stop running import jobs on shutdown."""
    init_db(app.state.engine)
    yield
    await app.state.import_scheduler.shutdown()
    app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Instantiate the FastAPI app and its process-owned job registry."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

    engine = create_db_engine(settings.database_url)
    session_factory = create_session_factory(engine)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    # Lives exactly as long as this process; nothing here survives a restart
    app.state.job_registry = JobRegistry(
        message_capacity=settings.job_message_capacity,
        error_capacity=settings.job_error_capacity,
    )
    app.state.import_scheduler = ImportScheduler(session_factory, settings)

    logger.info(f"[CORS] Allowed origins: {settings.cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    app.include_router(health.router)
    app.include_router(uploads.router, prefix="/api/imports", tags=["imports"])
    app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])

    return app
