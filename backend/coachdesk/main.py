import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coachdesk.api.routes import api_router
from coachdesk.core.config import get_settings
from coachdesk.db.session import get_session_factory
from coachdesk.realtime.feed import ChangeFeed
from coachdesk.services.deadlines import DeadlineScheduler

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    scheduler = None
    if settings.deadline_scheduler_enabled:
        factory = app.dependency_overrides.get(get_session_factory, get_session_factory)
        scheduler = DeadlineScheduler(
            factory(),
            interval=settings.deadline_tick_seconds,
        )
        scheduler.start()
    app.state.deadline_scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="coachdesk",
        docs_url="/docs" if settings.environment == "development" else None,
        redoc_url="/redoc" if settings.environment == "development" else None,
        lifespan=lifespan,
    )
    app.state.change_feed = ChangeFeed()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    logger.info(f"coachdesk started ({settings.environment})")
    return app


app = create_app()
