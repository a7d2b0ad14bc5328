import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tripcompare import __version__
from tripcompare.config import Settings, settings as default_settings
from tripcompare.routers import bookings, price_watches, search, system
from tripcompare.services.comparison_service import ComparisonEngine, build_engine

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    """Console logging, plus a rotating file when ``log_dir`` is set."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_dir / "tripcompare.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ))

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )

    # Quiet noisy libraries
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def create_app(settings: Settings | None = None, engine: ComparisonEngine | None = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        comparison_engine = engine or build_engine(settings)
        await comparison_engine.start()
        app.state.engine = comparison_engine

        scheduler = None
        if settings.scheduler_enabled:
            scheduler = AsyncIOScheduler()

            async def _run_maintenance():
                await comparison_engine.run_maintenance()

            scheduler.add_job(
                _run_maintenance,
                IntervalTrigger(minutes=settings.maintenance_interval_minutes),
                id="maintenance",
            )

            async def _refresh_watched_items():
                await comparison_engine.refresh_watched_items()

            scheduler.add_job(
                _refresh_watched_items,
                IntervalTrigger(minutes=settings.watch_refresh_interval_minutes),
                id="watch_refresh",
            )
            scheduler.start()
            app.state.scheduler = scheduler
            logger.info("Background scheduler started")

        yield

        # Shutdown
        if scheduler:
            scheduler.shutdown(wait=False)
            logger.info("Background scheduler stopped")
        await comparison_engine.close()

    app = FastAPI(
        title="TripCompare",
        description="Travel offer comparison and price tracking",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(search.router, prefix="/api/search", tags=["search"])
    app.include_router(price_watches.router, prefix="/api", tags=["price-alerts"])
    app.include_router(bookings.router, prefix="/api/bookings", tags=["bookings"])
    app.include_router(system.router, prefix="/api", tags=["system"])

    return app


configure_logging(default_settings)
app = create_app()
