"""
FastAPI Application

Main entry point for the Pipeline Scoring API.
Handles application lifecycle and router mounting.
"""
import asyncio
from contextlib import asynccontextmanager
from fastapi import FastAPI
from loguru import logger

from src.config import settings
from src.repositories import (
    db_manager,
    DealRepository,
    ScoreEventRepository,
    ScoreHistoryRepository,
    ScoringConfigRepository,
    ScoringRunRepository,
)
from src.services import BatchRecalculator, DealLifecycleService, ScoreRecalculator
from src.utils.observability import configure_logging
from src.api.routes import health_router, metrics_router, pipeline_router


async def run_daily_sweep_worker(interval_seconds: float = 86400.0) -> None:
    """
    Background worker that keeps time-based decay current.

    Each cycle drains the score event queue and then rescores stale
    deals. A failed cycle is logged and retried on the next tick.

    Args:
        interval_seconds: Seconds between sweeps (default one day)
    """
    from src.api.main import app

    logger.info("Daily sweep worker started", extra={"interval_seconds": interval_seconds})

    while True:
        try:
            await asyncio.sleep(interval_seconds)

            batch: BatchRecalculator = app.state.batch_recalculator
            await batch.run_daily()

        except asyncio.CancelledError:
            logger.info("Daily sweep worker cancelled")
            break
        except Exception as e:
            logger.error(f"Daily sweep failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle: startup and shutdown events.

    Startup:
    - Connect to MongoDB and create indexes
    - Build repositories and scoring services
    - Validate the stored scoring config
    - Start the daily sweep worker

    Shutdown:
    - Stop the sweep worker
    - Disconnect from MongoDB
    """
    configure_logging()
    logger.info("Starting Pipeline Scoring API server...")

    await db_manager.connect()
    await db_manager.create_indexes()
    database = db_manager.database

    deal_repo = DealRepository(database)
    history_repo = ScoreHistoryRepository(database)
    run_repo = ScoringRunRepository(database)
    event_repo = ScoreEventRepository(database)
    config_repo = ScoringConfigRepository(database)

    # Refuse to start on a malformed tenant config
    config = await config_repo.load()
    logger.info(
        "Scoring config loaded",
        extra={"default_base_score": config.default_base_score, "key": config_repo.key}
    )

    recalculator = ScoreRecalculator(deal_repo, history_repo, config_repo)
    batch_recalculator = BatchRecalculator(recalculator, deal_repo, event_repo, run_repo)
    lifecycle = DealLifecycleService(deal_repo, recalculator)

    # Store in app state for access in routes
    app.state.deal_repo = deal_repo
    app.state.history_repo = history_repo
    app.state.run_repo = run_repo
    app.state.event_repo = event_repo
    app.state.config_repo = config_repo
    app.state.recalculator = recalculator
    app.state.batch_recalculator = batch_recalculator
    app.state.lifecycle = lifecycle

    sweep_task = None
    if settings.enable_daily_sweep:
        sweep_task = asyncio.create_task(
            run_daily_sweep_worker(interval_seconds=settings.daily_sweep_interval_seconds)
        )
    app.state.sweep_task = sweep_task

    logger.info("API server ready to score deals")

    yield

    # Shutdown
    logger.info("Shutting down API server...")

    if sweep_task is not None and not sweep_task.done():
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            logger.info("Stopped daily sweep worker")

    await db_manager.disconnect()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Pipeline Scoring API",
    description="Deal confidence scoring and weighted pipeline revenue",
    version="1.0.0",
    lifespan=lifespan
)

# Mount routers
app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(pipeline_router)
