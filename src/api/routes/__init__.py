"""
API Routes

Modular route definitions for the Pipeline Scoring API.
"""
from src.api.routes.health import router as health_router
from src.api.routes.metrics import router as metrics_router
from src.api.routes.pipeline import router as pipeline_router

__all__ = [
    "health_router",
    "metrics_router",
    "pipeline_router",
]
