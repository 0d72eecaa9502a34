"""
Health and Readiness Endpoints

Kubernetes-compatible health probes for load balancers and orchestration.
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

from src.repositories import db_manager

router = APIRouter(tags=["Health"])

# API version - single source of truth
API_VERSION = "1.0.0"

REQUIRED_SERVICES = ("recalculator", "batch_recalculator", "lifecycle", "config_repo")


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": "pipeline-scoring",
        "version": API_VERSION
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness probe - checks if service can handle requests.

    Verifies:
    - Scoring services are initialized
    - MongoDB connection is active

    Returns 200 if ready, 503 if not ready.
    """
    missing = [name for name in REQUIRED_SERVICES if getattr(request.app.state, name, None) is None]
    if missing:
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "reason": f"Services not initialized: {', '.join(missing)}"
            }
        )

    try:
        await db_manager.client.admin.command("ping")
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "reason": str(e)
            }
        )

    return {
        "status": "ready",
        "mongodb": "connected",
        "services": "initialized"
    }


@router.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Pipeline Scoring API",
        "version": API_VERSION,
        "endpoints": {
            "health": "/health",
            "ready": "/ready",
            "metrics": "/metrics",
            "score": "/pipeline/score (POST)",
            "revenue_summary": "/pipeline/revenue-summary",
            "config": "/pipeline/config"
        }
    }
