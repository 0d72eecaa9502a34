"""
Metrics Endpoints

Prometheus-compatible metrics and scoring run statistics for observability.
"""
from fastapi import APIRouter, Query, Request
from fastapi.responses import Response, JSONResponse
from loguru import logger

from src.repositories import ScoringRunRepository
from src.utils.metrics import metrics

router = APIRouter(tags=["Metrics"])


@router.get("/metrics")
async def prometheus_metrics():
    """
    Prometheus metrics endpoint.

    Includes:
    - Scores computed by status and trigger
    - Scoring errors by type
    - Confidence score distribution
    - Batch run counts, failures, durations and error rates

    Content-Type: text/plain; version=0.0.4; charset=utf-8
    """
    try:
        output = metrics.export()

        return Response(
            content=output,
            media_type="text/plain; version=0.0.4; charset=utf-8"
        )

    except Exception as e:
        logger.error(f"Failed to export metrics: {e}", exc_info=True)
        return Response(
            content=f"# Error exporting metrics: {e}\n",
            media_type="text/plain",
            status_code=500
        )


@router.get("/metrics/scoring-runs")
async def scoring_runs(request: Request, limit: int = Query(20, ge=1, le=200)):
    """
    Most recent batch recalculation runs, newest first.

    Returns:
        Run summaries as JSON
    """
    try:
        run_repo: ScoringRunRepository = request.app.state.run_repo
        runs = await run_repo.get_recent_runs(limit=limit)

        return {
            "status": "ok",
            "runs": [run.model_dump(mode="json", exclude={"id"}) for run in runs]
        }

    except Exception as e:
        logger.error(f"Failed to get scoring runs: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "error": str(e)
            }
        )
