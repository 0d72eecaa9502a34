"""
Tests for metrics endpoints.
"""
from unittest.mock import AsyncMock

from src.models.deal import ScoringRun, ScoringRunType
from src.utils.metrics import metrics


class TestPrometheusMetricsEndpoint:
    """Tests for /metrics Prometheus endpoint."""

    def test_returns_prometheus_format(self, client):
        metrics.scores_computed.inc(status="sent", trigger="daily_cron")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "# TYPE pipeline_scores_computed_total counter" in response.text
        assert 'pipeline_scores_computed_total{status="sent",trigger="daily_cron"} 1.0' in response.text

    def test_includes_batch_metrics(self, client):
        response = client.get("/metrics")

        assert "pipeline_batch_runs_total" in response.text
        assert "pipeline_batch_error_rate" in response.text


class TestScoringRunsEndpoint:

    def test_lists_recent_runs(self, client, services):
        services["run_repo"].get_recent_runs = AsyncMock(return_value=[
            ScoringRun(run_type=ScoringRunType.DAILY_CRON, processed=10, succeeded=9, failed=1),
        ])

        response = client.get("/metrics/scoring-runs?limit=5")

        assert response.status_code == 200
        runs = response.json()["runs"]
        assert runs[0]["run_type"] == "daily_cron"
        assert runs[0]["failed"] == 1
        services["run_repo"].get_recent_runs.assert_awaited_once_with(limit=5)

    def test_repository_failure(self, client, services):
        services["run_repo"].get_recent_runs = AsyncMock(side_effect=RuntimeError("db down"))

        response = client.get("/metrics/scoring-runs")

        assert response.status_code == 500
        assert response.json()["status"] == "error"
