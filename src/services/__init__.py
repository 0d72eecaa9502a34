"""Services package."""
from src.services.input_assembler import assemble_scoring_input
from src.services.score_recalculator import ScoreRecalculator
from src.services.batch_recalculator import (
    BatchRecalculator,
    BatchRecalculateResult,
    DailyBatchResult,
)
from src.services.deal_lifecycle import DealLifecycleService, DealStateError
from src.services.revenue_summary import (
    PipelineRevenueSummary,
    PipelineAggregates,
    build_revenue_summary,
    build_pipeline_aggregates,
)

__all__ = [
    "assemble_scoring_input",
    "ScoreRecalculator",
    "BatchRecalculator",
    "BatchRecalculateResult",
    "DailyBatchResult",
    "DealLifecycleService",
    "DealStateError",
    "PipelineRevenueSummary",
    "PipelineAggregates",
    "build_revenue_summary",
    "build_pipeline_aggregates",
]
