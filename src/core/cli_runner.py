"""
CLI Runner for the Pipeline Scoring Engine

Usage:
    python -m src.core.cli_runner score <input.json>   # score a ScoringInput file, no database
    python -m src.core.cli_runner daily                # event queue + stale scores
    python -m src.core.cli_runner refresh              # rescore every active deal
"""
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError

from src.core.scoring_engine import ScoringError, compute_pipeline_score
from src.models.scoring import ScoringInput, ScoringResult
from src.repositories import (
    db_manager,
    DealRepository,
    ScoreEventRepository,
    ScoreHistoryRepository,
    ScoringConfigRepository,
    ScoringRunRepository,
)
from src.services import BatchRecalculator, BatchRecalculateResult, ScoreRecalculator
from src.utils.observability import configure_logging

USAGE = __doc__


def score_file(path: Path) -> ScoringResult:
    """
    Score a JSON-encoded ScoringInput.

    Raises:
        ValidationError: If the file is not a valid scoring input
        ScoringError: If the engine refuses the input
    """
    return compute_pipeline_score(ScoringInput.model_validate_json(path.read_text()))


def print_result(result: ScoringResult) -> None:
    breakdown = result.penalty_breakdown

    print(f"\n📊 Confidence: {result.confidence_score}/100 ({result.confidence_percent:.0%})")
    print(f"   Base score:        {result.base_score}")
    print(f"   Penalties:        -{result.total_penalties}")
    print(f"      email not opened:    {breakdown.email_not_opened}")
    print(f"      proposal not viewed: {breakdown.proposal_not_viewed}")
    print(f"      silence:             {breakdown.silence}")
    print(f"   Bonus:            +{result.total_bonus}")
    if result.penalties_frozen:
        print("   ⏸️  Penalties frozen (deal snoozed)")

    print(f"\n💰 Weighted monthly: {result.weighted_monthly}")
    print(f"   Weighted one-time: {result.weighted_onetime}\n")


def print_batch(label: str, result: BatchRecalculateResult) -> None:
    print(
        f"{label}: {result.processed} processed, {result.succeeded} succeeded, "
        f"{result.skipped} skipped, {result.failed} failed ({result.duration_ms:.0f}ms)"
    )
    for error in result.errors[:10]:
        print(f"   ❌ {error['deal_id']}: {error['error']}")


async def run_batch(mode: str) -> int:
    """Run a batch job against MongoDB. Returns the process exit code."""
    await db_manager.connect()

    try:
        database = db_manager.database
        deal_repo = DealRepository(database)
        recalculator = ScoreRecalculator(
            deal_repo, ScoreHistoryRepository(database), ScoringConfigRepository(database)
        )
        batch = BatchRecalculator(
            recalculator, deal_repo, ScoreEventRepository(database), ScoringRunRepository(database)
        )

        if mode == "daily":
            daily = await batch.run_daily()
            print_batch("Event queue", daily.queue_results)
            print_batch("Stale scores", daily.stale_results)
            failed = daily.queue_results.failed + daily.stale_results.failed
        else:
            result = await batch.recalculate_all_active(trigger_source="cli_refresh")
            print_batch("Refresh", result)
            failed = result.failed

        return 1 if failed else 0

    finally:
        await db_manager.disconnect()


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    configure_logging()

    if not argv or argv[0] not in ("score", "daily", "refresh"):
        print(USAGE)
        return 2

    command = argv[0]

    if command == "score":
        if len(argv) < 2:
            print(USAGE)
            return 2
        try:
            result = score_file(Path(argv[1]))
        except FileNotFoundError:
            logger.error(f"❌ No such file: {argv[1]}")
            return 1
        except (ValidationError, ScoringError) as e:
            logger.error(f"❌ Cannot score {argv[1]}: {e}")
            return 1
        print_result(result)
        return 0

    return asyncio.run(run_batch(command))


if __name__ == "__main__":
    sys.exit(main())
