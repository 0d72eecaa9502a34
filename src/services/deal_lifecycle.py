"""
Deal Lifecycle

The pipeline actions a rep takes on a deal: snooze, archive and revive,
call scores, logged contacts and status changes. Each one that affects
the score is followed by a rescore.
"""
import datetime as dt
from typing import Dict, FrozenSet, Optional

from src.core.scoring_engine import compute_penalties
from src.models.deal import ArchiveReason, Communication, Deal
from src.models.scoring import TERMINAL_STATUSES, CallScoreInputs, DealStatus, ScoringResult
from src.repositories.deals import DealNotFoundError, DealRepository
from src.services.input_assembler import assemble_scoring_input
from src.services.score_recalculator import ScoreRecalculator
from src.utils.observability import log_business_event

# Allowed status moves; accepted and closed_lost are final
STATUS_TRANSITIONS: Dict[DealStatus, FrozenSet[DealStatus]] = {
    DealStatus.DRAFT: frozenset({DealStatus.SENT}),
    DealStatus.SENT: frozenset({DealStatus.ACCEPTED, DealStatus.DECLINED, DealStatus.CLOSED_LOST}),
    DealStatus.DECLINED: frozenset({DealStatus.SENT, DealStatus.CLOSED_LOST}),
    DealStatus.ACCEPTED: frozenset(),
    DealStatus.CLOSED_LOST: frozenset(),
}


class DealStateError(Exception):
    """Raised when a lifecycle action does not apply to the deal's current state."""


class DealLifecycleService:
    """
    Usage:
        lifecycle = DealLifecycleService(deal_repo, recalculator)
        await lifecycle.snooze("rec-123", snoozed_until=resume_at, reason="Back from vacation")
    """

    def __init__(self, deal_repo: DealRepository, recalculator: ScoreRecalculator):
        self.deal_repo = deal_repo
        self.recalculator = recalculator

    async def snooze(
        self,
        deal_id: str,
        snoozed_until: dt.datetime,
        reason: Optional[str] = None,
        now: Optional[dt.datetime] = None,
    ) -> Optional[ScoringResult]:
        """
        Freeze penalty accrual until snoozed_until.

        The penalties accrued so far are stored with the deal and reused
        verbatim while the snooze lasts. Extending an active snooze keeps
        the original snapshot.

        Raises:
            DealStateError: If snoozed_until is not in the future or the deal is archived
        """
        now = now or dt.datetime.now(dt.UTC)
        if snoozed_until <= now:
            raise DealStateError("snoozed_until must be in the future")

        deal = await self._get_deal(deal_id)
        if deal.is_archived:
            raise DealStateError(f"Deal {deal_id} is archived; revive it before snoozing")

        config = await self.recalculator.config_repo.load()
        frozen, _ = compute_penalties(assemble_scoring_input(deal, config, now))

        await self.deal_repo.set_snooze(
            deal_id,
            snoozed_until=snoozed_until,
            snoozed_at=now,
            frozen_penalties=frozen,
            reason=reason,
        )

        log_business_event(
            "deal_snoozed",
            deal_id,
            snoozed_until=snoozed_until.isoformat(),
            frozen_penalties=frozen.total,
            reason=reason,
        )

        return await self.recalculator.recalculate(deal_id, "deal_snoozed", now=now, config=config)

    async def unsnooze(self, deal_id: str, now: Optional[dt.datetime] = None) -> Optional[ScoringResult]:
        """End a snooze early; accrual restarts from now."""
        now = now or dt.datetime.now(dt.UTC)
        deal = await self._get_deal(deal_id)

        if deal.snoozed_until is None or deal.snoozed_until <= now:
            raise DealStateError(f"Deal {deal_id} is not snoozed")

        await self.deal_repo.end_snooze(deal_id, ended_at=now)
        log_business_event("deal_unsnoozed", deal_id)

        return await self.recalculator.recalculate(deal_id, "snooze_ended", now=now)

    async def archive(
        self,
        deal_id: str,
        reason: ArchiveReason,
        notes: Optional[str] = None,
        now: Optional[dt.datetime] = None,
    ) -> None:
        """
        Take a deal out of the active pipeline; its last score is kept as is.

        Raises:
            DealStateError: If the deal is archived or closed, or reason is
                OTHER without notes
        """
        now = now or dt.datetime.now(dt.UTC)
        notes = (notes or "").strip() or None
        if reason == ArchiveReason.OTHER and not notes:
            raise DealStateError("notes are required when the archive reason is 'other'")

        deal = await self._get_deal(deal_id)

        if deal.is_archived:
            raise DealStateError(f"Deal {deal_id} is already archived")
        if deal.status in TERMINAL_STATUSES:
            raise DealStateError(f"Deal {deal_id} is {deal.status.value} and cannot be archived")

        await self.deal_repo.set_archived(deal_id, archived_at=now, reason=reason, notes=notes)

        log_business_event(
            "deal_archived",
            deal_id,
            reason=reason.value,
            predicted_monthly=deal.predicted_monthly,
            age_days=deal.age_days(now),
        )

    async def revive(self, deal_id: str, now: Optional[dt.datetime] = None) -> Optional[ScoringResult]:
        """Return an archived deal to the pipeline with a fresh penalty baseline."""
        now = now or dt.datetime.now(dt.UTC)
        deal = await self._get_deal(deal_id)

        if not deal.is_archived:
            raise DealStateError(f"Deal {deal_id} is not archived")

        await self.deal_repo.set_revived(deal_id, revived_at=now)
        log_business_event("deal_revived", deal_id, archive_reason=deal.archive_reason)

        return await self.recalculator.recalculate(deal_id, "deal_revived", now=now)

    async def set_call_scores(
        self,
        deal_id: str,
        call_scores: CallScoreInputs,
        now: Optional[dt.datetime] = None,
    ) -> Optional[ScoringResult]:
        """Replace the rep's call judgments and rescore."""
        await self.deal_repo.set_call_scores(deal_id, call_scores)
        log_business_event("call_scores_updated", deal_id, **call_scores.model_dump(mode="json"))

        return await self.recalculator.recalculate(deal_id, "call_scores_updated", now=now)

    async def log_communication(
        self,
        deal_id: str,
        communication: Communication,
        now: Optional[dt.datetime] = None,
    ) -> Optional[ScoringResult]:
        """Record a contact with the prospect; replies restart the silence clock."""
        await self.deal_repo.add_communication(deal_id, communication)
        log_business_event(
            "communication_logged",
            deal_id,
            direction=communication.direction.value,
            channel=communication.channel.value,
        )

        return await self.recalculator.recalculate(deal_id, "communication_logged", now=now)

    async def change_status(
        self,
        deal_id: str,
        status: DealStatus,
        reason: Optional[str] = None,
        now: Optional[dt.datetime] = None,
    ) -> Optional[ScoringResult]:
        """
        Move a deal along the pipeline and rescore it.

        Terminal statuses are rescored too so their fixed score is written.

        Raises:
            DealStateError: If the move is not in STATUS_TRANSITIONS
        """
        now = now or dt.datetime.now(dt.UTC)
        deal = await self._get_deal(deal_id)

        if status not in STATUS_TRANSITIONS[deal.status]:
            raise DealStateError(f"Cannot move deal {deal_id} from {deal.status.value} to {status.value}")

        closed = status == DealStatus.CLOSED_LOST
        await self.deal_repo.set_status(
            deal_id,
            status,
            sent_at=now if status == DealStatus.SENT and deal.sent_at is None else None,
            closed_lost_at=now if closed else None,
            closed_lost_reason=reason if closed else None,
        )

        log_business_event(
            "deal_status_changed",
            deal_id,
            from_status=deal.status.value,
            to_status=status.value,
            reason=reason,
        )

        return await self.recalculator.recalculate(deal_id, "status_changed", now=now, skip_terminal=False)

    async def _get_deal(self, deal_id: str) -> Deal:
        deal = await self.deal_repo.get_by_deal_id(deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)
        return deal
