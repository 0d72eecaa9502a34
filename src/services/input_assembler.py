"""
Scoring Input Assembly

Reduces a stored Deal (with its embedded invites and communications)
to the ScoringInput snapshot the engine consumes.
"""
import datetime as dt
from typing import Iterable, List, Optional

from src.models.deal import Communication, CommunicationDirection, Deal, Invite
from src.models.scoring import (
    CommunicationData,
    DealData,
    InviteMilestones,
    InviteStats,
    ScoringInput,
)
from src.models.scoring_config import ScoringConfig


def _earliest(stamps: Iterable[Optional[dt.datetime]]) -> Optional[dt.datetime]:
    present = [s for s in stamps if s is not None]
    return min(present) if present else None


def build_milestones(invites: List[Invite]) -> InviteMilestones:
    """Any single stakeholder reaching a milestone counts for the deal."""
    return InviteMilestones(
        first_email_opened_at=_earliest(i.email_opened_at for i in invites),
        first_account_created_at=_earliest(i.account_created_at for i in invites),
        first_proposal_viewed_at=_earliest(i.viewed_at for i in invites),
    )


def build_invite_stats(invites: List[Invite]) -> InviteStats:
    return InviteStats(
        total_invites=len(invites),
        opened_count=sum(1 for i in invites if i.email_opened_at),
        accounts_created_count=sum(1 for i in invites if i.account_created_at),
        viewed_count=sum(1 for i in invites if i.viewed_at),
    )


def build_communication_data(communications: List[Communication]) -> CommunicationData:
    """
    Last contact in each direction plus outbound follow-ups since the
    prospect last replied (every outbound one if they never replied).
    """
    inbound = [c.contact_at for c in communications if c.direction == CommunicationDirection.INBOUND]
    outbound = [c.contact_at for c in communications if c.direction == CommunicationDirection.OUTBOUND]

    last_inbound = max(inbound) if inbound else None
    last_outbound = max(outbound) if outbound else None

    if last_inbound is None:
        followups = len(outbound)
    else:
        followups = sum(1 for sent in outbound if sent > last_inbound)

    return CommunicationData(
        last_prospect_contact_at=last_inbound,
        last_team_contact_at=last_outbound,
        followup_count_since_last_reply=followups,
    )


def build_deal_data(deal: Deal) -> DealData:
    return DealData(
        status=deal.status,
        sent_at=deal.sent_at,
        predicted_monthly=deal.predicted_monthly,
        predicted_onetime=deal.predicted_onetime,
        snoozed_until=deal.snoozed_until,
        snoozed_at=deal.snoozed_at,
        frozen_penalties=deal.frozen_penalties,
        revived_at=deal.revived_at,
    )


def assemble_scoring_input(deal: Deal, config: ScoringConfig, now: dt.datetime) -> ScoringInput:
    """
    Build the engine input for one deal.

    Args:
        deal: Deal snapshot as loaded from storage
        config: Tenant scoring configuration
        now: Evaluation time

    Returns:
        Validated ScoringInput
    """
    return ScoringInput(
        deal=build_deal_data(deal),
        call_scores=deal.call_scores,
        milestones=build_milestones(deal.invites),
        invite_stats=build_invite_stats(deal.invites),
        communications=build_communication_data(deal.communications),
        config=config,
        now=now,
    )
