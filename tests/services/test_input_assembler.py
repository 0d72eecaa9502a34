"""
Tests for reducing a stored Deal to a ScoringInput.
"""
from src.models.deal import Communication, CommunicationDirection, Invite
from src.services.input_assembler import (
    assemble_scoring_input,
    build_communication_data,
    build_invite_stats,
    build_milestones,
)
from tests.timeline import NOW, days_ago


def outbound(days: float) -> Communication:
    return Communication(direction=CommunicationDirection.OUTBOUND, contact_at=days_ago(days))


def inbound(days: float) -> Communication:
    return Communication(direction=CommunicationDirection.INBOUND, contact_at=days_ago(days))


class TestMilestones:

    def test_earliest_milestone_across_invites(self, sample_deal):
        milestones = build_milestones(sample_deal.invites)

        assert milestones.first_email_opened_at == days_ago(19)
        assert milestones.first_account_created_at is None
        assert milestones.first_proposal_viewed_at == days_ago(18)

    def test_no_invites(self):
        milestones = build_milestones([])
        assert milestones.first_email_opened_at is None


class TestInviteStats:

    def test_counts(self, sample_deal):
        stats = build_invite_stats(sample_deal.invites)

        assert stats.total_invites == 2
        assert stats.opened_count == 2
        assert stats.accounts_created_count == 0
        assert stats.viewed_count == 1

    def test_account_creation_counted(self):
        invites = [
            Invite(email="a@x.test", account_created_at=days_ago(3)),
            Invite(email="b@x.test"),
        ]
        assert build_invite_stats(invites).accounts_created_count == 1


class TestCommunicationData:

    def test_last_contact_each_direction(self):
        comms = build_communication_data([outbound(10), inbound(8), outbound(3), inbound(9)])

        assert comms.last_prospect_contact_at == days_ago(8)
        assert comms.last_team_contact_at == days_ago(3)

    def test_followups_since_last_reply(self):
        comms = build_communication_data([outbound(10), inbound(8), outbound(6), outbound(3)])
        assert comms.followup_count_since_last_reply == 2

    def test_never_replied_counts_every_outbound(self):
        comms = build_communication_data([outbound(10), outbound(6), outbound(3)])

        assert comms.followup_count_since_last_reply == 3
        assert comms.last_prospect_contact_at is None

    def test_order_independent(self):
        comms = build_communication_data([outbound(3), inbound(8), outbound(10)])
        assert comms.followup_count_since_last_reply == 1

    def test_empty(self):
        comms = build_communication_data([])

        assert comms.last_team_contact_at is None
        assert comms.followup_count_since_last_reply == 0


class TestAssembleScoringInput:

    def test_snapshot_of_deal(self, sample_deal, config):
        scoring_input = assemble_scoring_input(sample_deal, config, NOW)

        assert scoring_input.now == NOW
        assert scoring_input.config is config
        assert scoring_input.deal.status == "sent"
        assert scoring_input.deal.predicted_monthly == 2000.0
        assert scoring_input.call_scores == sample_deal.call_scores
        assert scoring_input.invite_stats.total_invites == 2
        assert scoring_input.communications.followup_count_since_last_reply == 1

    def test_carries_snooze_and_revival(self, sample_deal, config):
        deal = sample_deal.model_copy(update={
            "snoozed_until": days_ago(1),
            "snoozed_at": days_ago(5),
            "revived_at": days_ago(30),
        })

        scoring_input = assemble_scoring_input(deal, config, NOW)

        assert scoring_input.deal.snoozed_until == days_ago(1)
        assert scoring_input.deal.snoozed_at == days_ago(5)
        assert scoring_input.deal.revived_at == days_ago(30)
