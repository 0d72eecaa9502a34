"""
Scoring Configuration Schema

Tenant-wide tables that drive the scoring engine: call-factor weights,
category point mappings, decay penalties and the multi-invite bonus.

Validated once when loaded so a broken tenant configuration is rejected
before any deal is scored with it.
"""
import json
from typing import Annotated, Any, Mapping, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

Points = Annotated[float, Field(ge=0)]
Weight = Annotated[float, Field(ge=0, le=100)]


class ScoringConfigError(Exception):
    """Raised when a scoring configuration is missing entries or malformed."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class _ConfigModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class CallWeights(_ConfigModel):
    budget_clarity: Weight
    competition: Weight
    engagement: Weight
    plan_fit: Weight


class BudgetClarityPoints(_ConfigModel):
    clear: Points
    vague: Points
    none: Points
    no_budget: Points


class CompetitionPoints(_ConfigModel):
    none: Points
    some: Points
    many: Points


class EngagementPoints(_ConfigModel):
    high: Points
    medium: Points
    low: Points


class PlanFitPoints(_ConfigModel):
    strong: Points
    medium: Points
    weak: Points
    poor: Points


class CallScoreMappings(_ConfigModel):
    """Category -> multiplier per axis. Every category must be mapped."""
    budget_clarity: BudgetClarityPoints
    competition: CompetitionPoints
    engagement: EngagementPoints
    plan_fit: PlanFitPoints


class PenaltyConfig(_ConfigModel):
    """
    Decay penalty for one risk signal.

    The grace period unit decides how elapsed time is measured:
    whole days when grace_period_days is set, whole hours otherwise.
    """
    grace_period_hours: Optional[Points] = None
    grace_period_days: Optional[Points] = None
    daily_penalty: Points
    max_penalty: Points
    # Silence only
    followup_acceleration_threshold: Annotated[int, Field(ge=0)] = 2
    followup_acceleration_multiplier: Annotated[float, Field(ge=1)] = 1.5

    @model_validator(mode="after")
    def require_grace_period(self) -> "PenaltyConfig":
        if self.grace_period_hours is None and self.grace_period_days is None:
            raise ValueError("grace_period_hours or grace_period_days is required")
        return self

    @property
    def counts_in_days(self) -> bool:
        return self.grace_period_days is not None


class PenaltiesConfig(_ConfigModel):
    email_not_opened: PenaltyConfig
    proposal_not_viewed: PenaltyConfig
    silence: PenaltyConfig


class MultiInviteBonus(_ConfigModel):
    all_opened_bonus: Points
    all_viewed_bonus: Points


class ScoringConfig(_ConfigModel):
    call_weights: CallWeights
    call_score_mappings: CallScoreMappings
    penalties: PenaltiesConfig
    multi_invite_bonus: MultiInviteBonus
    # Used until the rep fills out the call scoring form
    default_base_score: float = 50


def load_scoring_config(raw: Union[str, bytes, Mapping[str, Any], ScoringConfig]) -> ScoringConfig:
    """
    Validate a raw tenant configuration.

    Args:
        raw: JSON document, mapping, or an already validated config

    Returns:
        Immutable ScoringConfig

    Raises:
        ScoringConfigError: If the document is not JSON or misses/violates any entry
    """
    if isinstance(raw, ScoringConfig):
        return raw

    try:
        if isinstance(raw, (str, bytes)):
            return ScoringConfig.model_validate_json(raw)
        return ScoringConfig.model_validate(raw)
    except ValidationError as e:
        raise ScoringConfigError(
            f"Invalid scoring configuration ({e.error_count()} errors)",
            errors=e.errors(include_url=False, include_context=False, include_input=False),
        ) from e
    except (TypeError, json.JSONDecodeError) as e:
        raise ScoringConfigError(f"Unreadable scoring configuration: {e}") from e


DEFAULT_SCORING_CONFIG = ScoringConfig(
    call_weights=CallWeights(
        budget_clarity=25,
        competition=20,
        engagement=25,
        plan_fit=30,
    ),
    call_score_mappings=CallScoreMappings(
        budget_clarity=BudgetClarityPoints(clear=1.0, vague=0.5, none=0.2, no_budget=0),
        competition=CompetitionPoints(none=1.0, some=0.5, many=0.15),
        engagement=EngagementPoints(high=1.0, medium=0.70, low=0.15),
        plan_fit=PlanFitPoints(strong=1.0, medium=0.65, weak=0.25, poor=0),
    ),
    penalties=PenaltiesConfig(
        email_not_opened=PenaltyConfig(grace_period_hours=48, daily_penalty=0.5, max_penalty=25),
        proposal_not_viewed=PenaltyConfig(grace_period_hours=120, daily_penalty=0.5, max_penalty=20),
        silence=PenaltyConfig(
            grace_period_days=10,
            daily_penalty=1.2,
            max_penalty=60,
            followup_acceleration_threshold=3,
            followup_acceleration_multiplier=1.5,
        ),
    ),
    multi_invite_bonus=MultiInviteBonus(all_opened_bonus=3, all_viewed_bonus=5),
    default_base_score=50,
)
