"""Schemas for cycle deltas, efficiency indices and reward shares."""

from enum import Enum

from pydantic import BaseModel, Field

from grading_engine.schemas.grading import GradingConfig
from grading_engine.schemas.scores import ScoreRecord


class GrowthQuantity(str, Enum):
    """Quantity a growth ratio is tracked for."""

    OVERALL = "overall"
    OBJECTIVE = "objective"  # Section A
    THEORY = "theory"  # Section B


class DeltaMetric(BaseModel):
    """Growth of one quantity's mean from the previous cycle to the current one."""

    subject: str
    quantity: GrowthQuantity
    current_mean: float
    previous_mean: float | None = Field(None, description="None when no previous cycle exists")
    growth_ratio: float


class SubjectFactors(BaseModel):
    """Inputs to a subject's efficiency index."""

    subject: str
    staff_name: str | None = None
    grade_proficiency_factor: float = Field(..., ge=0.0)
    growth_ratios: list[float] = Field(default_factory=list, max_length=3)


class EfficiencyIndex(BaseModel):
    """Multiplicative efficiency index for a subject and the staff member teaching it."""

    subject: str
    staff_name: str | None = None
    grade_proficiency_factor: float
    growth_ratios: list[float]
    composite_index: float


class RewardShare(BaseModel):
    """Part of the reward pool apportioned to a subject."""

    subject: str
    staff_name: str | None = None
    composite_index: float
    pool_amount: float
    share: float
    rank: int = Field(..., ge=1)


class SigDiffEntry(BaseModel):
    """Gap between the institutional standard and an external baseline mean grade."""

    subject: str
    staff_name: str | None = None
    institutional_standard: float
    external_baseline_mean: float
    sig_diff: float = Field(..., description="Positive when the cohort beat the external baseline")
    rank: int = Field(0, ge=0)


class EfficiencyReport(BaseModel):
    """Reward allocation and supporting deltas for a cycle."""

    current_cycle: str
    previous_cycle: str | None
    pool_amount: float
    deltas: list[DeltaMetric]
    shares: list[RewardShare]
    sig_diff: list[SigDiffEntry]


class DeltaRequest(BaseModel):
    """Request body for a single growth ratio."""

    current_mean: float
    previous_mean: float | None = None


class DeltaResponse(BaseModel):
    growth_ratio: float


class AllocateRequest(BaseModel):
    """Request body for splitting a reward pool."""

    subject_factors: list[SubjectFactors] = Field(..., min_length=1)
    pool_amount: float = Field(..., ge=0.0)


class EfficiencyRequest(BaseModel):
    """Request body for a cycle efficiency report."""

    records: list[ScoreRecord]
    previous_cycle: str | None = None
    config: GradingConfig | None = Field(None, description="Defaults to the institution's configuration")
    pool_amount: float | None = Field(None, ge=0.0, description="Defaults to the configured reward pool")
    staff: dict[str, str] = Field(default_factory=dict, description="Subject -> staff member name")
    external_grades: dict[str, list[float]] = Field(
        default_factory=dict, description="Subject -> external (final examination) grade values"
    )
    institutional_standard: float | None = None
