"""Schemas for grading configuration: grade bands, normalization, SBA and categories."""

import json
import math
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from grading_engine.core.exceptions import ConfigLockedError, ConfigurationError

if TYPE_CHECKING:
    from grading_engine.config import Settings


class DistributionModel(str, Enum):
    """Distribution the grade thresholds are read against."""

    NORMAL = "normal"  # Population std dev, z-score
    STUDENT_T = "student_t"  # Sample std dev with n-1 degrees of freedom, t-score


class SortOrder(str, Enum):
    """Display order for a ranked cohort."""

    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"
    ID_ASC = "id_asc"
    TOTAL_DESC = "total_desc"
    AGGREGATE_ASC = "aggregate_asc"


class GradeBand(BaseModel):
    """A grade awarded when the standardized score meets or exceeds the threshold."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., min_length=1, description="Grade label, e.g. A1")
    threshold: float = Field(..., description="Minimum standardized score for this grade (inclusive)")
    value: int = Field(..., ge=1, description="Numeric grade value, 1 is best")
    remark: str = Field("", description="Remark printed with the grade, e.g. Excellent")


# Nine-point scale read against z-scores (normal percentiles 95/85/70/50/30/15/5/1)
DEFAULT_GRADE_BANDS: list[dict[str, Any]] = [
    {"label": "A1", "threshold": 1.645, "value": 1, "remark": "Excellent"},
    {"label": "B2", "threshold": 1.036, "value": 2, "remark": "Very Good"},
    {"label": "B3", "threshold": 0.524, "value": 3, "remark": "Good"},
    {"label": "C4", "threshold": 0.0, "value": 4, "remark": "Credit"},
    {"label": "C5", "threshold": -0.524, "value": 5, "remark": "Credit"},
    {"label": "C6", "threshold": -1.036, "value": 6, "remark": "Credit"},
    {"label": "D7", "threshold": -1.645, "value": 7, "remark": "Pass"},
    {"label": "E8", "threshold": -2.326, "value": 8, "remark": "Pass"},
]


class GradingScheme(BaseModel):
    """Ordered grade bands plus the catch-all fail grade."""

    model_config = ConfigDict(frozen=True)

    distribution_model: DistributionModel = DistributionModel.NORMAL
    bands: list[GradeBand] = Field(..., min_length=1, description="Bands in strictly descending threshold order")
    fail_label: str = "F9"
    fail_value: int = Field(9, ge=1)
    fail_remark: str = "Fail"

    @field_validator("bands")
    @classmethod
    def validate_band_order(cls, v: list[GradeBand]) -> list[GradeBand]:
        """Bands must be given best first: thresholds strictly descending, values strictly ascending."""
        labels = [band.label for band in v]
        if len(labels) != len(set(labels)):
            raise ValueError("Duplicate grade labels found. Each grade must be unique.")

        for higher, lower in zip(v, v[1:]):
            if not higher.threshold > lower.threshold:
                raise ValueError(
                    f"Grade thresholds must be strictly descending: {higher.label} ({higher.threshold}) "
                    f"must be above {lower.label} ({lower.threshold})"
                )
            if not higher.value < lower.value:
                raise ValueError(
                    f"Grade values must increase as grades get worse: {higher.label} ({higher.value}) "
                    f"must be below {lower.label} ({lower.value})"
                )
        return v

    @model_validator(mode="after")
    def validate_fail_grade(self) -> "GradingScheme":
        if self.fail_label in {band.label for band in self.bands}:
            raise ValueError(f"Fail label '{self.fail_label}' is also used by a grade band")
        if self.fail_value <= self.bands[-1].value:
            raise ValueError("Fail value must be worse (higher) than every band value")
        return self

    @property
    def use_sample_correction(self) -> bool:
        return self.distribution_model == DistributionModel.STUDENT_T

    @property
    def fail_band(self) -> GradeBand:
        return GradeBand(label=self.fail_label, threshold=-math.inf, value=self.fail_value, remark=self.fail_remark)

    @property
    def thresholds(self) -> list[tuple[str, float]]:
        return [(band.label, band.threshold) for band in self.bands]

    @classmethod
    def default(cls, distribution_model: DistributionModel = DistributionModel.NORMAL) -> "GradingScheme":
        return cls(distribution_model=distribution_model, bands=DEFAULT_GRADE_BANDS)


class LockableConfig(BaseModel):
    """Frozen configuration that can only be changed while unlocked."""

    model_config = ConfigDict(frozen=True)

    locked: bool = False

    def _lock_name(self) -> str:
        return type(self).__name__

    def with_changes(self, **changes: Any) -> "LockableConfig":
        """
        Return a re-validated copy with the given fields changed.

        Raises:
            ConfigLockedError: If this configuration is locked
        """
        if self.locked:
            raise ConfigLockedError(self._lock_name())
        if "locked" in changes:
            raise ValueError("Use lock() or unlock() to change the lock state")
        return self.model_validate({**self.model_dump(), **changes})

    def lock(self):
        return self.model_copy(update={"locked": True})

    def unlock(self):
        return self.model_copy(update={"locked": False})

    @property
    def is_active(self) -> bool:
        """Whether the rule takes part in grading (enabled and not locked)."""
        return bool(getattr(self, "enabled", False)) and not self.locked


class NormalizationRule(LockableConfig):
    """Rescales a subject's raw exam composite to a score out of 100."""

    subject: str = Field(..., min_length=1)
    enabled: bool = False
    max_raw_score: float = 100.0

    @model_validator(mode="after")
    def validate_max_raw_score(self) -> "NormalizationRule":
        if self.enabled and self.max_raw_score <= 0:
            raise ValueError(f"max_raw_score must be positive when normalization is enabled, got {self.max_raw_score}")
        return self

    def _lock_name(self) -> str:
        return f"Normalization rule for {self.subject}"


class SbaConfig(LockableConfig):
    """School-Based Assessment blending weights (percentages)."""

    enabled: bool = True
    sba_weight: float = Field(30.0, ge=0.0, le=100.0)
    exam_weight: float = Field(70.0, ge=0.0, le=100.0)

    @model_validator(mode="after")
    def validate_weights(self) -> "SbaConfig":
        total = self.sba_weight + self.exam_weight
        # Allow for small floating point errors (within 0.01)
        if abs(total - 100.0) > 0.01:
            raise ValueError(f"SBA and exam weights sum to {total}%, but must sum to 100%")
        return self

    def _lock_name(self) -> str:
        return "SBA configuration"


class CategoryThreshold(BaseModel):
    """Aggregate range (inclusive) mapped to a category label."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., min_length=1)
    min: float
    max: float

    @model_validator(mode="after")
    def validate_min_max(self) -> "CategoryThreshold":
        if self.min > self.max:
            raise ValueError("min must be less than or equal to max")
        return self


DEFAULT_CATEGORY_THRESHOLDS: list[dict[str, Any]] = [
    {"label": "Distinction", "min": 6, "max": 10},
    {"label": "Merit", "min": 11, "max": 20},
    {"label": "Pass", "min": 21, "max": 36},
    {"label": "Fail", "min": 37, "max": 54},
]


class GradingConfig(BaseModel):
    """Institutional grading configuration, validated when loaded."""

    model_config = ConfigDict(frozen=True)

    scheme: GradingScheme = Field(default_factory=GradingScheme.default)
    normalization_rules: list[NormalizationRule] = Field(default_factory=list)
    sba: SbaConfig = Field(default_factory=SbaConfig)
    categories: list[CategoryThreshold] = Field(
        default_factory=lambda: [CategoryThreshold(**c) for c in DEFAULT_CATEGORY_THRESHOLDS]
    )
    sort_order: SortOrder = SortOrder.AGGREGATE_ASC
    best_n: int = Field(6, ge=1)
    best_core: int = Field(4, ge=0, description="Core subjects counted when core_subjects is set")
    core_subjects: list[str] = Field(default_factory=list, description="Empty means no core/elective split")
    missing_aggregate_sentinel: float = Field(
        54, description="Aggregate given to students with no grades; worse than any finite aggregate"
    )

    @field_validator("normalization_rules")
    @classmethod
    def validate_unique_rules(cls, v: list[NormalizationRule]) -> list[NormalizationRule]:
        subjects = [rule.subject for rule in v]
        if len(subjects) != len(set(subjects)):
            raise ValueError("Duplicate normalization rules found. Each subject may have at most one rule.")
        return v

    @model_validator(mode="after")
    def validate_counts(self) -> "GradingConfig":
        if self.core_subjects and self.best_core > self.best_n:
            raise ValueError(f"best_core ({self.best_core}) cannot exceed best_n ({self.best_n})")
        worst_finite = self.best_n * self.scheme.fail_value
        if self.missing_aggregate_sentinel < worst_finite:
            raise ValueError(
                f"missing_aggregate_sentinel ({self.missing_aggregate_sentinel}) must not be better than "
                f"the worst possible aggregate ({worst_finite})"
            )
        return self

    def rule_for(self, subject: str) -> NormalizationRule | None:
        for rule in self.normalization_rules:
            if rule.subject == subject:
                return rule
        return None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "GradingConfig":
        model = DistributionModel.STUDENT_T if settings.use_t_distribution else DistributionModel.NORMAL
        return cls(
            scheme=GradingScheme.default(model),
            sba=SbaConfig(
                enabled=settings.sba_enabled,
                sba_weight=settings.sba_weight,
                exam_weight=settings.exam_weight,
            ),
            best_n=settings.best_n,
            best_core=settings.best_core,
            missing_aggregate_sentinel=settings.missing_aggregate_sentinel,
        )

    @classmethod
    def load(cls, path: str | Path) -> "GradingConfig":
        """
        Load and validate a grading configuration from a JSON file.

        Raises:
            ConfigurationError: If the file cannot be read or the configuration is invalid
        """
        try:
            raw = Path(path).read_text(encoding="utf-8")
            return cls.model_validate(json.loads(raw))
        except OSError as e:
            raise ConfigurationError(f"Cannot read grading configuration {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Grading configuration {path} is not valid JSON: {e}") from e
        except ValidationError as e:
            raise ConfigurationError(f"Invalid grading configuration in {path}: {e}") from e


class ResolveGradeRequest(BaseModel):
    """Request body for resolving a standardized score to a grade."""

    standardized_score: float
    scheme: GradingScheme = Field(default_factory=GradingScheme.default)


class GradeResolution(BaseModel):
    label: str
    value: int
    remark: str
