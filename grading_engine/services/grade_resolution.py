"""Service for mapping standardized scores to grade labels."""

from typing import Sequence

from grading_engine.schemas.grading import DistributionModel, GradeBand, GradingScheme
from grading_engine.utils.statistics_utils import critical_value

# Cumulative percentiles behind the default nine-point thresholds (A1 .. E8)
DEFAULT_BAND_PERCENTILES = [95.0, 85.0, 70.0, 50.0, 30.0, 15.0, 5.0, 1.0]


def resolve_grade(standardized_score: float, bands: Sequence[tuple[str, float]], fail_label: str) -> str:
    """
    Return the label of the first band whose threshold the score meets or exceeds.

    Bands are scanned in the order given, which must be descending threshold order.
    They are not re-sorted: ordering is validated when the configuration is loaded.

    Args:
        standardized_score: z or t score of the student's composite
        bands: (label, threshold) pairs, highest threshold first
        fail_label: Label returned when the score is below every threshold

    Returns:
        The grade label
    """
    for label, threshold in bands:
        if standardized_score >= threshold:
            return label
    return fail_label


def resolve_band(standardized_score: float, scheme: GradingScheme) -> GradeBand:
    """Return the full grade band (label, value, remark) for a standardized score."""
    for band in scheme.bands:
        if standardized_score >= band.threshold:
            return band
    return scheme.fail_band


def derive_scheme(
    percentiles: Sequence[float] = DEFAULT_BAND_PERCENTILES,
    model: DistributionModel = DistributionModel.NORMAL,
    cohort_size: int | None = None,
    template: GradingScheme | None = None,
) -> GradingScheme:
    """
    Build a grading scheme whose thresholds are distribution quantiles.

    Each band's threshold is the standardized score below which the given
    cumulative percentile of the distribution lies. For the Student-t model the
    quantiles use cohort_size - 1 degrees of freedom, so small cohorts get wider
    thresholds than the normal z values.

    Args:
        percentiles: Cumulative percentiles, one per band, best band first (e.g. 95 for A1)
        model: Distribution to take quantiles from
        cohort_size: Number of students; required for the Student-t model
        template: Scheme providing labels, values, remarks and the fail grade (default nine-point scale)

    Returns:
        A new GradingScheme with derived thresholds

    Raises:
        ValueError: If the percentile count does not match the template bands, or the
            Student-t model is requested for fewer than 2 students
    """
    template = template or GradingScheme.default()
    if len(percentiles) != len(template.bands):
        raise ValueError(f"Expected {len(template.bands)} percentiles, got {len(percentiles)}")

    degrees_of_freedom = None
    if model == DistributionModel.STUDENT_T:
        if cohort_size is None or cohort_size < 2:
            raise ValueError("Student-t thresholds need a cohort of at least 2 students")
        degrees_of_freedom = cohort_size - 1

    bands = [
        band.model_copy(update={"threshold": round(critical_value(pct / 100.0, model, degrees_of_freedom), 3)})
        for band, pct in zip(template.bands, percentiles)
    ]

    # Re-validate so non-descending percentiles are rejected like any malformed configuration
    return GradingScheme.model_validate(
        {**template.model_dump(), "distribution_model": model, "bands": [band.model_dump() for band in bands]}
    )
