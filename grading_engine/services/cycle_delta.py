"""Service for comparing a subject's results across successive cycles."""

import logging
from typing import Sequence

from grading_engine.schemas.rewards import DeltaMetric, GrowthQuantity
from grading_engine.schemas.scores import CohortSnapshot
from grading_engine.utils.statistics_utils import mean

logger = logging.getLogger(__name__)

NEUTRAL_GROWTH_RATIO = 1.0
INSTITUTIONAL_STANDARD = 5.5  # Mock standard mean grade
EXTERNAL_BASELINE_DEFAULT = 9.0  # Worst grade value, assumed when no external results exist


def compute_delta(current_mean: float, previous_mean: float | None) -> float:
    """
    Growth ratio of the current mean over the previous mean.

    A missing or non-positive previous mean gives the neutral ratio 1.0, so a subject
    without a baseline is neither rewarded nor penalised.
    """
    if previous_mean is None or previous_mean <= 0:
        return NEUTRAL_GROWTH_RATIO
    return current_mean / previous_mean


def _sample_mean(sample: Sequence[float]) -> float:
    return mean(sample) if sample else 0.0


def analyze_cycles(
    current: CohortSnapshot, previous: CohortSnapshot | None = None
) -> list[DeltaMetric]:
    """
    Calculate overall, objective (section A) and theory (section B) growth ratios.

    Each ratio is computed independently with compute_delta. Without a previous
    snapshot (or with an empty one) the previous means are taken to equal the
    current means, giving ratios of 1.0.

    Returns:
        DeltaMetrics in the order overall, objective, theory
    """
    quantities = [
        (GrowthQuantity.OVERALL, current.composites, previous.composites if previous else None),
        (GrowthQuantity.OBJECTIVE, current.section_a, previous.section_a if previous else None),
        (GrowthQuantity.THEORY, current.section_b, previous.section_b if previous else None),
    ]
    has_previous = previous is not None and not previous.is_empty

    metrics = []
    for quantity, current_sample, previous_sample in quantities:
        current_mean = _sample_mean(current_sample)
        previous_mean = _sample_mean(previous_sample) if has_previous else None
        metrics.append(
            DeltaMetric(
                subject=current.subject,
                quantity=quantity,
                current_mean=current_mean,
                previous_mean=previous_mean,
                growth_ratio=compute_delta(current_mean, previous_mean),
            )
        )

    if not has_previous:
        logger.debug("No previous cycle data for %s; growth ratios are neutral", current.subject)
    return metrics


def external_baseline_mean(grades: Sequence[float], default: float = EXTERNAL_BASELINE_DEFAULT) -> float:
    """Mean external (final examination) grade value, or default when there are none."""
    if not grades:
        return default
    return mean(grades)


def sig_diff(institutional_standard: float, external_baseline: float | None) -> float:
    """
    Significant difference between the institutional standard and the external baseline mean.

    Grade values are 1 = best, so a positive result means the cohort's external
    grades beat the standard. Without external results (baseline None) the
    difference is 0.0.
    """
    if external_baseline is None:
        return 0.0
    return institutional_standard - external_baseline
