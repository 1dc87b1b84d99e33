"""Utility functions for calculating cohort statistics."""

import math
from typing import Sequence

import numpy as np
from scipy import stats

from grading_engine.core.exceptions import EmptySampleError
from grading_engine.schemas.grading import DistributionModel
from grading_engine.schemas.scores import CohortStatistics

ZERO_SPREAD_TOLERANCE = 1e-9


def mean(sample: Sequence[float]) -> float:
    """
    Arithmetic mean of a sample.

    Raises:
        EmptySampleError: If the sample is empty. Callers that must always render a
            value should use compute_statistics instead.
    """
    if len(sample) == 0:
        raise EmptySampleError("Cannot compute the mean of an empty sample")
    return float(np.mean(np.asarray(sample, dtype=float)))


def std_dev(sample: Sequence[float], use_sample_correction: bool = False) -> float:
    """
    Standard deviation of a sample.

    With use_sample_correction the sum of squared deviations is divided by n-1
    (Student-t mode), otherwise by n (Normal mode). Samples of one value or fewer
    have no spread and return 0.0 in both modes, as do samples of identical values.
    """
    if len(sample) <= 1:
        return 0.0
    values = np.asarray(sample, dtype=float)
    if np.ptp(values) == 0:
        return 0.0
    ddof = 1 if use_sample_correction else 0
    return float(np.std(values, ddof=ddof))


def standardize(value: float, sample_mean: float, sample_std_dev: float) -> float:
    """
    Standardized (z or t) score of a value.

    A uniform cohort (std dev of 0, within floating point noise) gives every value
    a score of 0.0.
    """
    if math.isclose(sample_std_dev, 0.0, abs_tol=ZERO_SPREAD_TOLERANCE):
        return 0.0
    return (value - sample_mean) / sample_std_dev


def compute_statistics(sample: Sequence[float], use_sample_correction: bool = False) -> CohortStatistics:
    """
    Calculate mean and standard deviation for a cohort sample.

    Unlike mean(), an empty sample does not raise: it yields a count of 0 with
    mean and std dev of 0.0.
    """
    if len(sample) == 0:
        return CohortStatistics(count=0, mean=0.0, std_dev=0.0)

    return CohortStatistics(
        count=len(sample),
        mean=mean(sample),
        std_dev=std_dev(sample, use_sample_correction),
    )


def critical_value(
    cumulative_probability: float,
    model: DistributionModel = DistributionModel.NORMAL,
    degrees_of_freedom: int | None = None,
) -> float:
    """
    Quantile of the standard normal or Student-t distribution.

    Args:
        cumulative_probability: Probability in (0, 1), e.g. 0.95 for the 95th percentile
        model: Distribution to take the quantile from
        degrees_of_freedom: Required for the Student-t model (cohort size - 1)

    Returns:
        The standardized score below which cumulative_probability of the distribution lies
    """
    if not 0.0 < cumulative_probability < 1.0:
        raise ValueError(f"cumulative_probability must be between 0 and 1, got {cumulative_probability}")

    if model == DistributionModel.STUDENT_T:
        if degrees_of_freedom is None or degrees_of_freedom < 1:
            raise ValueError("Student-t quantiles need at least 1 degree of freedom")
        return float(stats.t.ppf(cumulative_probability, degrees_of_freedom))

    return float(stats.norm.ppf(cumulative_probability))
