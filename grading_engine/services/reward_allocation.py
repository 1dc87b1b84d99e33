"""Service for efficiency indices and reward pool distribution."""

import logging
import math
from typing import Mapping, Sequence

from grading_engine.schemas.rewards import (
    DeltaMetric,
    EfficiencyIndex,
    RewardShare,
    SigDiffEntry,
    SubjectFactors,
)
from grading_engine.schemas.scores import CohortSnapshot
from grading_engine.services.cycle_delta import analyze_cycles

logger = logging.getLogger(__name__)

MIN_GRADE_PROFICIENCY_FACTOR = 1.0


def grade_proficiency_factor(current_mean: float) -> float:
    """Grade proficiency factor: max(1, 10 - current_mean / 10)."""
    return max(MIN_GRADE_PROFICIENCY_FACTOR, 10 - current_mean / 10)


def efficiency_index(
    subject: str,
    factor: float,
    growth_ratios: Sequence[float],
    staff_name: str | None = None,
) -> EfficiencyIndex:
    """Efficiency index = grade proficiency factor x product of the growth ratios."""
    return EfficiencyIndex(
        subject=subject,
        staff_name=staff_name,
        grade_proficiency_factor=factor,
        growth_ratios=list(growth_ratios),
        composite_index=factor * math.prod(growth_ratios),
    )


def allocate_rewards(subject_factors: Sequence[SubjectFactors], pool_amount: float) -> list[RewardShare]:
    """
    Split a reward pool across subjects in proportion to their efficiency index.

    share = pool_amount * index / sum(all indices). When every index is 0 all
    shares are 0. Results are ranked by index, highest first; equal indices are
    ordered by subject name.

    Args:
        subject_factors: Factor and growth ratios per subject
        pool_amount: Total amount to distribute

    Returns:
        RewardShare list in rank order
    """
    indices = [
        efficiency_index(f.subject, f.grade_proficiency_factor, f.growth_ratios, f.staff_name)
        for f in subject_factors
    ]
    total_index = sum(i.composite_index for i in indices)
    if total_index == 0:
        logger.warning("Efficiency indices sum to 0; all reward shares are 0")

    indices.sort(key=lambda i: (-i.composite_index, i.subject))
    return [
        RewardShare(
            subject=i.subject,
            staff_name=i.staff_name,
            composite_index=i.composite_index,
            pool_amount=pool_amount,
            share=pool_amount * i.composite_index / total_index if total_index > 0 else 0.0,
            rank=position,
        )
        for position, i in enumerate(indices, start=1)
    ]


def rank_by_sig_diff(entries: Sequence[SigDiffEntry]) -> list[SigDiffEntry]:
    """Rank sig-diff entries highest first; equal values are ordered by subject name."""
    ordered = sorted(entries, key=lambda e: (-e.sig_diff, e.subject))
    return [e.model_copy(update={"rank": position}) for position, e in enumerate(ordered, start=1)]


def build_subject_factors(
    current: Mapping[str, CohortSnapshot],
    previous: Mapping[str, CohortSnapshot] | None = None,
    staff: Mapping[str, str] | None = None,
) -> tuple[list[SubjectFactors], list[DeltaMetric]]:
    """
    Derive reward inputs for each subject from two cycles' snapshots.

    The grade proficiency factor comes from the current composite mean; the three
    growth ratios (overall, objective, theory) from analyze_cycles.

    Returns:
        Tuple of (subject factors, all delta metrics)
    """
    previous = previous or {}
    staff = staff or {}

    factors = []
    deltas: list[DeltaMetric] = []
    for subject, snapshot in current.items():
        metrics = analyze_cycles(snapshot, previous.get(subject))
        deltas.extend(metrics)
        overall = metrics[0]
        factors.append(
            SubjectFactors(
                subject=subject,
                staff_name=staff.get(subject),
                grade_proficiency_factor=grade_proficiency_factor(overall.current_mean),
                growth_ratios=[m.growth_ratio for m in metrics],
            )
        )
    return factors, deltas
