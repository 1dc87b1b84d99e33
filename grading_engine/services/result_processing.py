"""Service for processing a cycle's score records into grades, ranks and rewards."""

import logging
from collections import defaultdict
from typing import Iterable, Mapping, Sequence

from grading_engine.core.exceptions import ResultProcessingError
from grading_engine.schemas.grading import GradingConfig
from grading_engine.schemas.ranking import CycleResult, CycleSummary, StudentAggregate, StudentResult
from grading_engine.schemas.rewards import EfficiencyReport, SigDiffEntry
from grading_engine.schemas.scores import (
    CohortSnapshot,
    CompositeScore,
    ScoreRecord,
    StudentId,
    SubjectResult,
    SubjectStatistics,
)
from grading_engine.services.aggregate_ranking import order_cohort, rank_cohort
from grading_engine.services.composite_scoring import apply_configuration
from grading_engine.services.cycle_delta import (
    EXTERNAL_BASELINE_DEFAULT,
    INSTITUTIONAL_STANDARD,
    external_baseline_mean,
    sig_diff,
)
from grading_engine.services.grade_resolution import resolve_band
from grading_engine.services.reward_allocation import allocate_rewards, build_subject_factors, rank_by_sig_diff
from grading_engine.utils.statistics_utils import compute_statistics, standardize

logger = logging.getLogger(__name__)


def _subjects_in_order(composites: Iterable[CompositeScore]) -> list[str]:
    seen: dict[str, None] = {}
    for c in composites:
        seen.setdefault(c.subject, None)
    return list(seen)


class ResultProcessingService:
    """Service for grading a cycle and deriving cross-cycle reward shares."""

    @staticmethod
    def composites_for_cycle(
        records: Iterable[ScoreRecord], config: GradingConfig, cycle_id: str
    ) -> list[CompositeScore]:
        """Score the records of one cycle; records of other cycles are ignored."""
        return apply_configuration((r for r in records if r.cycle_id == cycle_id), config)

    @staticmethod
    def calculate_subject_statistics(
        composites: Sequence[CompositeScore], config: GradingConfig
    ) -> dict[str, SubjectStatistics]:
        """Cohort statistics per subject for composites and both sections."""
        use_sample_correction = config.scheme.use_sample_correction
        by_subject: dict[str, list[CompositeScore]] = defaultdict(list)
        for c in composites:
            by_subject[c.subject].append(c)

        return {
            subject: SubjectStatistics(
                subject=subject,
                composite=compute_statistics([c.composite for c in items], use_sample_correction),
                section_a=compute_statistics([c.section_a for c in items], use_sample_correction),
                section_b=compute_statistics([c.section_b for c in items], use_sample_correction),
            )
            for subject, items in by_subject.items()
        }

    @staticmethod
    def grade_composite(composite: CompositeScore, stats: SubjectStatistics, config: GradingConfig) -> SubjectResult:
        """Standardize a composite against its subject's cohort and resolve its grade."""
        z_score = standardize(composite.composite, stats.composite.mean, stats.composite.std_dev)
        band = resolve_band(z_score, config.scheme)
        return SubjectResult(
            subject=composite.subject,
            section_a=composite.section_a,
            section_b=composite.section_b,
            exam_score=composite.exam_score,
            sba_score=composite.sba_score,
            composite=composite.composite,
            z_score=z_score,
            grade=band.label,
            grade_value=band.value,
            remark=band.remark,
        )

    @staticmethod
    def process_cycle(
        records: Sequence[ScoreRecord],
        config: GradingConfig,
        cycle_id: str,
        strict: bool = False,
        roster: Sequence[StudentId] | None = None,
    ) -> CycleResult:
        """
        Grade every student in a cycle and rank the cohort.

        Composites are standardized per subject against that subject's cohort
        (population or n-1 std dev depending on the scheme's distribution model),
        graded, then aggregated over the best-N subjects and ranked.

        Args:
            records: Score records; only those for cycle_id are used
            config: Grading configuration
            cycle_id: Cycle to process
            strict: Raise instead of returning an empty result when the cycle has no records
            roster: Students expected in the cycle. Those without records get the
                missing-aggregate sentinel and rank last.

        Returns:
            CycleResult with statistics, per-student results in display order, and a summary

        Raises:
            ResultProcessingError: If strict is True and no records exist for the cycle
        """
        composites = ResultProcessingService.composites_for_cycle(records, config, cycle_id)
        if not composites:
            if strict:
                raise ResultProcessingError(f"No score records found for cycle '{cycle_id}'")
            logger.warning("No score records found for cycle %s", cycle_id)

        statistics = ResultProcessingService.calculate_subject_statistics(composites, config)

        names: dict[StudentId, str | None] = {}
        for record in records:
            if record.student_name and (record.cycle_id == cycle_id or roster is not None):
                names.setdefault(record.student_id, record.student_name)

        subject_results: dict[StudentId, list[SubjectResult]] = defaultdict(list)
        for composite in composites:
            subject_results[composite.student_id].append(
                ResultProcessingService.grade_composite(composite, statistics[composite.subject], config)
            )

        student_grades = {sid: {r.subject: r.grade_value for r in results} for sid, results in subject_results.items()}
        for student_id in roster or []:
            student_grades.setdefault(student_id, {})

        standings = rank_cohort(
            student_grades,
            best_n=config.best_n,
            sentinel_for_missing=config.missing_aggregate_sentinel,
            total_scores={sid: sum(r.composite for r in results) for sid, results in subject_results.items()},
            student_names=names,
            core_subjects=config.core_subjects or None,
            best_core=config.best_core,
            subject_composites={
                sid: {r.subject: r.composite for r in results} for sid, results in subject_results.items()
            },
            categories=config.categories,
        )

        students = [
            StudentResult(
                student_id=standing.student_id,
                student_name=standing.student_name,
                subjects=subject_results[standing.student_id],
                standing=standing,
            )
            for standing in order_cohort(standings, config.sort_order)
        ]

        logger.info(
            "Processed cycle %s: %d students, %d subjects", cycle_id, len(students), len(statistics)
        )
        return CycleResult(
            cycle_id=cycle_id,
            statistics=statistics,
            students=students,
            summary=ResultProcessingService.summarize_cycle(cycle_id, composites, standings),
        )

    @staticmethod
    def summarize_cycle(
        cycle_id: str, composites: Sequence[CompositeScore], standings: Sequence[StudentAggregate]
    ) -> CycleSummary:
        """Institution-wide averages for a cycle; zero when the cycle is empty."""
        graded = [s for s in standings if not s.missing]

        def _avg(values: Sequence[float]) -> float:
            return sum(values) / len(values) if values else 0.0

        return CycleSummary(
            cycle_id=cycle_id,
            student_count=len(standings),
            avg_composite=_avg([c.composite for c in composites]),
            avg_aggregate=_avg([s.aggregate for s in graded]),
            avg_objective=_avg([c.section_a for c in composites]),
            avg_theory=_avg([c.section_b for c in composites]),
        )

    @staticmethod
    def efficiency_report(
        records: Sequence[ScoreRecord],
        config: GradingConfig,
        current_cycle: str,
        previous_cycle: str | None,
        pool_amount: float,
        staff: Mapping[str, str] | None = None,
        external_grades: Mapping[str, Sequence[float]] | None = None,
        institutional_standard: float = INSTITUTIONAL_STANDARD,
        external_baseline_default: float = EXTERNAL_BASELINE_DEFAULT,
    ) -> EfficiencyReport:
        """
        Compare two cycles per subject and split the reward pool.

        Args:
            records: Score records of at least the current cycle
            config: Grading configuration used to build composites
            current_cycle: Cycle being rewarded
            previous_cycle: Baseline cycle, or None (all growth ratios neutral)
            pool_amount: Reward pool to distribute
            staff: Subject -> staff member teaching it
            external_grades: Subject -> external examination grade values for sig-diff
            institutional_standard: Standard mean grade the external baseline is compared to
            external_baseline_default: Baseline mean for subjects without external grades

        Returns:
            EfficiencyReport with deltas, ranked shares and ranked sig-diff entries
        """
        staff = staff or {}
        external_grades = external_grades or {}

        current_composites = ResultProcessingService.composites_for_cycle(records, config, current_cycle)
        current = {
            subject: CohortSnapshot.from_composites(subject, current_cycle, current_composites)
            for subject in _subjects_in_order(current_composites)
        }

        previous: dict[str, CohortSnapshot] = {}
        if previous_cycle is not None:
            previous_composites = ResultProcessingService.composites_for_cycle(records, config, previous_cycle)
            previous = {
                subject: CohortSnapshot.from_composites(subject, previous_cycle, previous_composites)
                for subject in _subjects_in_order(previous_composites)
            }

        factors, deltas = build_subject_factors(current, previous, staff)
        shares = allocate_rewards(factors, pool_amount)

        sig_diff_entries = []
        for subject in current:
            grades = external_grades.get(subject, [])
            baseline = external_baseline_mean(grades, external_baseline_default)
            sig_diff_entries.append(
                SigDiffEntry(
                    subject=subject,
                    staff_name=staff.get(subject),
                    institutional_standard=institutional_standard,
                    external_baseline_mean=baseline,
                    sig_diff=sig_diff(institutional_standard, baseline if grades else None),
                )
            )

        logger.info(
            "Efficiency report for %s against %s: %d subjects, pool %.2f",
            current_cycle,
            previous_cycle,
            len(shares),
            pool_amount,
        )
        return EfficiencyReport(
            current_cycle=current_cycle,
            previous_cycle=previous_cycle,
            pool_amount=pool_amount,
            deltas=deltas,
            shares=shares,
            sig_diff=rank_by_sig_diff(sig_diff_entries),
        )
