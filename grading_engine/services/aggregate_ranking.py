"""Service for best-N aggregates, cohort ranking and committed cycle snapshots."""

import logging
from datetime import datetime, timezone
from typing import Mapping, Sequence

from grading_engine.core.exceptions import CycleAlreadyCommittedError
from grading_engine.schemas.grading import CategoryThreshold, SortOrder
from grading_engine.schemas.ranking import AggregateRecord, StudentAggregate
from grading_engine.schemas.scores import StudentId

logger = logging.getLogger(__name__)

# Aggregate for a student with no grades: 6 subjects at grade value 9. Students using
# it always rank after every student with a computed aggregate.
MISSING_AGGREGATE_SENTINEL = 54

# Category used when an aggregate falls in no configured range
DEFAULT_CATEGORY = "Pass"


def _student_id_key(student_id: StudentId) -> tuple[int, int, str]:
    """Sort numeric ids numerically, then string ids alphabetically."""
    if isinstance(student_id, int):
        return (0, student_id, "")
    if student_id.isdecimal():
        return (0, int(student_id), student_id)
    return (1, 0, student_id)


def _best_of(
    grades: Mapping[str, int], subjects: Sequence[str], count: int, composites: Mapping[str, float]
) -> list[str]:
    # Lower grade value first; higher composite breaks ties, then subject name
    ordered = sorted(subjects, key=lambda s: (grades[s], -composites.get(s, 0.0), s))
    return ordered[:count]


def select_best_subjects(
    grades: Mapping[str, int],
    best_n: int = 6,
    core_subjects: Sequence[str] | None = None,
    best_core: int = 4,
    composites: Mapping[str, float] | None = None,
) -> list[str]:
    """
    Select the subjects counted in a student's aggregate.

    Without core subjects, the best_n lowest grade values are taken. With core
    subjects, the best best_core core subjects plus the best (best_n - best_core)
    electives are taken. When fewer subjects are available than requested, all
    available subjects are used (no padding).

    Args:
        grades: Subject -> grade value (1 is best)
        best_n: Number of subjects counted
        core_subjects: Subjects that form the core group, or None for no split
        best_core: Core subjects counted when core_subjects is given
        composites: Subject -> composite score, used to break grade ties

    Returns:
        Selected subject names, best first within each group
    """
    composites = composites or {}
    if not core_subjects:
        return _best_of(grades, list(grades), best_n, composites)

    core_set = set(core_subjects)
    cores = [s for s in grades if s in core_set]
    electives = [s for s in grades if s not in core_set]
    core_count = min(best_core, best_n)
    return _best_of(grades, cores, core_count, composites) + _best_of(
        grades, electives, best_n - core_count, composites
    )


def calculate_aggregate(grades: Mapping[str, int], subjects: Sequence[str]) -> int:
    """Sum the grade values of the selected subjects."""
    return sum(grades[s] for s in subjects)


def classify_aggregate(aggregate: float, categories: Sequence[CategoryThreshold]) -> str:
    """Return the label of the first category whose range contains the aggregate."""
    for category in categories:
        if category.min <= aggregate <= category.max:
            return category.label
    return DEFAULT_CATEGORY


def rank_cohort(
    student_grades: Mapping[StudentId, Mapping[str, int]],
    best_n: int = 6,
    sentinel_for_missing: float = MISSING_AGGREGATE_SENTINEL,
    total_scores: Mapping[StudentId, float] | None = None,
    student_names: Mapping[StudentId, str | None] | None = None,
    core_subjects: Sequence[str] | None = None,
    best_core: int = 4,
    subject_composites: Mapping[StudentId, Mapping[str, float]] | None = None,
    categories: Sequence[CategoryThreshold] | None = None,
) -> list[StudentAggregate]:
    """
    Calculate best-N aggregates and rank the cohort by them.

    Ranking is ascending by aggregate (lower is better). Students with no grades
    get sentinel_for_missing and rank after every student with a computed
    aggregate, whatever the sentinel's value. Equal aggregates are ordered by
    higher total score first (when total_scores is given), then by student id
    ascending, so the result does not depend on input order.

    Args:
        student_grades: Student id -> subject -> grade value
        best_n: Number of subjects counted per student
        sentinel_for_missing: Aggregate reported for students with no grades
        total_scores: Student id -> sum of composites, used as the first tie-break
        student_names: Student id -> name, carried through for display ordering
        core_subjects: Optional core group for the core/elective selection rule
        best_core: Core subjects counted when core_subjects is given
        subject_composites: Student id -> subject -> composite, to break grade ties when selecting
        categories: Aggregate categories to classify each student into

    Returns:
        StudentAggregate list in rank order, ranks 1..N
    """
    total_scores = total_scores or {}
    student_names = student_names or {}
    subject_composites = subject_composites or {}

    aggregates = []
    for student_id, grades in student_grades.items():
        total = float(total_scores.get(student_id, 0.0))
        if grades:
            best = select_best_subjects(
                grades, best_n, core_subjects, best_core, subject_composites.get(student_id)
            )
            aggregate = float(calculate_aggregate(grades, best))
            missing = False
        else:
            best = []
            aggregate = float(sentinel_for_missing)
            missing = True

        aggregates.append(
            StudentAggregate(
                student_id=student_id,
                student_name=student_names.get(student_id),
                aggregate=aggregate,
                best_subjects=best,
                subjects_counted=len(best),
                total_score=total,
                category=classify_aggregate(aggregate, categories) if categories and not missing else None,
                missing=missing,
            )
        )

    aggregates.sort(key=lambda a: (a.missing, a.aggregate, -a.total_score, _student_id_key(a.student_id)))
    for position, student in enumerate(aggregates, start=1):
        student.rank = position

    return aggregates


def order_cohort(aggregates: Sequence[StudentAggregate], sort_order: SortOrder) -> list[StudentAggregate]:
    """
    Order ranked students for display. Ranks are not changed.

    Students without a name sort after named students for the name orders.
    """
    if sort_order == SortOrder.NAME_ASC:
        return sorted(aggregates, key=lambda a: (a.student_name is None, (a.student_name or "").casefold(), a.rank))
    if sort_order == SortOrder.NAME_DESC:
        named = sorted(
            (a for a in aggregates if a.student_name is not None),
            key=lambda a: (a.student_name.casefold(), -a.rank),
            reverse=True,
        )
        return named + [a for a in aggregates if a.student_name is None]
    if sort_order == SortOrder.ID_ASC:
        return sorted(aggregates, key=lambda a: _student_id_key(a.student_id))
    if sort_order == SortOrder.TOTAL_DESC:
        return sorted(aggregates, key=lambda a: (-a.total_score, a.rank))
    return sorted(aggregates, key=lambda a: a.rank)


class AggregateLedger:
    """
    Committed aggregate snapshots, keyed by cycle.

    The ledger belongs to the caller. It does no locking: at most one writer may
    commit a given cycle at a time.
    """

    def __init__(self) -> None:
        self._cycles: dict[str, dict[StudentId, AggregateRecord]] = {}

    def commit(
        self, cycle_id: str, aggregates: Sequence[StudentAggregate], recommit: bool = False
    ) -> list[AggregateRecord]:
        """
        Freeze the aggregates of a cycle.

        Raises:
            CycleAlreadyCommittedError: If the cycle was committed before and recommit is False
        """
        if cycle_id in self._cycles and not recommit:
            raise CycleAlreadyCommittedError(cycle_id)

        committed_at = datetime.now(timezone.utc)
        records = {
            a.student_id: AggregateRecord(
                student_id=a.student_id,
                cycle_id=cycle_id,
                best_n_aggregate=a.aggregate,
                rank=a.rank,
                committed_at=committed_at,
            )
            for a in aggregates
        }
        if cycle_id in self._cycles:
            logger.info("Recommitting cycle %s (%d students)", cycle_id, len(records))
        else:
            logger.info("Committing cycle %s (%d students)", cycle_id, len(records))
        self._cycles[cycle_id] = records
        return sorted(records.values(), key=lambda r: r.rank)

    def is_committed(self, cycle_id: str) -> bool:
        return cycle_id in self._cycles

    def get(self, cycle_id: str) -> list[AggregateRecord]:
        """Committed records for a cycle in rank order; empty if the cycle is not committed."""
        return sorted(self._cycles.get(cycle_id, {}).values(), key=lambda r: r.rank)

    def history(self, student_id: StudentId) -> dict[str, AggregateRecord]:
        """Committed record per cycle for one student."""
        return {
            cycle_id: records[student_id]
            for cycle_id, records in self._cycles.items()
            if student_id in records
        }
