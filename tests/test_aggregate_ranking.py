import pytest

from grading_engine.core.exceptions import CycleAlreadyCommittedError
from grading_engine.schemas.grading import DEFAULT_CATEGORY_THRESHOLDS, CategoryThreshold, SortOrder
from grading_engine.services.aggregate_ranking import (
    AggregateLedger,
    calculate_aggregate,
    classify_aggregate,
    order_cohort,
    rank_cohort,
    select_best_subjects,
)

CATEGORIES = [CategoryThreshold(**c) for c in DEFAULT_CATEGORY_THRESHOLDS]
CORE = ["Mathematics", "English Language", "Social Studies", "Science"]


def test_best_six_of_seven():
    grades = {"Math": 1, "Eng": 2, "Sci": 4, "Soc": 3, "ICT": 5, "French": 6, "RME": 9}
    best = select_best_subjects(grades, best_n=6)
    assert "RME" not in best
    assert calculate_aggregate(grades, best) == 21


def test_fewer_subjects_than_best_n_uses_all():
    grades = {"Math": 2, "Eng": 3, "Sci": 1}
    best = select_best_subjects(grades, best_n=6)
    assert sorted(best) == ["Eng", "Math", "Sci"]
    assert calculate_aggregate(grades, best) == 6


def test_core_and_elective_selection():
    grades = {
        "Mathematics": 3,
        "English Language": 1,
        "Science": 5,
        "Social Studies": 2,
        "ICT": 1,
        "French": 2,
        "RME": 4,
    }
    best = select_best_subjects(grades, best_n=6, core_subjects=CORE, best_core=4)
    assert set(best[:4]) == set(CORE)
    assert set(best[4:]) == {"ICT", "French"}
    assert calculate_aggregate(grades, best) == 14


def test_grade_ties_broken_by_composite():
    grades = {"Math": 2, "Eng": 2, "Sci": 2}
    best = select_best_subjects(grades, best_n=2, composites={"Math": 70, "Eng": 75, "Sci": 80})
    assert best == ["Sci", "Eng"]


def test_classify_aggregate():
    assert classify_aggregate(6, CATEGORIES) == "Distinction"
    assert classify_aggregate(15, CATEGORIES) == "Merit"
    assert classify_aggregate(36, CATEGORIES) == "Pass"
    assert classify_aggregate(54, CATEGORIES) == "Fail"
    assert classify_aggregate(3, CATEGORIES) == "Pass"


def test_ranks_are_a_permutation_in_aggregate_order():
    student_grades = {
        "s1": {"Math": 3, "Eng": 4},
        "s2": {"Math": 1, "Eng": 1},
        "s3": {"Math": 9, "Eng": 8},
        "s4": {"Math": 2, "Eng": 3},
    }
    ranked = rank_cohort(student_grades, best_n=6)
    assert sorted(a.rank for a in ranked) == [1, 2, 3, 4]
    assert [a.student_id for a in ranked] == ["s2", "s4", "s1", "s3"]
    aggregates = [a.aggregate for a in ranked]
    assert aggregates == sorted(aggregates)


def test_student_without_grades_ranks_last():
    ranked = rank_cohort({"s1": {"Math": 9}, "s2": {}, "s3": {"Math": 1}})
    assert ranked[-1].student_id == "s2"
    assert ranked[-1].aggregate == 54
    assert ranked[-1].missing
    assert ranked[-1].rank == 3


def test_student_without_grades_ranks_last_even_with_small_sentinel():
    ranked = rank_cohort({"s1": {"Math": 9}, "s2": {}}, sentinel_for_missing=0)
    assert [a.student_id for a in ranked] == ["s1", "s2"]


def test_equal_aggregates_broken_by_total_score():
    ranked = rank_cohort(
        {"s1": {"Math": 2}, "s2": {"Math": 2}},
        total_scores={"s1": 60.0, "s2": 75.0},
    )
    assert [a.student_id for a in ranked] == ["s2", "s1"]
    assert [a.rank for a in ranked] == [1, 2]


def test_equal_aggregates_do_not_depend_on_input_order():
    forward = rank_cohort({10: {"Math": 3}, 2: {"Math": 3}, 7: {"Math": 3}})
    backward = rank_cohort({7: {"Math": 3}, 2: {"Math": 3}, 10: {"Math": 3}})
    assert [a.student_id for a in forward] == [2, 7, 10]
    assert [a.student_id for a in backward] == [2, 7, 10]


def test_non_decimal_digit_ids_sort_as_text():
    ranked = rank_cohort({"\u00b2": {"Math": 3}, "10": {"Math": 3}, "9": {"Math": 3}})
    assert [a.student_id for a in ranked] == ["9", "10", "\u00b2"]


def test_categories_are_assigned():
    ranked = rank_cohort({"s1": {"Math": 1, "Eng": 2, "Sci": 3}}, categories=CATEGORIES)
    assert ranked[0].category == "Distinction"


def test_order_cohort_keeps_ranks():
    ranked = rank_cohort(
        {"1": {"Math": 3}, "2": {"Math": 1}, "3": {"Math": 2}},
        total_scores={"1": 40.0, "2": 90.0, "3": 70.0},
        student_names={"1": "Ama", "2": "Kofi", "3": "Esi"},
    )
    by_name = order_cohort(ranked, SortOrder.NAME_ASC)
    assert [a.student_name for a in by_name] == ["Ama", "Esi", "Kofi"]
    assert [a.rank for a in by_name] == [3, 2, 1]

    by_name_desc = order_cohort(ranked, SortOrder.NAME_DESC)
    assert [a.student_name for a in by_name_desc] == ["Kofi", "Esi", "Ama"]

    by_id = order_cohort(ranked, SortOrder.ID_ASC)
    assert [a.student_id for a in by_id] == ["1", "2", "3"]

    by_total = order_cohort(ranked, SortOrder.TOTAL_DESC)
    assert [a.total_score for a in by_total] == [90.0, 70.0, 40.0]

    by_aggregate = order_cohort(by_name, SortOrder.AGGREGATE_ASC)
    assert [a.rank for a in by_aggregate] == [1, 2, 3]


def test_ledger_commit_and_history():
    ledger = AggregateLedger()
    ranked = rank_cohort({1: {"Math": 2}, 2: {"Math": 1}})
    records = ledger.commit("MOCK 1", ranked)

    assert ledger.is_committed("MOCK 1")
    assert [r.student_id for r in records] == [2, 1]
    assert records[0].best_n_aggregate == 1
    assert ledger.get("MOCK 2") == []

    ledger.commit("MOCK 2", rank_cohort({1: {"Math": 1}, 2: {"Math": 4}}))
    history = ledger.history(1)
    assert history["MOCK 1"].rank == 2
    assert history["MOCK 2"].rank == 1


def test_ledger_refuses_second_commit_without_recommit():
    ledger = AggregateLedger()
    ledger.commit("MOCK 1", rank_cohort({1: {"Math": 2}}))

    with pytest.raises(CycleAlreadyCommittedError):
        ledger.commit("MOCK 1", rank_cohort({1: {"Math": 5}}))
    assert ledger.get("MOCK 1")[0].best_n_aggregate == 2

    ledger.commit("MOCK 1", rank_cohort({1: {"Math": 5}}), recommit=True)
    assert ledger.get("MOCK 1")[0].best_n_aggregate == 5
