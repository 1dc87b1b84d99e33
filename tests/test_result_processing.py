import pytest

from grading_engine.core.exceptions import ResultProcessingError
from grading_engine.schemas.grading import DistributionModel, GradingConfig, GradingScheme, SbaConfig, SortOrder
from grading_engine.schemas.scores import ScoreRecord
from grading_engine.services.result_processing import ResultProcessingService

CONFIG = GradingConfig(sba=SbaConfig(enabled=False))
NAMES = {1: "Abena", 2: "Yaw", 3: "Kwame", 4: "Efua", 5: "Kojo"}


def make_records(composites, cycle_id="MOCK 1", subject="Mathematics"):
    return [
        ScoreRecord(
            student_id=student_id,
            student_name=NAMES.get(student_id),
            cycle_id=cycle_id,
            subject=subject,
            section_a_score=20,
            section_b_score=composite - 20,
        )
        for student_id, composite in composites.items()
    ]


def test_process_cycle_grades_against_subject_cohort():
    records = make_records({1: 40, 2: 50, 3: 60, 4: 70, 5: 80})
    result = ResultProcessingService.process_cycle(records, CONFIG, "MOCK 1")

    stats = result.statistics["Mathematics"].composite
    assert stats.mean == 60.0
    assert stats.std_dev == pytest.approx(14.142, abs=1e-3)

    grades = {s.student_id: s.subjects[0].grade for s in result.students}
    assert grades == {1: "D7", 2: "C6", 3: "C4", 4: "B3", 5: "B2"}

    assert [s.student_id for s in result.students] == [5, 4, 3, 2, 1]
    assert [s.standing.rank for s in result.students] == [1, 2, 3, 4, 5]
    assert result.students[0].student_name == "Kojo"


def test_student_t_model_uses_sample_std_dev():
    config = GradingConfig(scheme=GradingScheme.default(DistributionModel.STUDENT_T), sba=SbaConfig(enabled=False))
    records = make_records({1: 40, 2: 50, 3: 60, 4: 70, 5: 80})
    result = ResultProcessingService.process_cycle(records, config, "MOCK 1")

    assert result.statistics["Mathematics"].composite.std_dev == pytest.approx(15.811, abs=1e-3)
    top = result.students[0].subjects[0]
    assert top.z_score == pytest.approx(20 / 15.811, abs=1e-3)


def test_uniform_cohort_gets_middle_grade():
    result = ResultProcessingService.process_cycle(make_records({1: 55, 2: 55, 3: 55}), CONFIG, "MOCK 1")
    assert {s.subjects[0].z_score for s in result.students} == {0.0}
    assert {s.subjects[0].grade for s in result.students} == {"C4"}


def test_uniform_cohort_with_fractional_composites_gets_middle_grade():
    records = [
        ScoreRecord(
            student_id=student_id,
            cycle_id="MOCK 1",
            subject="Mathematics",
            section_a_score=30,
            section_b_score=31,
            sba_score=27,
        )
        for student_id in (1, 2, 3)
    ]
    result = ResultProcessingService.process_cycle(records, GradingConfig(), "MOCK 1")

    assert all(s.subjects[0].composite == pytest.approx(50.8) for s in result.students)
    assert result.statistics["Mathematics"].composite.std_dev == 0.0
    assert [s.subjects[0].z_score for s in result.students] == [0.0, 0.0, 0.0]
    assert [s.subjects[0].grade for s in result.students] == ["C4", "C4", "C4"]


def test_other_cycles_are_ignored():
    records = make_records({1: 40, 2: 80}) + make_records({1: 10, 2: 10, 3: 10}, cycle_id="MOCK 2")
    result = ResultProcessingService.process_cycle(records, CONFIG, "MOCK 1")
    assert len(result.students) == 2
    assert result.statistics["Mathematics"].composite.mean == 60.0


def test_empty_cycle():
    result = ResultProcessingService.process_cycle([], CONFIG, "MOCK 9")
    assert result.students == []
    assert result.summary.student_count == 0
    assert result.summary.avg_composite == 0.0

    with pytest.raises(ResultProcessingError):
        ResultProcessingService.process_cycle([], CONFIG, "MOCK 9", strict=True)


def test_roster_student_without_records_ranks_last():
    records = make_records({1: 40, 2: 80})
    result = ResultProcessingService.process_cycle(records, CONFIG, "MOCK 1", roster=[1, 2, 99])

    last = result.students[-1]
    assert last.student_id == 99
    assert last.subjects == []
    assert last.standing.missing
    assert last.standing.aggregate == 54
    assert last.standing.rank == 3
    assert result.summary.student_count == 3


def test_display_order_follows_config():
    config = GradingConfig(sba=SbaConfig(enabled=False), sort_order=SortOrder.NAME_ASC)
    result = ResultProcessingService.process_cycle(make_records({1: 40, 2: 50, 3: 60}), config, "MOCK 1")
    assert [s.student_name for s in result.students] == ["Abena", "Kwame", "Yaw"]
    assert [s.standing.rank for s in result.students] == [3, 1, 2]


def test_cycle_summary():
    result = ResultProcessingService.process_cycle(make_records({1: 40, 2: 50, 3: 60, 4: 70, 5: 80}), CONFIG, "MOCK 1")
    summary = result.summary
    assert summary.avg_composite == 60.0
    assert summary.avg_objective == 20.0
    assert summary.avg_theory == 40.0
    assert summary.avg_aggregate == pytest.approx((7 + 6 + 4 + 3 + 2) / 5)


def test_efficiency_report():
    records = (
        make_records({1: 30, 2: 40}, cycle_id="MOCK 1")
        + make_records({1: 45, 2: 55}, cycle_id="MOCK 2")
        + make_records({1: 60, 2: 60}, cycle_id="MOCK 1", subject="English Language")
        + make_records({1: 60, 2: 60}, cycle_id="MOCK 2", subject="English Language")
    )
    report = ResultProcessingService.efficiency_report(
        records,
        CONFIG,
        current_cycle="MOCK 2",
        previous_cycle="MOCK 1",
        pool_amount=10000,
        staff={"Mathematics": "Mrs. Owusu"},
        external_grades={"Mathematics": [3, 4, 5]},
    )

    assert len(report.deltas) == 6
    maths, english = report.shares
    assert maths.subject == "Mathematics"
    assert maths.staff_name == "Mrs. Owusu"
    # factor 5 x overall 50/35 x objective 1 x theory 30/15
    assert maths.composite_index == pytest.approx(5 * (50 / 35) * 1.0 * 2.0)
    assert english.composite_index == pytest.approx(4.0)
    assert maths.share + english.share == pytest.approx(10000)

    assert [(e.subject, e.sig_diff, e.rank) for e in report.sig_diff] == [
        ("Mathematics", 1.5, 1),
        ("English Language", 0.0, 2),
    ]
    english_sig_diff = report.sig_diff[1]
    assert english_sig_diff.external_baseline_mean == 9.0


def test_efficiency_report_without_previous_cycle_is_neutral():
    records = make_records({1: 30, 2: 40}, cycle_id="MOCK 1")
    report = ResultProcessingService.efficiency_report(records, CONFIG, "MOCK 1", None, pool_amount=500)
    assert all(d.growth_ratio == 1.0 for d in report.deltas)
    assert report.shares[0].share == 500
    assert report.sig_diff[0].sig_diff == 0.0
    assert report.sig_diff[0].external_baseline_mean == 9.0
