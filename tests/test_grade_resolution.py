import pytest
from pydantic import ValidationError

from grading_engine.schemas.grading import DEFAULT_GRADE_BANDS, DistributionModel, GradingScheme
from grading_engine.services.grade_resolution import derive_scheme, resolve_band, resolve_grade

BANDS = [("A1", 1.645), ("B2", 1.036), ("B3", 0.524), ("C4", 0.0)]


def test_resolve_grade_picks_first_band_met():
    assert resolve_grade(1.414, BANDS, "F9") == "B2"
    assert resolve_grade(2.5, BANDS, "F9") == "A1"


def test_threshold_is_inclusive():
    assert resolve_grade(1.036, BANDS, "F9") == "B2"
    assert resolve_grade(0.0, BANDS, "F9") == "C4"


def test_score_below_every_band_gets_fail_label():
    assert resolve_grade(-0.01, BANDS, "F9") == "F9"
    assert resolve_grade(-10, [], "F9") == "F9"


def test_resolve_band_with_default_scheme():
    scheme = GradingScheme.default()
    band = resolve_band(1.414, scheme)
    assert (band.label, band.value, band.remark) == ("B2", 2, "Very Good")

    fail = resolve_band(-3.0, scheme)
    assert (fail.label, fail.value, fail.remark) == ("F9", 9, "Fail")


def test_grade_value_never_improves_as_score_drops():
    scheme = GradingScheme.default()
    scores = [3.0, 1.645, 1.2, 1.036, 0.6, 0.0, -0.3, -0.524, -1.0, -1.645, -2.0, -2.326, -2.4, -5.0]
    values = [resolve_band(score, scheme).value for score in scores]
    assert values == sorted(values)
    assert values[0] == 1
    assert values[-1] == 9


def test_scheme_rejects_non_descending_thresholds():
    bands = [
        {"label": "A1", "threshold": 1.0, "value": 1},
        {"label": "B2", "threshold": 1.5, "value": 2},
    ]
    with pytest.raises(ValidationError):
        GradingScheme(bands=bands)


def test_scheme_rejects_duplicate_labels():
    bands = [
        {"label": "A1", "threshold": 1.0, "value": 1},
        {"label": "A1", "threshold": 0.5, "value": 2},
    ]
    with pytest.raises(ValidationError):
        GradingScheme(bands=bands)


def test_scheme_rejects_fail_value_not_worse_than_bands():
    with pytest.raises(ValidationError):
        GradingScheme(bands=DEFAULT_GRADE_BANDS, fail_value=8)


def test_scheme_rejects_fail_label_reused_by_band():
    with pytest.raises(ValidationError):
        GradingScheme(bands=DEFAULT_GRADE_BANDS, fail_label="A1")


def test_derived_normal_scheme_matches_default_thresholds():
    derived = derive_scheme()
    default = GradingScheme.default()
    assert [b.label for b in derived.bands] == [b.label for b in default.bands]
    for derived_band, default_band in zip(derived.bands, default.bands):
        assert derived_band.threshold == pytest.approx(default_band.threshold, abs=1e-3)


def test_derived_student_t_scheme_is_wider_for_small_cohorts():
    derived = derive_scheme(model=DistributionModel.STUDENT_T, cohort_size=10)
    assert derived.distribution_model == DistributionModel.STUDENT_T
    assert derived.bands[0].threshold > 1.645
    assert derived.bands[-1].threshold < -2.326
    assert derived.use_sample_correction


def test_derive_student_t_scheme_needs_a_cohort():
    with pytest.raises(ValueError):
        derive_scheme(model=DistributionModel.STUDENT_T, cohort_size=1)


def test_derive_scheme_rejects_wrong_percentile_count():
    with pytest.raises(ValueError):
        derive_scheme(percentiles=[95, 85])


def test_derive_scheme_rejects_ascending_percentiles():
    with pytest.raises(ValidationError):
        derive_scheme(percentiles=[1, 5, 15, 30, 50, 70, 85, 95])
