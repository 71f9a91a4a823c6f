"""
Tests for the least-squares trend utility.

These are unit tests that do NOT require a database.
"""
import pytest

from household_insights.ml.regression import (
    SIGNIFICANT_CHANGE_PCT,
    calculate_trend,
    classify_trend,
    predict_next_value,
)


# ────────────────────────────────────────────
# CALCULATE_TREND
# ────────────────────────────────────────────


class TestCalculateTrend:

    @pytest.mark.parametrize("values", [[], [4.2]])
    def test_fewer_than_two_points(self, values):
        result = calculate_trend(values)
        assert result.slope == 0
        assert result.r2 == 0

    def test_perfect_line(self):
        result = calculate_trend([1, 2, 3, 4, 5])
        assert result.slope == pytest.approx(1.0)
        assert result.r2 == pytest.approx(1.0)

    def test_constant_series_has_zero_r2(self):
        """ss_tot is zero, so r2 is defined as 0 rather than dividing by zero."""
        result = calculate_trend([5, 5, 5])
        assert result.slope == 0
        assert result.r2 == 0

    def test_noisy_series_r2_in_unit_interval(self):
        result = calculate_trend([3, 9, 1, 8, 2, 7])
        assert 0.0 <= result.r2 <= 1.0

    def test_falling_series(self):
        result = calculate_trend([10, 8, 6, 4])
        assert result.slope == pytest.approx(-2.0)
        assert result.to_dict() == {"slope": result.slope, "r2": result.r2}


# ────────────────────────────────────────────
# CLASSIFY_TREND
# ────────────────────────────────────────────


class TestClassifyTrend:

    def test_increasing(self):
        assert classify_trend([6, 6.5, 7, 7.5, 8]) == "increasing"

    def test_decreasing(self):
        assert classify_trend([8, 7.5, 7, 6.5, 6]) == "decreasing"

    def test_small_drift_is_stable(self):
        """A 1% fitted change across the window stays under the threshold."""
        assert classify_trend([100, 100.25, 100.5, 100.75, 101]) == "stable"

    def test_single_value_is_stable(self):
        assert classify_trend([3]) == "stable"

    def test_zero_mean_uses_absolute_change(self):
        assert classify_trend([-1, 0, 1]) == "increasing"

    def test_custom_threshold(self):
        values = [100, 102, 104]
        assert classify_trend(values, threshold_pct=SIGNIFICANT_CHANGE_PCT) == "stable"
        assert classify_trend(values, threshold_pct=1.0) == "increasing"


# ────────────────────────────────────────────
# PREDICT_NEXT_VALUE
# ────────────────────────────────────────────


def test_predict_next_value_extends_the_line():
    prediction = predict_next_value([1, 2, 3])
    assert prediction["value"] == pytest.approx(4.0)
    assert prediction["confidence"] == pytest.approx(1.0)


def test_predict_next_value_empty():
    assert predict_next_value([]) == {"value": 0.0, "confidence": 0.0}
