"""
Trend Regression Module
Ordinary least-squares trend fitting for short, evenly indexed numeric series
"""
from dataclasses import dataclass
from typing import Dict, Sequence

import numpy as np

# A fitted change across the window must exceed this share of the series mean
# to count as a trend. Used everywhere a trend label is derived.
SIGNIFICANT_CHANGE_PCT = 5.0


@dataclass(frozen=True)
class TrendResult:
    """Slope per step and coefficient of determination of a linear fit"""
    slope: float
    r2: float

    def to_dict(self) -> Dict[str, float]:
        return {"slope": self.slope, "r2": self.r2}


def calculate_trend(values: Sequence[float]) -> TrendResult:
    """
    Fit y = a + b*x against x = 0..n-1

    Args:
        values: Ordered numeric series (oldest first)

    Returns:
        TrendResult; (0, 0) for fewer than two points. r2 is 0 for a
        constant series and is kept within [0, 1].
    """
    if len(values) < 2:
        return TrendResult(slope=0.0, r2=0.0)

    y = np.asarray(values, dtype=float)
    x = np.arange(len(y), dtype=float)

    x_mean = x.mean()
    y_mean = y.mean()

    slope = float(np.sum((x - x_mean) * (y - y_mean)) / np.sum((x - x_mean) ** 2))
    intercept = y_mean - slope * x_mean

    ss_res = float(np.sum((y - (intercept + slope * x)) ** 2))
    ss_tot = float(np.sum((y - y_mean) ** 2))

    if ss_tot == 0:
        r2 = 0.0
    else:
        r2 = min(max(1.0 - ss_res / ss_tot, 0.0), 1.0)

    return TrendResult(slope=slope, r2=r2)


def classify_trend(
    values: Sequence[float],
    threshold_pct: float = SIGNIFICANT_CHANGE_PCT
) -> str:
    """
    Label a series as increasing, decreasing or stable

    The fitted change over the whole window (slope * (n - 1)) is compared
    with the series mean. A zero mean falls back to the absolute change.
    """
    if len(values) < 2:
        return "stable"

    trend = calculate_trend(values)
    fitted_change = trend.slope * (len(values) - 1)

    baseline = abs(float(np.mean(values)))
    if baseline == 0:
        baseline = 1.0

    change_pct = fitted_change / baseline * 100

    if change_pct > threshold_pct:
        return "increasing"
    if change_pct < -threshold_pct:
        return "decreasing"
    return "stable"


def predict_next_value(values: Sequence[float]) -> Dict[str, float]:
    """Project one step past the last value; confidence is the fit's r2"""
    if not values:
        return {"value": 0.0, "confidence": 0.0}

    trend = calculate_trend(values)
    return {
        "value": float(values[-1]) + trend.slope,
        "confidence": trend.r2,
    }
