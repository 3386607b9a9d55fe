"""
Trend Detector: compare adjacent windows of a metric.

direction follows the raw comparison of current vs previous. magnitude is
the percentage change, reported as 0 when the previous value is 0. With
fewer than two samples there is nothing to compare and the result is
stable with magnitude 0.

Uses scipy.stats.linregress for slope estimation in forecast projections.
"""

from typing import Optional, Sequence

import structlog
from scipy import stats

from taskquest.engine.aggregator import safe_average
from taskquest.models.analytics import TrendResult
from taskquest.models.enums import TrendDirection

logger = structlog.get_logger()

# Dashboards that describe volume rather than quality use these words
MOVEMENT_LABELS = {
    TrendDirection.IMPROVING: "increasing",
    TrendDirection.DECLINING: "decreasing",
    TrendDirection.STABLE: "stable",
}


def _percent_change(current: float, previous: float) -> float:
    if previous > 0:
        return round((current - previous) / previous * 100, 2)
    return 0.0


def detect_trend(current: Optional[float], previous: Optional[float]) -> TrendResult:
    """
    Compare the current window value against the previous one.

    A missing value on either side means fewer than two samples, which
    yields stable / 0.
    """
    if current is None or previous is None:
        return TrendResult()

    if current > previous:
        direction = TrendDirection.IMPROVING
    elif current < previous:
        direction = TrendDirection.DECLINING
    else:
        direction = TrendDirection.STABLE

    return TrendResult(direction=direction, magnitude=_percent_change(current, previous))


def detect_sample_trend(samples: Sequence[Optional[float]]) -> TrendResult:
    """Trend across a chronological series: last sample vs first."""
    if len(samples) < 2:
        return TrendResult()
    return detect_trend(samples[-1], samples[0])


def detect_window_trend(
    values: Sequence[float],
    window: int = 7,
    tolerance: float = 0.0,
) -> TrendResult:
    """
    Mean of the most recent ``window`` values vs the ``window`` before it.

    ``values`` is chronological (oldest first). Changes within the relative
    ``tolerance`` band count as stable. Needs two full windows.
    """
    if window < 1 or len(values) < 2 * window:
        return TrendResult()

    recent = safe_average(values[-window:])
    previous = safe_average(values[-2 * window:-window])

    if recent > previous * (1 + tolerance):
        direction = TrendDirection.IMPROVING
    elif recent < previous * (1 - tolerance):
        direction = TrendDirection.DECLINING
    else:
        direction = TrendDirection.STABLE

    return TrendResult(direction=direction, magnitude=_percent_change(recent, previous))


def movement_label(trend: TrendResult) -> str:
    return MOVEMENT_LABELS[trend.direction]


def linear_slope(values: Sequence[float]) -> float:
    """
    Least-squares slope of ``values`` against their index.

    Returns 0 for fewer than two points or a constant series.
    """
    if len(values) < 2:
        return 0.0
    if max(values) == min(values):
        return 0.0
    result = stats.linregress(list(range(len(values))), list(values))
    return float(result.slope)


def project(values: Sequence[float], steps_ahead: int, lower: float = 0.0, upper: float = 1.0) -> float:
    """
    Linear projection ``steps_ahead`` past the last value, clamped to [lower, upper].

    A single point is returned as-is (clamped).
    """
    if not values:
        return 0.0
    if len(values) < 2:
        return max(lower, min(upper, float(values[-1])))

    slope = linear_slope(values)
    projected = float(values[-1]) + slope * steps_ahead
    logger.debug("trend_projection", slope=round(slope, 5), steps_ahead=steps_ahead)
    return max(lower, min(upper, projected))
