"""
Analytics engine: fetch -> aggregate -> classify/trend -> recommend.

Every dashboard service composes these stages; none of them keeps state
between calls.
"""

from taskquest.engine.aggregator import Aggregator, percentage, safe_average
from taskquest.engine.classifier import (
    classify,
    classify_burnout,
    classify_burnout_probability,
    classify_relationship,
    classify_score,
)
from taskquest.engine.fetcher import MetricFetcher
from taskquest.engine.recommendations import generate_recommendations, persist_insights
from taskquest.engine.trend_detector import (
    detect_sample_trend,
    detect_trend,
    detect_window_trend,
    linear_slope,
)

__all__ = [
    "Aggregator",
    "MetricFetcher",
    "classify",
    "classify_burnout",
    "classify_burnout_probability",
    "classify_relationship",
    "classify_score",
    "detect_sample_trend",
    "detect_trend",
    "detect_window_trend",
    "generate_recommendations",
    "linear_slope",
    "percentage",
    "persist_insights",
    "safe_average",
]
