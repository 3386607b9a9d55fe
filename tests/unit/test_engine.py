"""
Unit tests for the analytics engine.

Covers the aggregator, classifier, trend detector, heuristics,
recommendation tables, metric fetcher and timestamp helpers.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from taskquest.engine.aggregator import (
    Aggregator,
    bucket_range,
    next_bucket,
    percentage,
    safe_average,
    to_float,
    to_samples,
)
from taskquest.engine.classifier import (
    SCORE_BANDS,
    classify,
    classify_burnout,
    classify_burnout_probability,
    classify_relationship,
    classify_score,
    time_of_day_label,
)
from taskquest.engine.fetcher import MetricFetcher
from taskquest.engine.heuristics import (
    burnout_score,
    complexity_weight,
    goal_completion_probability,
    goal_progress,
    infer_complexity,
    infer_priority,
    interaction_frequency,
    networking_score,
    normalize_complexity,
    suggest_due_date,
    task_content,
    wellness_components,
)
from taskquest.engine.recommendations import (
    BURNOUT_RECOMMENDATIONS,
    DECLINING_CONTACT_RECOMMENDATION,
    DORMANT_CONTACT_RECOMMENDATIONS,
    STRONG_CONTACT_RECOMMENDATIONS,
    WELLNESS_INDICATOR_RULES,
    generate_recommendations,
    goal_recommendations,
    immediate_actions,
    persist_insights,
    wellness_indicators,
    wellness_insights,
)
from taskquest.engine.trend_detector import (
    detect_sample_trend,
    detect_trend,
    detect_window_trend,
    linear_slope,
    movement_label,
    project,
)
from taskquest.models.analytics import Insight, TrendResult
from taskquest.models.enums import (
    BurnoutRisk,
    Complexity,
    Granularity,
    GoalStatus,
    Priority,
    RelationshipStrength,
    RiskLevel,
    TrendDirection,
)
from taskquest.utils.logging import redact_secrets
from taskquest.utils.timeutils import (
    days_between,
    parse_date,
    parse_timestamp,
    start_of_month,
    start_of_week,
)
from conftest import NOW, USER_ID, FlakyStorage, make_task


# =============================================================================
# Aggregator
# =============================================================================


class TestAggregator:
    """Tests for time bucketing and bucket summaries."""

    def test_daily_range_is_zero_filled(self):
        rows = [make_task(completed_at=datetime(2024, 3, 2, 10, 0), xp_earned=40)]
        windows = Aggregator(Granularity.DAILY).aggregate(
            rows, start=datetime(2024, 3, 1), end=datetime(2024, 3, 5)
        )

        assert [w.key for w in windows] == [
            "2024-03-01",
            "2024-03-02",
            "2024-03-03",
            "2024-03-04",
            "2024-03-05",
        ]
        assert [w.count for w in windows] == [0, 1, 0, 0, 0]
        assert windows[1].sum == 40
        assert windows[1].average == 40
        assert windows[0].average == 0.0

    def test_rows_outside_range_are_excluded(self):
        rows = [
            make_task(completed_at=datetime(2024, 2, 28, 10, 0)),
            make_task(completed_at=datetime(2024, 3, 1, 10, 0)),
            make_task(completed_at=datetime(2024, 3, 9, 10, 0)),
        ]
        windows = Aggregator().aggregate(rows, start=datetime(2024, 3, 1), end=datetime(2024, 3, 3))

        assert len(windows) == 3
        assert Aggregator.totals(windows)["count"] == 1

    def test_without_range_only_populated_buckets_appear(self):
        rows = [
            make_task(completed_at=datetime(2024, 3, 1, 10, 0)),
            make_task(completed_at=datetime(2024, 3, 4, 10, 0)),
        ]
        windows = Aggregator().aggregate(rows)

        assert [w.key for w in windows] == ["2024-03-01", "2024-03-04"]

    def test_malformed_timestamps_are_dropped(self):
        rows = [
            {"id": "a", "completed_at": "not-a-date", "xp_earned": 10},
            {"id": "b", "completed_at": None, "xp_earned": 10},
            {"id": "c", "completed_at": "2024-03-01T10:00:00Z", "xp_earned": 10},
        ]
        windows = Aggregator().aggregate(rows)

        assert len(windows) == 1
        assert windows[0].count == 1

    def test_category_distribution(self):
        rows = [
            make_task(completed_at=datetime(2024, 3, 1, 9, 0), complexity="simple"),
            make_task(completed_at=datetime(2024, 3, 1, 11, 0), complexity="simple"),
            make_task(completed_at=datetime(2024, 3, 1, 13, 0), complexity=None),
        ]
        windows = Aggregator(category_field="complexity").aggregate(rows)

        assert windows[0].distribution == {"simple": 2, "other": 1}

    def test_weekly_buckets_start_on_sunday(self):
        rows = [
            make_task(completed_at=datetime(2024, 3, 9, 10, 0)),   # Saturday
            make_task(completed_at=datetime(2024, 3, 10, 10, 0)),  # Sunday
        ]
        windows = Aggregator(Granularity.WEEKLY).aggregate(rows)

        assert [w.key for w in windows] == ["2024-03-03", "2024-03-10"]
        assert windows[0].window_end == datetime(2024, 3, 10)

    def test_monthly_bucket_rolls_over_december(self):
        assert next_bucket(datetime(2023, 12, 1), Granularity.MONTHLY) == datetime(2024, 1, 1)
        starts = bucket_range(datetime(2023, 11, 15), datetime(2024, 2, 3), Granularity.MONTHLY)
        assert [s.month for s in starts] == [11, 12, 1, 2]

    def test_best_bucket_prefers_earliest_on_tie(self):
        rows = [
            make_task(completed_at=datetime(2024, 3, 1, 10, 0)),
            make_task(completed_at=datetime(2024, 3, 3, 10, 0)),
        ]
        windows = Aggregator().aggregate(rows, start=datetime(2024, 3, 1), end=datetime(2024, 3, 3))

        assert Aggregator.best_bucket(windows).key == "2024-03-01"

    def test_best_bucket_none_when_all_empty(self):
        windows = Aggregator().aggregate([], start=datetime(2024, 3, 1), end=datetime(2024, 3, 3))
        assert Aggregator.best_bucket(windows) is None

    def test_to_samples_defaults_value_to_one_without_value_field(self):
        samples = to_samples([{"id": "x", "recorded_at": "2024-03-01"}], "recorded_at")
        assert samples[0].value == 1.0
        assert samples[0].entity_id == "x"


class TestNumericHelpers:
    def test_percentage_of_zero_total(self):
        assert percentage(5, 0) == 0.0
        assert percentage(1, 4) == 25.0

    def test_safe_average_of_empty(self):
        assert safe_average([]) == 0.0
        assert safe_average([2, 4]) == 3.0

    @pytest.mark.parametrize(
        "value,expected",
        [(None, 0.0), ("12.5", 12.5), ("abc", 0.0), (True, 0.0), (7, 7.0)],
    )
    def test_to_float(self, value, expected):
        assert to_float(value) == expected


# =============================================================================
# Classifier
# =============================================================================


class TestClassifier:
    """Tests for threshold bands and the relationship decision table."""

    def test_boundary_belongs_to_upper_band(self):
        assert classify(8.0, SCORE_BANDS) == "excellent"
        assert classify(7.999, SCORE_BANDS) == "good"
        assert classify(6.0, SCORE_BANDS) == "good"
        assert classify(4.0, SCORE_BANDS) == "average"
        assert classify(3.99, SCORE_BANDS) == "poor"

    def test_very_low_and_nan_scores_fall_into_last_band(self):
        assert classify(-50, SCORE_BANDS) == "poor"
        assert classify(float("nan"), SCORE_BANDS) == "poor"

    def test_empty_thresholds_rejected(self):
        with pytest.raises(ValueError):
            classify(5, [])

    def test_classify_score_carries_color(self):
        result = classify_score(8.5)
        assert result.category == "excellent"
        assert result.color_hint == "green"
        assert result.raw_score == 8.5

    @pytest.mark.parametrize(
        "score,expected",
        [
            (7.0, BurnoutRisk.LOW),
            (6.99, BurnoutRisk.MODERATE),
            (5.0, BurnoutRisk.MODERATE),
            (3.0, BurnoutRisk.HIGH),
            (2.65, BurnoutRisk.CRITICAL),
        ],
    )
    def test_burnout_bands(self, score, expected):
        assert classify_burnout(score) == expected

    @pytest.mark.parametrize(
        "days,frequency,expected",
        [
            (25, 3, RelationshipStrength.STRONG),
            (30, 2, RelationshipStrength.STRONG),
            (25, 1.5, RelationshipStrength.MODERATE),
            (60, 1, RelationshipStrength.MODERATE),
            (45, 0.5, RelationshipStrength.WEAK),
            (90, 10, RelationshipStrength.WEAK),
            (91, 10, RelationshipStrength.DORMANT),
        ],
    )
    def test_relationship_strength(self, days, frequency, expected):
        assert classify_relationship(days, frequency) == expected

    def test_risk_probability_bounds_are_strict(self):
        assert classify_burnout_probability(0.8) == RiskLevel.HIGH
        assert classify_burnout_probability(0.81) == RiskLevel.CRITICAL
        assert classify_burnout_probability(0.4) == RiskLevel.LOW
        assert classify_burnout_probability(0.41) == RiskLevel.MEDIUM

    def test_time_of_day_label(self):
        assert time_of_day_label(9) == "Morning"
        assert time_of_day_label(12) == "Afternoon"
        assert time_of_day_label(20) == "Evening"
        assert time_of_day_label(23) == "Night"
        assert time_of_day_label(3) == "Night"


# =============================================================================
# Trend Detector
# =============================================================================


class TestTrendDetector:
    def test_missing_side_is_stable(self):
        result = detect_trend(None, 5)
        assert result.direction == TrendDirection.STABLE
        assert result.magnitude == 0.0

    def test_improving_with_percentage_magnitude(self):
        result = detect_trend(15, 10)
        assert result.direction == TrendDirection.IMPROVING
        assert result.magnitude == 50.0

    def test_zero_previous_reports_zero_magnitude(self):
        result = detect_trend(4, 0)
        assert result.direction == TrendDirection.IMPROVING
        assert result.magnitude == 0.0

    def test_declining(self):
        result = detect_trend(5, 10)
        assert result.direction == TrendDirection.DECLINING
        assert result.magnitude == -50.0
        assert movement_label(result) == "decreasing"

    def test_single_sample_is_stable(self):
        assert detect_sample_trend([7.0]) == TrendResult()

    def test_sample_trend_compares_last_to_first(self):
        assert detect_sample_trend([4.0, 9.0, 6.0]).direction == TrendDirection.IMPROVING

    def test_window_trend_needs_two_windows(self):
        assert detect_window_trend([1.0] * 13, window=7).direction == TrendDirection.STABLE

    def test_window_trend_tolerance_band(self):
        values = [1.0] * 7 + [1.05] * 7
        assert detect_window_trend(values, window=7, tolerance=0.1).direction == TrendDirection.STABLE
        assert detect_window_trend(values, window=7, tolerance=0.0).direction == TrendDirection.IMPROVING

    def test_linear_slope(self):
        assert linear_slope([1.0, 2.0, 3.0, 4.0]) == pytest.approx(1.0)
        assert linear_slope([3.0, 3.0, 3.0]) == 0.0
        assert linear_slope([5.0]) == 0.0

    def test_project_is_clamped(self):
        assert project([0.5, 0.6, 0.7], steps_ahead=10) == 1.0
        assert project([0.5, 0.4, 0.3], steps_ahead=10) == 0.0
        assert project([0.2, 0.3], steps_ahead=1) == pytest.approx(0.4)
        assert project([], steps_ahead=3) == 0.0
        assert project([1.7], steps_ahead=3) == 1.0


# =============================================================================
# Heuristics
# =============================================================================


class TestHeuristics:
    def test_priority_keywords(self):
        assert infer_priority("urgent fix") == (Priority.URGENT, 0.9)
        assert infer_priority("deadline for the grant") == (Priority.HIGH, 0.8)
        assert infer_priority("maybe repaint the fence") == (Priority.LOW, 0.7)
        assert infer_priority("water the plants") == (Priority.MEDIUM, 0.6)

    def test_first_priority_rule_wins(self):
        assert infer_priority("important but urgent")[0] == Priority.URGENT

    def test_complexity_keywords_and_length(self):
        assert infer_complexity("research competitors") == (Complexity.COMPLEX, 0.8)
        assert infer_complexity("call mom") == (Complexity.SIMPLE, 0.8)
        assert infer_complexity("x" * 201) == (Complexity.COMPLEX, 0.8)
        assert infer_complexity("reorganise the garage shelves and label every storage box") == (
            Complexity.MODERATE,
            0.6,
        )

    def test_short_text_without_keyword_is_simple(self):
        assert infer_complexity("water plants")[0] == Complexity.SIMPLE

    def test_task_content_lowercases_and_joins(self):
        assert task_content("Call Bob", "About Taxes") == "call bob about taxes"
        assert task_content("Call Bob") == "call bob "

    def test_due_date_offsets(self):
        assert suggest_due_date(Priority.URGENT, NOW) == NOW + timedelta(days=1)
        assert suggest_due_date(Priority.HIGH, NOW) == NOW + timedelta(days=7)
        assert suggest_due_date(Priority.MEDIUM, NOW) is None

    def test_complexity_weight_and_normalization(self):
        assert complexity_weight("simple") == 1
        assert complexity_weight("moderate") == 2
        assert complexity_weight(None) == 1
        assert complexity_weight("epic") == 3
        assert normalize_complexity("moderate") == "medium"
        assert normalize_complexity("unknown") == "simple"
        assert normalize_complexity(None) == "simple"

    def test_burnout_score_of_strained_entry(self):
        entry = {
            "stress_level": 9,
            "energy_level": 2,
            "work_life_balance": 3,
            "job_satisfaction": 4,
            "sleep_quality": 3,
            "social_connection": 5,
        }
        assert burnout_score(entry) == pytest.approx(2.65)

    def test_missing_components_default_to_five(self):
        assert wellness_components({"stress_level": 8})["energy_level"] == 5.0
        assert burnout_score(None) == pytest.approx(5.0)

    def test_interaction_frequency_uses_at_least_one_month(self):
        assert interaction_frequency(3, 10) == 3.0
        assert interaction_frequency(6, 90) == 2.0

    def test_networking_score(self):
        assert networking_score(0, 0, 0, 0) == 0.0
        assert networking_score(4, 2, 1, 2.0) == pytest.approx(20 + 8.75 + 10)
        assert networking_score(1, 1, 1, 100) == 100.0

    def test_goal_progress(self):
        assert goal_progress(True, 0, 0) == 100.0
        assert goal_progress(False, 1, 4) == 25.0
        assert goal_progress(False, 0, 0) == 0.0

    def test_goal_completion_probability(self):
        assert goal_completion_probability(True, 10, None, 0) == 100.0
        assert goal_completion_probability(False, 50, None, 5) == 0.0
        assert goal_completion_probability(False, 50, 0, 5) == 0.0
        assert goal_completion_probability(False, 50, 10, 5) == 100.0
        assert goal_completion_probability(False, 50, 10, 2) == pytest.approx(70.0)
        assert goal_completion_probability(False, 0, 1, 0) == 0.0


# =============================================================================
# Recommendations
# =============================================================================


class TestRecommendations:
    def test_wellness_indicators_sorted_by_priority(self):
        state = {
            "stress_level": 9,
            "energy_level": 2,
            "work_life_balance": 3,
            "sleep_quality": 3,
            "task_intensity": 0,
        }
        indicators = wellness_indicators(state)

        assert [i["metric"] for i in indicators] == [
            "stress_level",
            "energy_level",
            "work_life_balance",
            "sleep_quality",
        ]
        assert indicators[0]["level"] == "critical"
        assert indicators[0]["priority"] == 0
        assert indicators[2]["level"] == "moderate"

    def test_severe_sleep_is_high_not_critical(self):
        indicators = wellness_indicators({"sleep_quality": 2})
        assert indicators[0]["level"] == "high"
        assert indicators[0]["priority"] == 1

    def test_heavy_workload_indicator(self):
        indicators = wellness_indicators({"task_intensity": 11})
        assert indicators[0]["type"] == "workload"

    def test_healthy_state_has_no_indicators(self):
        assert wellness_indicators({"stress_level": 3, "energy_level": 8}) == []

    def test_indicator_rule_shape(self):
        for rule in WELLNESS_INDICATOR_RULES:
            assert set(rule) == {
                "type", "metric", "trigger", "severe", "level",
                "description", "impact", "recommendations",
            }
            assert len(rule["level"]) == 2
            assert rule["severe"] is None or len(rule["severe"]) == 3

    def test_severe_level_overrides_default(self):
        assert wellness_indicators({"stress_level": 8})[0]["level"] == "high"
        assert wellness_indicators({"stress_level": 9})[0]["level"] == "critical"

    def test_wellness_insights(self):
        insights = wellness_insights(8.2, BurnoutRisk.CRITICAL, 6, TrendResult())
        assert [i.insight_id for i in insights] == ["wellness-positive", "burnout-risk", "weekend-work"]
        assert insights[1].category == "critical"
        assert insights[1].recommendations[0].priority == 0

    def test_goal_recommendations(self):
        assert goal_recommendations(GoalStatus.COMPLETED) == []
        assert goal_recommendations(GoalStatus.OVERDUE)[0].startswith("Consider breaking down")
        assert goal_recommendations(GoalStatus.AT_RISK)[0].startswith("Increase focus")
        assert goal_recommendations(GoalStatus.ON_TRACK) == [
            "Keep up the great progress!",
            "Consider setting stretch targets",
        ]

    def test_burnout_domain(self):
        recs = generate_recommendations("burnout", {"burnout_risk": "high"})
        assert [r.text for r in recs] == BURNOUT_RECOMMENDATIONS
        assert all(r.priority == 1 for r in recs)
        assert generate_recommendations("burnout", {"burnout_risk": "low"}) == []

    def test_contact_domain_appends_declining_check(self):
        declining = TrendResult(direction=TrendDirection.DECLINING, magnitude=-50)
        strong = generate_recommendations(
            "contact", {"strength": "strong", "days_since_contact": 5}, declining
        )
        assert [r.text for r in strong] == STRONG_CONTACT_RECOMMENDATIONS + [
            DECLINING_CONTACT_RECOMMENDATION
        ]

        dormant = generate_recommendations("contact", {"strength": "dormant", "days_since_contact": 999})
        assert [r.text for r in dormant] == DORMANT_CONTACT_RECOMMENDATIONS

    def test_output_is_deterministic(self):
        state = {"stress_level": 8.5, "energy_level": 3.5}
        assert generate_recommendations("wellness", state) == generate_recommendations("wellness", state)

    def test_productivity_domain_follows_trend(self):
        recs = generate_recommendations(
            "productivity", {}, TrendResult(direction=TrendDirection.IMPROVING, magnitude=20)
        )
        assert recs[0].text.startswith("Great momentum")

    def test_unknown_domain_rejected(self):
        with pytest.raises(ValueError):
            generate_recommendations("finance", {})

    def test_immediate_actions_default(self):
        actions = immediate_actions(0.8, RiskLevel.LOW, [])
        assert actions == [
            "Continue with current productivity patterns",
            "Focus on high-priority tasks during peak hours",
        ]

    def test_immediate_actions_for_struggling_user(self):
        actions = immediate_actions(0.3, RiskLevel.HIGH, ["context_switching"])
        assert len(actions) == 5
        assert actions[-1].startswith("Block the next 2 hours")


class TestInsightPersistence:
    def _insight(self):
        return Insight(
            insight_id="weekly-task-trend",
            title="Task completion increasing",
            description="3 tasks this week vs 1 last week.",
            category="positive",
            confidence=0.8,
        )

    def test_persist_and_overwrite(self, storage):
        assert persist_insights(storage, USER_ID, "dashboard", [self._insight()])
        assert persist_insights(storage, USER_ID, "dashboard", [self._insight()])

        rows = storage.query("insights", filters=[("user_id", "eq", USER_ID)])
        assert len(rows) == 1
        assert rows[0]["section"] == "dashboard"

    def test_storage_failure_is_not_fatal(self, storage):
        flaky = FlakyStorage(storage, failing={"insights"})
        assert persist_insights(flaky, USER_ID, "dashboard", [self._insight()]) is False

    def test_nothing_to_persist(self, storage):
        assert persist_insights(FlakyStorage(storage, failing={"insights"}), USER_ID, "x", []) is True

    def test_confidence_outside_unit_interval_rejected(self):
        with pytest.raises(ValueError):
            Insight(insight_id="x", title="t", description="d", category="info", confidence=75)


# =============================================================================
# Metric Fetcher
# =============================================================================


class TestMetricFetcher:
    def test_rows_are_scoped_to_user(self, storage):
        storage.insert("tasks", [make_task(), make_task(user_id="someone-else")])
        rows = MetricFetcher(storage, USER_ID).rows("tasks")
        assert len(rows) == 1
        assert rows[0]["user_id"] == USER_ID

    def test_failing_source_does_not_blank_others(self, storage):
        storage.insert("tasks", [make_task()])
        fetcher = MetricFetcher(FlakyStorage(storage, failing={"wellness_entries"}), USER_ID)

        result = asyncio.run(
            fetcher.fetch_all({
                "tasks": lambda: fetcher.rows("tasks"),
                "wellness_entries": lambda: fetcher.rows("wellness_entries"),
            })
        )

        assert len(result.get("tasks")) == 1
        assert result.get("wellness_entries", []) == []
        assert "wellness_entries" in result.errors
        assert not result.ok

    def test_score_default_when_rpc_returns_nothing(self, storage):
        class EmptyRPC(FlakyStorage):
            def rpc(self, function_name, params=None):
                return None

        fetcher = MetricFetcher(EmptyRPC(storage), USER_ID)
        assert fetcher.score("calculate_wellness_score", 5.0) == 5.0


# =============================================================================
# Time helpers
# =============================================================================


class TestTimeUtils:
    def test_parse_timestamp_variants(self):
        assert parse_timestamp("2024-03-01T10:00:00Z") == datetime(2024, 3, 1, 10, 0)
        assert parse_timestamp("2024-03-01T12:00:00+02:00") == datetime(2024, 3, 1, 10, 0)
        assert parse_timestamp(datetime(2024, 3, 1, 10, tzinfo=timezone.utc)) == datetime(2024, 3, 1, 10)
        assert parse_timestamp("garbage") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(12345) is None

    def test_parse_date(self):
        assert parse_date("2024-03-01T23:59:00") == datetime(2024, 3, 1).date()
        assert parse_date(None) is None

    def test_week_and_month_starts(self):
        assert start_of_week(NOW) == datetime(2024, 3, 10)
        assert start_of_week(datetime(2024, 3, 10, 8)) == datetime(2024, 3, 10)
        assert start_of_week(datetime(2024, 3, 9, 8)) == datetime(2024, 3, 3)
        assert start_of_month(NOW) == datetime(2024, 3, 1)

    def test_days_between_truncates(self):
        assert days_between(NOW, NOW - timedelta(days=2, hours=23)) == 2
        assert days_between(NOW - timedelta(hours=30), NOW) == -1


def test_log_processor_masks_tokens():
    event = redact_secrets(None, "info", {
        "event": "integration_connected",
        "access_token": "gho_123",
        "refresh_token": None,
        "provider": "github",
    })

    assert event["access_token"] == "***"
    assert event["refresh_token"] is None
    assert event["provider"] == "github"
