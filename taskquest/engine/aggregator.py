"""
Aggregator: reduce raw domain rows into time-bucketed windows.

Each row is assigned to a bucket by truncating its timestamp to the start
of its day, week (Sunday-based) or month. Buckets carry count, sum,
average and a category distribution. When a range is requested every
bucket in the range is emitted, zero-filled, so charts render a flat line
rather than a gap.
"""

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Sequence

import structlog

from taskquest.models.analytics import AggregateWindow, MetricSample
from taskquest.models.enums import Granularity
from taskquest.utils.timeutils import (
    parse_timestamp,
    start_of_day,
    start_of_month,
    start_of_week,
)

logger = structlog.get_logger()

OTHER_CATEGORY = "other"

BUCKET_START = {
    Granularity.DAILY: start_of_day,
    Granularity.WEEKLY: start_of_week,
    Granularity.MONTHLY: start_of_month,
}


def bucket_start(ts: datetime, granularity: Granularity) -> datetime:
    return BUCKET_START[Granularity(granularity)](ts)


def next_bucket(start: datetime, granularity: Granularity) -> datetime:
    """Start of the bucket following the one that begins at ``start``."""
    granularity = Granularity(granularity)
    if granularity == Granularity.DAILY:
        return start + timedelta(days=1)
    if granularity == Granularity.WEEKLY:
        return start + timedelta(days=7)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def bucket_range(start: datetime, end: datetime, granularity: Granularity) -> list[datetime]:
    """All bucket starts covering [start, end], inclusive of both ends."""
    current = bucket_start(start, granularity)
    last = bucket_start(end, granularity)
    starts = []
    while current <= last:
        starts.append(current)
        current = next_bucket(current, granularity)
    return starts


def to_float(value: Any) -> float:
    """Numeric value of a field; missing or non-numeric values count as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def safe_average(values: Sequence[float]) -> float:
    """Mean of ``values``; 0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def percentage(part: float, total: float) -> float:
    """``part`` as a percentage of ``total``; 0 when the total is 0."""
    if not total:
        return 0.0
    return part / total * 100


def to_samples(
    rows: Iterable[dict],
    timestamp_field: str,
    value_field: Optional[str] = None,
    tag_fields: Sequence[str] = (),
    id_field: str = "id",
) -> list[MetricSample]:
    """
    Convert raw rows into MetricSamples.

    Rows whose timestamp is missing or malformed are dropped; this is never
    fatal.
    """
    samples = []
    dropped = 0
    for index, row in enumerate(rows):
        ts = parse_timestamp(row.get(timestamp_field))
        if ts is None:
            dropped += 1
            continue
        tags = {}
        for field in tag_fields:
            tag = row.get(field)
            tags[field] = str(getattr(tag, "value", tag)) if tag else OTHER_CATEGORY
        samples.append(
            MetricSample(
                entity_id=str(row.get(id_field) or index),
                timestamp=ts,
                value=to_float(row.get(value_field)) if value_field else 1.0,
                tags=tags,
            )
        )
    if dropped:
        logger.warning("rows_dropped_malformed_timestamp", field=timestamp_field, dropped=dropped)
    return samples


class Aggregator:
    """
    Buckets rows by time and summarizes each bucket.

    Args:
        granularity: daily, weekly or monthly buckets
        timestamp_field: Row field holding the bucketing timestamp
        value_field: Numeric field summed per bucket (e.g. xp_earned)
        category_field: Categorical field counted per bucket (e.g. complexity)
    """

    def __init__(
        self,
        granularity: Granularity = Granularity.DAILY,
        timestamp_field: str = "completed_at",
        value_field: Optional[str] = "xp_earned",
        category_field: Optional[str] = None,
    ):
        self.granularity = Granularity(granularity)
        self.timestamp_field = timestamp_field
        self.value_field = value_field
        self.category_field = category_field

    def aggregate(
        self,
        rows: Iterable[dict],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[AggregateWindow]:
        """
        Produce one AggregateWindow per bucket, ordered by bucket start.

        With both ``start`` and ``end`` given, every bucket in the range is
        emitted (zero-filled when empty) and rows outside the range are
        excluded. Without a range only buckets that received rows appear.
        """
        tag_fields = (self.category_field,) if self.category_field else ()
        samples = to_samples(rows, self.timestamp_field, self.value_field, tag_fields)

        buckets: "OrderedDict[datetime, list[MetricSample]]" = OrderedDict()
        bounded = start is not None and end is not None
        if bounded:
            for bucket in bucket_range(start, end, self.granularity):
                buckets[bucket] = []

        outside = 0
        for sample in samples:
            key = bucket_start(sample.timestamp, self.granularity)
            if bounded and key not in buckets:
                outside += 1
                continue
            buckets.setdefault(key, []).append(sample)

        if outside:
            logger.debug("rows_outside_range", count=outside, granularity=self.granularity.value)

        windows = [self._summarize(key, members) for key, members in sorted(buckets.items())]

        logger.debug(
            "aggregation_computed",
            granularity=self.granularity.value,
            samples=len(samples),
            buckets=len(windows),
        )
        return windows

    def _summarize(self, key: datetime, samples: list[MetricSample]) -> AggregateWindow:
        count = len(samples)
        total = sum(s.value for s in samples)
        distribution: dict[str, int] = {}
        if self.category_field:
            for s in samples:
                category = s.tags.get(self.category_field, OTHER_CATEGORY)
                distribution[category] = distribution.get(category, 0) + 1
        return AggregateWindow(
            window_start=key,
            window_end=next_bucket(key, self.granularity),
            count=count,
            sum=total,
            average=total / count if count else 0.0,
            distribution=distribution,
        )

    @staticmethod
    def best_bucket(windows: Sequence[AggregateWindow]) -> Optional[AggregateWindow]:
        """Bucket with the highest count; the earliest wins ties. None if all empty."""
        best = None
        for window in windows:
            if window.count > 0 and (best is None or window.count > best.count):
                best = window
        return best

    @staticmethod
    def totals(windows: Sequence[AggregateWindow]) -> dict:
        count = sum(w.count for w in windows)
        total = sum(w.sum for w in windows)
        return {
            "count": count,
            "sum": total,
            "average": total / count if count else 0.0,
        }
