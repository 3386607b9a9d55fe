"""
Core analytics models shared by every dashboard pipeline.

The pipeline is fetch -> aggregate -> classify/trend -> recommend. These
models are the values passed between those stages. All of them are
recomputed from scratch on every request; none is cached.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskquest.models.enums import TrendDirection


class MetricSample(BaseModel):
    """
    A single numeric observation derived from a raw domain row.

    Attributes:
        entity_id: Identifier of the row the sample came from
        timestamp: When the observation happened
        value: Numeric value (XP, minutes, score, ...)
        tags: Categorical dimensions such as complexity or priority
    """

    model_config = ConfigDict(frozen=True)

    entity_id: str = Field(description="Identifier of the source row")
    timestamp: datetime = Field(description="When the observation happened")
    value: float = Field(default=0.0, description="Numeric value of the sample")
    tags: dict[str, str] = Field(
        default_factory=dict, description="Categorical dimensions of the sample"
    )


class AggregateWindow(BaseModel):
    """
    Time-bucketed summary of metric rows.

    Attributes:
        window_start: First instant of the bucket (inclusive)
        window_end: Last instant of the bucket (exclusive)
        count: Number of rows in the bucket
        sum: Sum of the numeric field across the rows
        average: sum / count, 0 for an empty bucket
        distribution: Row counts keyed by category
    """

    window_start: datetime = Field(description="Bucket start (inclusive)")
    window_end: datetime = Field(description="Bucket end (exclusive)")
    count: int = Field(default=0, ge=0, description="Number of rows in the bucket")
    sum: float = Field(default=0.0, description="Sum of the numeric field")
    average: float = Field(default=0.0, description="sum / count, 0 when empty")
    distribution: dict[str, int] = Field(
        default_factory=dict, description="Row counts keyed by category"
    )

    @property
    def key(self) -> str:
        """ISO date of the bucket start, used as the bucket label."""
        return self.window_start.date().isoformat()


class ClassifiedScore(BaseModel):
    """A raw score mapped to a discrete band."""

    raw_score: float = Field(description="Score on its native scale")
    category: str = Field(description="Band label")
    color_hint: Optional[str] = Field(default=None, description="UI color for the band")


class TrendResult(BaseModel):
    """Direction and percentage magnitude of change between two windows."""

    direction: TrendDirection = Field(default=TrendDirection.STABLE)
    magnitude: float = Field(default=0.0, description="Percentage change")


class Recommendation(BaseModel):
    """A canned recommendation selected from a rule table."""

    text: str = Field(description="Human-readable recommendation")
    priority: int = Field(default=2, ge=0, description="Lower is more urgent")
    applicable_category: Optional[str] = Field(
        default=None, description="Classified state that triggered the recommendation"
    )


class Insight(BaseModel):
    """
    Aggregate output of a dashboard section.

    Confidence is a probability in [0, 1]; percentages must be normalized
    before constructing an Insight.
    """

    insight_id: str = Field(description="Stable identifier, e.g. 'burnout-risk'")
    title: str
    description: str
    category: str
    confidence: float = Field(ge=0.0, le=1.0)
    actionable: bool = True
    recommendations: list[Recommendation] = Field(default_factory=list)
    trends: list[str] = Field(default_factory=list)

    @field_validator("confidence")
    @classmethod
    def round_confidence(cls, v: float) -> float:
        return round(v, 4)

    def to_row(self, user_id: str, section: str) -> dict[str, Any]:
        """Flatten into the row shape stored in the insights table."""
        return {
            "user_id": user_id,
            "insight_id": self.insight_id,
            "section": section,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "confidence": self.confidence,
            "recommendations": [r.text for r in self.recommendations],
        }


class FetchResult(BaseModel):
    """
    Per-source outcome of an isolated batch fetch.

    A failed source has no entry in ``data`` and an error message in
    ``errors``; the other sources are unaffected.
    """

    data: dict[str, Any] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)

    def get(self, source: str, default: Any = None) -> Any:
        """Return a source's rows, or ``default`` if it failed."""
        return self.data.get(source, default)

    @property
    def ok(self) -> bool:
        return not self.errors
