"""
Contact interaction analytics and network health.
"""

from datetime import timedelta
from typing import Any, Optional

from taskquest.engine.aggregator import OTHER_CATEGORY, percentage, safe_average
from taskquest.engine.classifier import classify_relationship
from taskquest.engine.heuristics import (
    ACTIVE_CONTACT_DAYS,
    NO_CONTACT_DAYS,
    interaction_frequency,
    networking_score,
)
from taskquest.engine.recommendations import contact_recommendations
from taskquest.engine.trend_detector import detect_trend, movement_label
from taskquest.models.enums import InteractionType, RelationshipStrength, TrendDirection
from taskquest.services.base import UserScopedService
from taskquest.utils.timeutils import days_between, parse_timestamp

TREND_WINDOW_DAYS = 30
STRENGTH_ORDER = {strength: index for index, strength in enumerate(RelationshipStrength)}
TRACKED_TYPES = [t.value for t in InteractionType if t != InteractionType.OTHER]


class ContactAnalyticsService(UserScopedService):
    """Relationship strength per contact plus network-wide metrics."""

    def analyze(
        self,
        category: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Args:
            category: Only list contacts in this category
            priority: Only list contacts with this priority

        Filters narrow the contact list; network metrics always cover
        every contact.
        """
        contacts = self.fetcher.rows("contacts", ordering=[("created_at", False)])
        if not contacts:
            return {"contacts": [], "network": self._network([], []), "interaction_patterns": []}

        interactions = self.storage.query(
            "contact_interactions",
            filters=[("contact_id", "in", [c["id"] for c in contacts])],
        )
        by_contact: dict[str, list[dict]] = {}
        for interaction in interactions:
            by_contact.setdefault(interaction.get("contact_id"), []).append(interaction)

        analyzed = [self._analyze_contact(c, by_contact.get(c["id"], [])) for c in contacts]

        listed = [
            a for a in analyzed
            if (category is None or a["category"] == category)
            and (priority is None or a["priority"] == priority)
        ]
        listed.sort(
            key=lambda a: (
                STRENGTH_ORDER[RelationshipStrength(a["relationship_strength"])],
                a["days_since_last_contact"],
            )
        )

        self.logger.info("contact_analytics_computed", contacts=len(contacts), listed=len(listed))
        return {
            "contacts": listed,
            "network": self._network(contacts, analyzed),
            "interaction_patterns": self._interaction_patterns(analyzed),
        }

    def _analyze_contact(self, contact: dict, interactions: list[dict]) -> dict[str, Any]:
        now = self.now
        recent_start = now - timedelta(days=TREND_WINDOW_DAYS)
        previous_start = recent_start - timedelta(days=TREND_WINDOW_DAYS)

        timestamps = [parse_timestamp(i.get("occurred_at")) for i in interactions]
        valid = sorted((ts for ts in timestamps if ts is not None), reverse=True)
        last = valid[0] if valid else None
        days_since = days_between(now, last) if last else NO_CONTACT_DAYS

        created_at = parse_timestamp(contact.get("created_at")) or now
        frequency = interaction_frequency(len(interactions), days_between(now, created_at))
        strength = classify_relationship(days_since, frequency)

        recent = sum(1 for ts in valid if ts >= recent_start)
        previous = sum(1 for ts in valid if previous_start <= ts < recent_start)
        trend = detect_trend(recent, previous)

        types = {t: 0 for t in TRACKED_TYPES}
        types[InteractionType.OTHER.value] = 0
        for interaction in interactions:
            kind = interaction.get("interaction_type")
            types[kind if kind in TRACKED_TYPES else InteractionType.OTHER.value] += 1

        insights = []
        if strength == RelationshipStrength.STRONG:
            insights.append(f"Strong relationship with {frequency:.1f} interactions per month")
            insights.append(f"Last contacted {days_since} days ago")
        elif strength == RelationshipStrength.DORMANT:
            insights.append(f"No contact for {days_since} days")
        elif days_since > 60:
            insights.append(f"Haven't connected in {days_since} days")
        if trend.direction == TrendDirection.DECLINING:
            insights.append(f"Interaction frequency declining by {abs(trend.magnitude):.0f}%")
        elif trend.direction == TrendDirection.IMPROVING:
            insights.append(f"Interaction frequency increasing by {trend.magnitude:.0f}%")

        return {
            "contact_id": contact["id"],
            "name": contact.get("name"),
            "category": contact.get("category") or OTHER_CATEGORY,
            "priority": contact.get("priority") or "medium",
            "total_interactions": len(interactions),
            "recent_interactions": recent,
            "last_interaction_date": last.isoformat() if last else None,
            "days_since_last_contact": days_since,
            "interaction_frequency": frequency,
            "relationship_strength": strength.value,
            "interaction_types": types,
            "trends": {"direction": movement_label(trend), "change": trend.magnitude},
            "insights": insights,
            "recommendations": contact_recommendations(strength, days_since, trend),
        }

    @staticmethod
    def _network(contacts: list[dict], analyzed: list[dict]) -> dict[str, Any]:
        total = len(contacts)
        active = sum(1 for a in analyzed if a["days_since_last_contact"] <= ACTIVE_CONTACT_DAYS)
        strong = sum(1 for a in analyzed if a["relationship_strength"] == RelationshipStrength.STRONG.value)
        dormant = sum(1 for a in analyzed if a["relationship_strength"] == RelationshipStrength.DORMANT.value)
        average_frequency = safe_average([a["interaction_frequency"] for a in analyzed])

        categories: dict[str, int] = {}
        priorities: dict[str, int] = {}
        for a in analyzed:
            categories[a["category"]] = categories.get(a["category"], 0) + 1
            priorities[a["priority"]] = priorities.get(a["priority"], 0) + 1

        return {
            "total_contacts": total,
            "active_contacts": active,
            "dormant_contacts": dormant,
            "strong_relationships": strong,
            "average_interaction_frequency": average_frequency,
            "networking_score": networking_score(total, active, strong, average_frequency),
            "category_distribution": {k: percentage(v, total) for k, v in categories.items()},
            "priority_distribution": {k: percentage(v, total) for k, v in priorities.items()},
        }

    @staticmethod
    def _interaction_patterns(analyzed: list[dict]) -> list[dict]:
        totals: dict[str, int] = {}
        for a in analyzed:
            for kind, count in a["interaction_types"].items():
                totals[kind] = totals.get(kind, 0) + count
        overall = sum(totals.values())
        return [
            {"type": kind, "count": count, "percentage": percentage(count, overall)}
            for kind, count in totals.items()
        ]
