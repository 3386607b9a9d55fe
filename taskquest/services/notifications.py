"""
Notification preferences and context-aware delivery decisions.
"""

from typing import Any, Optional

from taskquest.models.enums import ActivityState
from taskquest.models.notifications import DeliveryContext, NotificationPreferences
from taskquest.services.base import UserScopedService

SEND_THRESHOLD = 0.7
DEFER_THRESHOLD = 0.5

ACTIVITY_COMPATIBILITY = {
    ActivityState.WORKING: 0.9,
    ActivityState.BREAK: 0.7,
    ActivityState.MEETING: 0.2,
}
DEFAULT_ACTIVITY_COMPATIBILITY = 0.5


def _minutes(hhmm: str) -> int:
    hour, minute = hhmm.split(":")[:2]
    return int(hour) * 60 + int(minute)


def is_quiet_hours(preferences: NotificationPreferences, hour: int, minute: int = 0) -> bool:
    """True when hour:minute falls in the quiet window, which may wrap past midnight."""
    start = _minutes(preferences.quiet_hours_start)
    end = _minutes(preferences.quiet_hours_end)
    current = hour * 60 + minute
    if start == end:
        return False
    if start > end:
        return current >= start or current < end
    return start <= current < end


def minutes_until_quiet_end(preferences: NotificationPreferences, hour: int, minute: int = 0) -> int:
    return (_minutes(preferences.quiet_hours_end) - (hour * 60 + minute)) % (24 * 60)


def context_factors(preferences: NotificationPreferences, context: DeliveryContext) -> dict[str, float]:
    quiet = is_quiet_hours(preferences, context.hour, context.minute)
    return {
        "time_appropriateness": 0.2 if quiet else 0.8,
        "activity_compatibility": ACTIVITY_COMPATIBILITY.get(
            context.activity, DEFAULT_ACTIVITY_COMPATIBILITY
        ),
        "availability_status": 0.9 if context.available else 0.3,
        "focus_state_impact": 0.2 if context.focus_mode else 0.8,
    }


def context_score(preferences: NotificationPreferences, context: DeliveryContext) -> float:
    """Weighted suitability of the moment for interrupting the user, 0-1."""
    factors = context_factors(preferences, context)
    return (
        factors["time_appropriateness"] * 0.3
        + factors["activity_compatibility"] * 0.3
        + factors["availability_status"] * 0.3
        + factors["focus_state_impact"] * 0.1
    )


class NotificationService(UserScopedService):
    """Stores notification preferences and decides when to deliver."""

    def get_preferences(self) -> NotificationPreferences:
        rows = self.fetcher.rows("notification_preferences", limit=1)
        if rows:
            return NotificationPreferences(**rows[0])
        return NotificationPreferences(user_id=self.user_id)

    def update_preferences(self, changes: dict[str, Any]) -> NotificationPreferences:
        current = self.get_preferences().model_dump()
        preferences = NotificationPreferences(**{**current, **changes, "user_id": self.user_id})
        self.storage.upsert(
            "notification_preferences",
            [preferences.model_dump()],
            on_conflict=["user_id"],
        )
        self.logger.info("notification_preferences_updated", fields=sorted(changes))
        return preferences

    def should_send_now(
        self,
        context: DeliveryContext,
        preferences: Optional[NotificationPreferences] = None,
    ) -> dict[str, Any]:
        """
        Decide whether a notification goes out now or is deferred.

        Returns:
            send_now, context_score, factors, delay_minutes and the reasons
            behind a deferral
        """
        preferences = preferences or self.get_preferences()
        factors = context_factors(preferences, context)
        score = context_score(preferences, context)
        quiet = is_quiet_hours(preferences, context.hour, context.minute)

        reasons = []
        if not preferences.enabled:
            reasons.append("Notifications are disabled")
        if context.sent_last_hour >= preferences.max_per_hour:
            reasons.append("Hourly notification limit reached")
        if quiet:
            reasons.append("Consider waiting until outside quiet hours")
        if context.focus_mode:
            reasons.append("User is in focus mode - only urgent notifications recommended")
        if not context.available:
            reasons.append("User is marked as unavailable")

        blocked = not preferences.enabled or context.sent_last_hour >= preferences.max_per_hour
        if preferences.smart_timing:
            send_now = not blocked and score >= SEND_THRESHOLD
        else:
            send_now = not blocked and not quiet

        delay = 0
        if preferences.enabled and not send_now:
            if quiet:
                delay = minutes_until_quiet_end(preferences, context.hour, context.minute)
            elif context.sent_last_hour >= preferences.max_per_hour:
                delay = preferences.delay_medium_minutes
            elif score >= DEFER_THRESHOLD:
                delay = preferences.delay_short_minutes
            elif score > 0.3:
                delay = preferences.delay_medium_minutes
            else:
                delay = preferences.delay_long_minutes

        self.logger.debug("notification_decision", send_now=send_now, score=score, delay=delay)
        return {
            "send_now": send_now,
            "context_score": score,
            "factors": factors,
            "delay_minutes": delay,
            "reasons": reasons,
        }
