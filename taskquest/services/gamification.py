"""
Streaks, XP and levels.
"""

import uuid
from datetime import date, timedelta
from typing import Any, Optional

from taskquest.engine.aggregator import to_float
from taskquest.services.base import UserScopedService
from taskquest.utils.timeutils import parse_date

# streak length -> bonus XP
STREAK_MILESTONES: dict[int, int] = {
    3: 10,
    7: 25,
    14: 50,
    30: 100,
    60: 250,
    90: 500,
    180: 1000,
    365: 2500,
}

MILESTONE_MESSAGES: dict[int, str] = {
    3: "3 days in a row! You're building momentum.",
    7: "One full week streak! Consistency is paying off.",
    14: "Two weeks strong! This is becoming a habit.",
    30: "30 day streak! A whole month of showing up.",
    60: "60 days! Your dedication is remarkable.",
    90: "90 day streak! A full quarter of progress.",
    180: "Half a year without breaking the chain!",
    365: "One year streak! Legendary consistency.",
}


def xp_for_next_level(level: int) -> int:
    """XP needed to advance from ``level`` to ``level + 1``."""
    return (level + 1) * 100


def level_for_xp(total_xp: float) -> int:
    """Level reached with ``total_xp``; everyone starts at 1 and leaving level n costs (n+1)*100."""
    level = 1
    remaining = max(0.0, total_xp)
    while remaining >= xp_for_next_level(level):
        remaining -= xp_for_next_level(level)
        level += 1
    return level


def level_progress(total_xp: float) -> dict[str, Any]:
    level = level_for_xp(total_xp)
    spent = sum(xp_for_next_level(n) for n in range(1, level))
    into_level = max(0.0, total_xp) - spent
    needed = xp_for_next_level(level)
    return {
        "level": level,
        "total_xp": total_xp,
        "xp_into_level": into_level,
        "xp_for_next_level": needed,
        "progress_percentage": into_level / needed * 100,
    }


def next_streak(current: int, last_activity: Optional[date], activity: date) -> int:
    """Streak length after activity on ``activity``."""
    if last_activity is None:
        return 1
    if activity == last_activity:
        return current
    if activity == last_activity + timedelta(days=1):
        return current + 1
    return 1


class GamificationService(UserScopedService):
    """Daily streak tracking and XP awards for one user."""

    def get_streak(self) -> dict[str, Any]:
        rows = self.fetcher.rows("user_streaks", limit=1)
        if not rows:
            return {
                "user_id": self.user_id,
                "current_streak": 0,
                "longest_streak": 0,
                "last_activity_date": None,
            }
        return rows[0]

    def get_progress(self) -> dict[str, Any]:
        rows = self.fetcher.rows("user_progress", limit=1)
        total = to_float(rows[0].get("total_xp")) if rows else 0.0
        return level_progress(total)

    def update_streak(self, activity_date: Optional[date] = None) -> dict[str, Any]:
        """
        Record activity on ``activity_date`` (today by default).

        Repeating a day leaves the streak alone, the day after the last
        activity extends it, any gap restarts it at 1. Reaching a milestone
        awards its bonus XP.
        """
        activity = activity_date or self.now.date()
        streak = self.get_streak()
        current = int(streak.get("current_streak") or 0)
        longest = int(streak.get("longest_streak") or 0)
        last = parse_date(streak.get("last_activity_date"))

        if last is not None and activity < last:
            raise ValueError(f"Activity date {activity} precedes last activity {last}")

        updated = next_streak(current, last, activity)
        changed = updated != current or last != activity
        new_record = updated > longest
        longest = max(longest, updated)

        milestone = None
        if changed:
            self.storage.upsert(
                "user_streaks",
                [{
                    "user_id": self.user_id,
                    "current_streak": updated,
                    "longest_streak": longest,
                    "last_activity_date": activity,
                    "updated_at": self.now,
                }],
                on_conflict=["user_id"],
            )
            if updated != current and updated in STREAK_MILESTONES:
                reward = STREAK_MILESTONES[updated]
                milestone = {
                    "days": updated,
                    "xp_reward": reward,
                    "message": MILESTONE_MESSAGES[updated],
                }
                self.award_xp(reward, f"streak_milestone_{updated}")

        self.logger.info(
            "streak_updated",
            current_streak=updated,
            longest_streak=longest,
            milestone=milestone["days"] if milestone else None,
        )
        return {
            "current_streak": updated,
            "longest_streak": longest,
            "last_activity_date": activity.isoformat(),
            "is_new_record": new_record and changed,
            "milestone": milestone,
        }

    def award_xp(self, amount: int, reason: str = "task_completed") -> dict[str, Any]:
        if amount <= 0:
            raise ValueError("XP amount must be positive")

        before = self.get_progress()
        total = before["total_xp"] + amount
        level = level_for_xp(total)

        self.storage.insert(
            "xp_events",
            [{
                "id": str(uuid.uuid4()),
                "user_id": self.user_id,
                "amount": amount,
                "reason": reason,
                "created_at": self.now,
            }],
        )
        self.storage.upsert(
            "user_progress",
            [{"user_id": self.user_id, "total_xp": int(total), "level": level, "updated_at": self.now}],
            on_conflict=["user_id"],
        )

        self.logger.info("xp_awarded", amount=amount, reason=reason, total_xp=total, level=level)
        return {
            **level_progress(total),
            "xp_awarded": amount,
            "leveled_up": level > before["level"],
        }
