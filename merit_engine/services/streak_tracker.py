"""
Streak Tracker

Maintains each user's consecutive-activity-day streak and the shelter
credits that forgive a missed day.

State per user is (current_streak_days, last_scored_date). On activity for
`today` (local calendar date):
- last scored today          -> unchanged (idempotent for same-day awards)
- last scored yesterday      -> +1
- last scored earlier        -> +1 consuming one shelter if any, else reset to 1
- never scored               -> 1
best_streak_days tracks the maximum and last_scored_date becomes today.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

from flask import current_app

from ..extensions import db
from ..models.streak import UserStreak
from ..rules import MeritRules
from ..utils.clock import local_date, utc_now
from ..utils.exceptions import InvariantViolationError, ValidationError
from ..utils.logging_config import get_alert_logger


class StreakTracker:
    """Service owning UserStreak rows."""

    def __init__(self, rules: MeritRules):
        self.rules = rules

    def today(self, now: datetime = None) -> date:
        """Current calendar date in the configured timezone."""
        return local_date(now or utc_now(), self.rules.timezone)

    # ==================== Reads ====================

    def get_user_streak(self, user_id: str) -> Optional[UserStreak]:
        return UserStreak.query.filter_by(user_id=user_id).first()

    def get_user_streak_summary(self, user_id: str, now: datetime = None) -> Dict[str, Any]:
        """Read-only streak view; users without a row get the defaults."""
        streak = self.get_user_streak(user_id)
        if not streak:
            return {
                'user_id': user_id,
                'current_streak_days': 0,
                'best_streak_days': 0,
                'shelters_available': self.rules.initial_shelters,
                'last_scored_date': None,
                'effective_streak_days': 0,
            }

        summary = streak.to_dict()
        summary['effective_streak_days'] = self.effective_streak(streak, self.today(now))
        return summary

    def current_streak(self, user_id: str, today: date) -> int:
        """Streak length the multiplier should see before today's award."""
        return self.effective_streak(self.get_user_streak(user_id), today)

    @staticmethod
    def effective_streak(streak: Optional[UserStreak], today: date) -> int:
        """
        Stored streak, or 0 if it has lapsed: last scored more than a day
        ago with no shelter left to cover the gap.
        """
        if not streak or not streak.last_scored_date:
            return 0
        gap = (today - streak.last_scored_date).days
        if gap <= 1 or streak.shelters_available > 0:
            return streak.current_streak_days
        return 0

    # ==================== Award path ====================

    def lock_streak(self, user_id: str) -> UserStreak:
        """
        Fetch the user's streak row FOR UPDATE, creating it if absent.

        Must run inside the caller's transaction; the row lock serializes
        concurrent awards for the same user until commit. A concurrent first
        insert surfaces as IntegrityError on flush and the caller retries.
        """
        streak = (
            UserStreak.query
            .filter_by(user_id=user_id)
            .with_for_update()
            .first()
        )
        if streak:
            return streak

        streak = UserStreak(
            user_id=user_id,
            current_streak_days=0,
            best_streak_days=0,
            shelters_available=self.rules.initial_shelters,
        )
        db.session.add(streak)
        db.session.flush()
        return streak

    def register_activity(self, streak: UserStreak, today: date) -> UserStreak:
        """Apply one day of activity to a locked streak row (no commit)."""
        last = streak.last_scored_date

        if last is None:
            streak.current_streak_days = 1
        else:
            gap = (today - last).days
            if gap <= 0:
                # Already counted today (or a backdated award); never move backwards
                return streak
            if gap == 1:
                streak.current_streak_days += 1
            elif streak.shelters_available > 0:
                streak.shelters_available -= 1
                streak.current_streak_days += 1
                current_app.logger.info(
                    f"Shelter used: user {streak.user_id} missed {gap - 1} day(s), "
                    f"streak kept at {streak.current_streak_days}"
                )
            else:
                streak.current_streak_days = 1

        streak.best_streak_days = max(streak.best_streak_days or 0, streak.current_streak_days)
        streak.last_scored_date = today

        self.check_invariants(streak)
        return streak

    # ==================== External operations ====================

    def award_shelter(self, user_id: str, count: int = 1, commit: bool = True) -> UserStreak:
        """Grant shelter credits (earned by completing weekly missions)."""
        if count < 1:
            raise ValidationError('Shelter count must be at least 1', 'count')

        streak = self.lock_streak(user_id)
        streak.shelters_available += count
        self.check_invariants(streak)
        if not commit:
            return streak
        db.session.commit()

        current_app.logger.info(
            f"Shelter awarded: user {user_id} +{count} (now {streak.shelters_available})"
        )
        return streak

    def daily_rollover(self, today: date = None) -> Dict[str, Any]:
        """
        Reset streaks that lapsed without a shelter to cover them.

        best_streak_days is untouched. Streaks holding shelters are left for
        the next award to resolve.
        """
        today = today or self.today()
        cutoff = today - timedelta(days=1)

        reset = (
            UserStreak.query
            .filter(
                UserStreak.last_scored_date < cutoff,
                UserStreak.shelters_available == 0,
                UserStreak.current_streak_days > 0,
            )
            .update({'current_streak_days': 0}, synchronize_session=False)
        )
        db.session.commit()

        current_app.logger.info(f"Streak rollover for {today.isoformat()}: {reset} streak(s) reset")
        return {'date': today.isoformat(), 'reset': reset}

    @staticmethod
    def check_invariants(streak: UserStreak) -> None:
        problems = []
        if streak.current_streak_days < 0:
            problems.append('current_streak_days < 0')
        if streak.best_streak_days < streak.current_streak_days:
            problems.append('best_streak_days < current_streak_days')
        if streak.shelters_available < 0:
            problems.append('shelters_available < 0')

        if problems:
            message = f"Streak invariant violated for user {streak.user_id}: {', '.join(problems)}"
            get_alert_logger().critical(message)
            raise InvariantViolationError(message)
