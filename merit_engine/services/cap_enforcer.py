"""
Cap Enforcer

Anti-farming admission control. Counts a user's merit events of one type
inside a window and compares against the configured limit. Exceeding a cap
is never an error, only a skip.

Window policy (one per cap):
- calendar_day:   events since local midnight in the configured timezone
- rolling_7_days: events in the trailing 7 x 24h ending at `now`
- season:         events recorded against the active season
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models.enums import CapWindow
from ..models.merit import MeritEvent
from ..rules import CapRule, MeritRules
from ..utils.clock import ROLLING_WEEK, local_date, local_day_start_utc, utc_now


@dataclass(frozen=True)
class CapCheck:
    cap: Optional[CapRule]
    count: int

    @property
    def allowed(self) -> bool:
        return self.cap is None or self.count < self.cap.limit


class CapEnforcer:
    """Read-only cap checks against the merit ledger."""

    def __init__(self, rules: MeritRules):
        self.rules = rules

    def window_start(self, window: CapWindow, now: datetime) -> Optional[datetime]:
        """
        Lower bound (naive UTC) of a time-based window: inclusive for the
        calendar day, exclusive for the rolling 7 days.
        """
        if window == CapWindow.CALENDAR_DAY:
            return local_day_start_utc(local_date(now, self.rules.timezone), self.rules.timezone)
        if window == CapWindow.ROLLING_7_DAYS:
            return now - ROLLING_WEEK
        return None

    def count_in_window(
        self,
        user_id: str,
        event_type: str,
        window: CapWindow,
        now: datetime = None,
        season_id: int = None
    ) -> int:
        """Number of the user's events of this type inside the window."""
        now = now or utc_now()
        query = db.session.query(func.count(MeritEvent.id)).filter(
            MeritEvent.user_id == user_id,
            MeritEvent.event_type == event_type,
        )

        if window == CapWindow.SEASON:
            if season_id is None:
                raise ValueError('season window requires season_id')
            query = query.filter(MeritEvent.season_id == season_id)
        else:
            start = self.window_start(window, now)
            if window == CapWindow.ROLLING_7_DAYS:
                query = query.filter(MeritEvent.created_at > start)
            else:
                query = query.filter(MeritEvent.created_at >= start)
            query = query.filter(MeritEvent.created_at <= now)

        return query.scalar() or 0

    def check(
        self,
        user_id: str,
        role,
        event_type: str,
        now: datetime = None,
        season_id: int = None
    ) -> CapCheck:
        cap = self.rules.cap_for(role, event_type)
        if cap is None:
            return CapCheck(cap=None, count=0)

        count = self.count_in_window(user_id, event_type, cap.window, now=now, season_id=season_id)
        result = CapCheck(cap=cap, count=count)

        if not result.allowed:
            current_app.logger.debug(
                f"Cap reached: user {user_id} {event_type} "
                f"{count}/{cap.limit} per {cap.window.value}"
            )
        return result

    def is_within_cap(
        self,
        user_id: str,
        role,
        event_type: str,
        now: datetime = None,
        season_id: int = None
    ) -> bool:
        """True when one more event of this type would still be admitted."""
        return self.check(user_id, role, event_type, now=now, season_id=season_id).allowed
