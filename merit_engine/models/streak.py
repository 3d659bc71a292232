"""
Streak model.

Consecutive-activity-day tracking with shelter credits that forgive a
missed day.
"""

from datetime import datetime
from ..extensions import db


class UserStreak(db.Model):
    """Activity streak for one user. Written only by StreakTracker."""

    __tablename__ = 'user_streaks'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, unique=True)

    current_streak_days = db.Column(db.Integer, nullable=False, default=0)
    best_streak_days = db.Column(db.Integer, nullable=False, default=0)
    shelters_available = db.Column(db.Integer, nullable=False, default=0)

    # Calendar date in the configured timezone, not a timestamp
    last_scored_date = db.Column(db.Date)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('current_streak_days >= 0', name='ck_user_streaks_current_nonneg'),
        db.CheckConstraint('best_streak_days >= current_streak_days', name='ck_user_streaks_best_ge_current'),
        db.CheckConstraint('shelters_available >= 0', name='ck_user_streaks_shelters_nonneg'),
    )

    def __repr__(self):
        return f'<UserStreak {self.user_id} {self.current_streak_days}d>'

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'current_streak_days': self.current_streak_days,
            'best_streak_days': self.best_streak_days,
            'shelters_available': self.shelters_available,
            'last_scored_date': self.last_scored_date.isoformat() if self.last_scored_date else None,
        }
