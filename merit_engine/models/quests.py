"""
Quest models.

Daily quests ("briefings") and weekly missions ("orders"). Completing one
pays a bonus through the normal award path; completing a weekly mission also
earns a streak shelter.
"""

from datetime import datetime
from ..extensions import db


class DailyQuest(db.Model):
    """A quest assigned to a user for one calendar day."""

    __tablename__ = 'daily_quests'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False)
    quest_code = db.Column(db.String(64), nullable=False)
    assigned_date = db.Column(db.Date, nullable=False)

    target_count = db.Column(db.Integer, nullable=False, default=1)
    current_count = db.Column(db.Integer, nullable=False, default=0)
    bonus_points = db.Column(db.Integer, nullable=False, default=0)

    completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'quest_code', 'assigned_date', name='uq_daily_quests_user_code_date'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'quest_code': self.quest_code,
            'assigned_date': self.assigned_date.isoformat() if self.assigned_date else None,
            'target_count': self.target_count,
            'current_count': self.current_count,
            'bonus_points': self.bonus_points,
            'completed': self.completed,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }


class WeeklyMission(db.Model):
    """A mission assigned to a user for one season."""

    __tablename__ = 'weekly_missions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False)
    season_id = db.Column(db.Integer, db.ForeignKey('seasons.id'), nullable=False)
    mission_code = db.Column(db.String(64), nullable=False)

    target_count = db.Column(db.Integer, nullable=False, default=1)
    current_count = db.Column(db.Integer, nullable=False, default=0)
    bonus_points = db.Column(db.Integer, nullable=False, default=0)

    completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime)
    # Set in the same transaction as the shelter grant
    shelter_granted = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'season_id', 'mission_code', name='uq_weekly_missions_user_season_code'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'season_id': self.season_id,
            'mission_code': self.mission_code,
            'target_count': self.target_count,
            'current_count': self.current_count,
            'bonus_points': self.bonus_points,
            'completed': self.completed,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'shelter_granted': self.shelter_granted,
        }
