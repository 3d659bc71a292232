"""
League models.

LeagueMembership holds a user's season-scoped point total and league tier.
LeagueChangeLog is the audit trail of boundary promotion/demotion runs.
"""

from datetime import datetime
from ..extensions import db
from .enums import League


class LeagueMembership(db.Model):
    """
    One row per (user, season).

    The award path only touches `points`. `league` is set when the row is
    created (bronze, or the tier carried from the previous season) and
    `next_league` is written only by the boundary assignment run.
    """

    __tablename__ = 'league_memberships'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False)
    season_id = db.Column(db.Integer, db.ForeignKey('seasons.id'), nullable=False)
    role = db.Column(db.String(20), nullable=False)

    league = db.Column(db.String(20), nullable=False, default=League.BRONZE.value)
    points = db.Column(db.Integer, nullable=False, default=0)

    # Outcome of the season-boundary run; seeds the next season's league
    next_league = db.Column(db.String(20))

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    season = db.relationship('Season', backref=db.backref('memberships', lazy='dynamic'))

    __table_args__ = (
        db.UniqueConstraint('user_id', 'season_id', name='uq_league_memberships_user_season'),
        db.Index('ix_league_memberships_season_role', 'season_id', 'role'),
        db.Index('ix_league_memberships_season_points', 'season_id', 'points'),
    )

    def __repr__(self):
        return f'<LeagueMembership {self.user_id} season={self.season_id} {self.league} {self.points}>'

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'season_id': self.season_id,
            'role': self.role,
            'league': self.league,
            'points': self.points,
            'next_league': self.next_league,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class LeagueChangeLog(db.Model):
    """Audit row for one user's boundary decision in one season."""

    __tablename__ = 'league_change_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False)
    season_id = db.Column(db.Integer, db.ForeignKey('seasons.id'), nullable=False)
    role = db.Column(db.String(20), nullable=False)

    from_league = db.Column(db.String(20), nullable=False)
    to_league = db.Column(db.String(20), nullable=False)
    change_type = db.Column(db.String(20), nullable=False)  # promoted, demoted, unchanged

    # Context used for the decision
    points = db.Column(db.Integer, nullable=False, default=0)
    cohort_size = db.Column(db.Integer, nullable=False)
    cohort_rank = db.Column(db.Integer, nullable=False)  # 1-based

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'season_id', name='uq_league_change_logs_user_season'),
    )

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'season_id': self.season_id,
            'role': self.role,
            'from_league': self.from_league,
            'to_league': self.to_league,
            'change_type': self.change_type,
            'points': self.points,
            'cohort_size': self.cohort_size,
            'cohort_rank': self.cohort_rank,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
