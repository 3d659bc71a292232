"""
Season model.

A bounded scoring period. At most one row may be active; the partial
unique index enforces that at the storage layer.
"""

from datetime import datetime
from ..extensions import db
from .enums import SeasonStatus


class Season(db.Model):
    """Scoring period: upcoming -> active -> closed."""

    __tablename__ = 'seasons'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=SeasonStatus.UPCOMING.value)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    # Rollover behaviour applied when this season closes
    reset_points = db.Column(db.Boolean, nullable=False, default=True)
    maintain_leagues = db.Column(db.Boolean, nullable=False, default=True)

    activated_at = db.Column(db.DateTime)
    closed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('end_date >= start_date', name='ck_seasons_dates'),
        db.Index(
            'uq_seasons_single_active',
            'status',
            unique=True,
            postgresql_where=db.text("status = 'active'"),
            sqlite_where=db.text("status = 'active'"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == SeasonStatus.ACTIVE.value

    def __repr__(self):
        return f'<Season {self.id} {self.name} {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'reset_points': self.reset_points,
            'maintain_leagues': self.maintain_leagues,
            'activated_at': self.activated_at.isoformat() if self.activated_at else None,
            'closed_at': self.closed_at.isoformat() if self.closed_at else None,
        }
