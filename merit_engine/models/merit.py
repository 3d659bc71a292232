"""
Merit event ledger model.

Append-only record of every awarded merit event. The UNIQUE constraint on
source_key is the single source of truth for "was this already paid out".
"""

from datetime import datetime
from ..extensions import db


class MeritEvent(db.Model):
    """One awarded merit event. Never updated after insert."""

    __tablename__ = 'merit_events'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False)
    role = db.Column(db.String(20), nullable=False)
    event_type = db.Column(db.String(64), nullable=False)

    # Points
    base_points = db.Column(db.Integer, nullable=False)
    multiplier = db.Column(db.Float, nullable=False, default=1.0)
    awarded_points = db.Column(db.Integer, nullable=False)

    season_id = db.Column(db.Integer, db.ForeignKey('seasons.id'), nullable=False)

    # Caller-supplied idempotency token, e.g. "deal:123|rule:quote_accepted"
    source_key = db.Column(db.String(255), nullable=False)

    # 'metadata' is reserved on declarative classes
    event_metadata = db.Column('metadata', db.JSON, default=dict)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    season = db.relationship('Season', backref=db.backref('merit_events', lazy='dynamic'))

    __table_args__ = (
        db.UniqueConstraint('source_key', name='uq_merit_events_source_key'),
        # Cap windows and per-user history
        db.Index('ix_merit_events_user_type_created', 'user_id', 'event_type', 'created_at'),
        db.Index('ix_merit_events_user_created', 'user_id', 'created_at'),
        db.Index('ix_merit_events_season', 'season_id'),
    )

    def __repr__(self):
        return f'<MeritEvent {self.source_key} user={self.user_id} +{self.awarded_points}>'

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'role': self.role,
            'event_type': self.event_type,
            'base_points': self.base_points,
            'multiplier': self.multiplier,
            'awarded_points': self.awarded_points,
            'season_id': self.season_id,
            'source_key': self.source_key,
            'metadata': self.event_metadata or {},
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
