"""
Rules override model.

One row holding admin edits to the merit rules as JSON, merged over the
code defaults. `version` increments on every edit so each process can tell
whether its cached snapshot is stale.
"""

from datetime import datetime
from ..extensions import db

SINGLETON_ID = 1


class RulesOverride(db.Model):
    """Admin rule edits (point table and caps)."""

    __tablename__ = 'merit_rules_overrides'

    id = db.Column(db.Integer, primary_key=True)
    version = db.Column(db.Integer, nullable=False, default=0)

    # {"points": {role: {event_type: points}},
    #  "caps": {role: {event_type: {"limit": n, "window": w} | null}}}
    settings = db.Column(db.JSON, nullable=False, default=dict)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<RulesOverride v{self.version}>'

    def to_dict(self):
        return {
            'version': self.version,
            'settings': self.settings or {},
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
