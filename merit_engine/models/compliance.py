"""
Compliance status projection.

Mirrors the external compliance/KYC store so leaderboards can apply the
hard eligibility filter without a remote call per user.
"""

from datetime import datetime
from ..extensions import db


class ComplianceStatus(db.Model):
    __tablename__ = 'compliance_statuses'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, unique=True)

    kyc_completed = db.Column(db.Boolean, nullable=False, default=False)
    compliance_clean = db.Column(db.Boolean, nullable=False, default=False)
    credentials_current = db.Column(db.Boolean, nullable=False, default=False)
    deposit_on_file = db.Column(db.Boolean, nullable=False, default=False)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'kyc_completed': self.kyc_completed,
            'compliance_clean': self.compliance_clean,
            'credentials_current': self.credentials_current,
            'deposit_on_file': self.deposit_on_file,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
