"""
Leaderboard eligibility.

Hard filter applied before any ranking: a user whose compliance projection
fails an enabled gate is not shown at all, regardless of points.
"""

from typing import Dict, Iterable, Optional, Set

from ..extensions import db
from ..models.compliance import ComplianceStatus
from ..rules import EligibilityGates


class EligibilityPolicy:

    def __init__(self, gates: EligibilityGates):
        self.gates = gates

    def is_eligible(self, status: Optional[ComplianceStatus]) -> bool:
        """Apply enabled gates. No status row fails every enabled gate."""
        if not self.gates.any_enabled:
            return True
        if status is None:
            return False
        if self.gates.kyc_required and not status.kyc_completed:
            return False
        if self.gates.compliance_clean_required and not status.compliance_clean:
            return False
        if self.gates.credentials_required and not status.credentials_current:
            return False
        if self.gates.deposit_required and not status.deposit_on_file:
            return False
        return True

    def statuses_for(self, user_ids: Iterable[str]) -> Dict[str, ComplianceStatus]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        rows = db.session.query(ComplianceStatus).filter(ComplianceStatus.user_id.in_(ids)).all()
        return {row.user_id: row for row in rows}

    def eligible_user_ids(self, user_ids: Iterable[str]) -> Set[str]:
        """Subset of user_ids that pass every enabled gate (one query)."""
        user_ids = list(user_ids)
        if not self.gates.any_enabled:
            return set(user_ids)
        statuses = self.statuses_for(user_ids)
        return {uid for uid in user_ids if self.is_eligible(statuses.get(uid))}

    def upsert_status(self, user_id: str, **flags) -> ComplianceStatus:
        """Write the projection for one user (admin / compliance feed)."""
        allowed = {'kyc_completed', 'compliance_clean', 'credentials_current', 'deposit_on_file'}
        unknown = set(flags) - allowed
        if unknown:
            raise ValueError(f"Unknown compliance flags: {', '.join(sorted(unknown))}")
        not_bool = sorted(name for name, value in flags.items() if not isinstance(value, bool))
        if not_bool:
            raise ValueError(f"Compliance flags must be true or false: {', '.join(not_bool)}")

        status = ComplianceStatus.query.filter_by(user_id=user_id).first()
        if not status:
            status = ComplianceStatus(
                user_id=user_id,
                kyc_completed=False,
                compliance_clean=False,
                credentials_current=False,
                deposit_on_file=False,
            )
            db.session.add(status)
        for name, value in flags.items():
            setattr(status, name, value)
        db.session.commit()
        return status
