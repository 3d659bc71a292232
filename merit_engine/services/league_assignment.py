"""
League Assignment Engine

Season-boundary promotion/demotion, computed separately for each role
cohort (brokers are ranked only against brokers).

Per cohort:
1. Order by points desc, then membership creation, then user id
2. Cohorts smaller than min_league_size move nobody
3. Top floor(n * top_pct) go up one tier (capped at diamond),
   bottom floor(n * bottom_pct) go down one tier (floored at bronze)

Results are computed from `league` and written to `next_league` plus the
LeagueChangeLog audit table, so rerunning a boundary on unchanged input
produces identical assignments.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, Iterable, List

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models.enums import LeagueChangeType, demote, league_index, parse_role, promote
from ..models.league import LeagueChangeLog, LeagueMembership
from ..rules import MeritRules, PromotionSettings
from ..utils.exceptions import InvariantViolationError
from ..utils.logging_config import get_alert_logger


@dataclass(frozen=True)
class MemberSnapshot:
    membership_id: int
    user_id: str
    role: str
    league: str
    points: int
    created_at: datetime


@dataclass(frozen=True)
class LeagueDecision:
    membership_id: int
    user_id: str
    role: str
    from_league: str
    to_league: str
    change_type: LeagueChangeType
    points: int
    cohort_rank: int
    cohort_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'role': self.role,
            'from_league': self.from_league,
            'to_league': self.to_league,
            'change_type': self.change_type.value,
            'points': self.points,
            'cohort_rank': self.cohort_rank,
            'cohort_size': self.cohort_size,
        }


@dataclass
class CohortResult:
    role: str
    size: int
    movement_skipped: bool
    decisions: List[LeagueDecision] = field(default_factory=list)

    @property
    def promoted(self) -> int:
        return sum(1 for d in self.decisions if d.change_type == LeagueChangeType.PROMOTED)

    @property
    def demoted(self) -> int:
        return sum(1 for d in self.decisions if d.change_type == LeagueChangeType.DEMOTED)


@dataclass
class AssignmentReport:
    season_id: int
    cohorts: List[CohortResult] = field(default_factory=list)

    @property
    def promoted(self) -> int:
        return sum(c.promoted for c in self.cohorts)

    @property
    def demoted(self) -> int:
        return sum(c.demoted for c in self.cohorts)

    @property
    def decisions(self) -> List[LeagueDecision]:
        return [d for c in self.cohorts for d in c.decisions]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'season_id': self.season_id,
            'promoted': self.promoted,
            'demoted': self.demoted,
            'cohorts': [
                {
                    'role': c.role,
                    'size': c.size,
                    'movement_skipped': c.movement_skipped,
                    'promoted': c.promoted,
                    'demoted': c.demoted,
                }
                for c in self.cohorts
            ],
        }


def _share(count: int, pct: float) -> int:
    return int((Decimal(count) * Decimal(str(pct))).to_integral_value(rounding=ROUND_FLOOR))


def plan_cohort(role: str, members: Iterable[MemberSnapshot], settings: PromotionSettings) -> CohortResult:
    """Pure promotion/demotion plan for one role cohort."""
    ordered = sorted(members, key=lambda m: (-m.points, m.created_at, m.user_id))
    size = len(ordered)
    skipped = size < settings.min_league_size

    top = 0 if skipped else _share(size, settings.top_pct)
    bottom = 0 if skipped else _share(size, settings.bottom_pct)
    bottom = min(bottom, size - top)

    result = CohortResult(role=role, size=size, movement_skipped=skipped)
    for position, member in enumerate(ordered):
        try:
            current_idx = league_index(member.league)
            if position < top:
                target = promote(member.league).value
            elif position >= size - bottom:
                target = demote(member.league).value
            else:
                target = member.league
        except ValueError:
            message = f"League invariant violated: user {member.user_id} holds unknown tier '{member.league}'"
            get_alert_logger().critical(message)
            raise InvariantViolationError(message)

        target_idx = league_index(target)
        if target_idx > current_idx:
            change = LeagueChangeType.PROMOTED
        elif target_idx < current_idx:
            change = LeagueChangeType.DEMOTED
        else:
            change = LeagueChangeType.UNCHANGED

        result.decisions.append(LeagueDecision(
            membership_id=member.membership_id,
            user_id=member.user_id,
            role=role,
            from_league=member.league,
            to_league=target,
            change_type=change,
            points=member.points,
            cohort_rank=position + 1,
            cohort_size=size,
        ))
    return result


class LeagueAssignmentEngine:
    """Boundary promotion/demotion runs."""

    def __init__(self, rules: MeritRules):
        self.rules = rules

    def snapshot(self, season_id: int, role: str = None) -> List[MemberSnapshot]:
        """One consistent read of the season's memberships."""
        query = db.session.query(
            LeagueMembership.id,
            LeagueMembership.user_id,
            LeagueMembership.role,
            LeagueMembership.league,
            LeagueMembership.points,
            LeagueMembership.created_at,
        ).filter(LeagueMembership.season_id == season_id)
        if role:
            query = query.filter(LeagueMembership.role == parse_role(role).value)

        return [MemberSnapshot(*row) for row in query.all()]

    def plan(self, season_id: int, role: str = None) -> AssignmentReport:
        """Compute decisions without writing anything."""
        cohorts: Dict[str, List[MemberSnapshot]] = defaultdict(list)
        for member in self.snapshot(season_id, role):
            cohorts[member.role].append(member)

        report = AssignmentReport(season_id=season_id)
        for cohort_role in sorted(cohorts):
            report.cohorts.append(plan_cohort(cohort_role, cohorts[cohort_role], self.rules.promotion))
        return report

    def assign(self, season_id: int, role: str = None) -> AssignmentReport:
        """Plan and stage the writes in the current transaction (no commit)."""
        report = self.plan(season_id, role)
        decisions = report.decisions
        if not decisions:
            return report

        db.session.execute(
            update(LeagueMembership),
            [{'id': d.membership_id, 'next_league': d.to_league} for d in decisions],
        )

        existing = {
            log.user_id: log
            for log in LeagueChangeLog.query.filter_by(season_id=season_id).all()
        }
        for d in decisions:
            log = existing.get(d.user_id)
            if log is None:
                log = LeagueChangeLog(user_id=d.user_id, season_id=season_id)
                db.session.add(log)
            log.role = d.role
            log.from_league = d.from_league
            log.to_league = d.to_league
            log.change_type = d.change_type.value
            log.points = d.points
            log.cohort_size = d.cohort_size
            log.cohort_rank = d.cohort_rank

        db.session.flush()

        for cohort in report.cohorts:
            if cohort.movement_skipped:
                current_app.logger.info(
                    f"League run season {season_id} role {cohort.role}: cohort of {cohort.size} "
                    f"below minimum {self.rules.promotion.min_league_size}, no movement"
                )
            else:
                current_app.logger.info(
                    f"League run season {season_id} role {cohort.role}: {cohort.size} members, "
                    f"{cohort.promoted} promoted, {cohort.demoted} demoted"
                )
        return report

    def run(self, season_id: int, role: str = None) -> AssignmentReport:
        """Operator-triggered run: assign and commit."""
        try:
            report = self.assign(season_id, role)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return report

    def get_changes(self, season_id: int, user_id: str = None) -> List[LeagueChangeLog]:
        query = LeagueChangeLog.query.filter_by(season_id=season_id)
        if user_id:
            query = query.filter_by(user_id=user_id)
        return query.order_by(LeagueChangeLog.role, LeagueChangeLog.cohort_rank).all()
