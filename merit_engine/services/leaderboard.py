"""
Leaderboard Aggregator

Read-only ranking of a season's memberships:

1. Hard eligibility filter (compliance gates); failing users are removed
2. Base order: points desc, membership creation asc, user id asc
3. League bias: bias = ranking_bias_cap x tier_index / top_tier_index,
   so bronze gets 0 and diamond the full cap. A user may rise at most
   shift = floor(bias x N) places above their base rank (N = ranked users);
   final order is by (base_rank - shift), ties going to the larger
   shift and then the better base rank

Because nobody rises more than floor(cap x N) places, at most that many
users can enter the top 10 through bias alone. Every row carries its
base rank, bias and shift so the adjustment is auditable.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, List, Optional

from ..extensions import db
from ..models.enums import LEAGUE_ORDER, league_index, parse_league, parse_role
from ..models.league import LeagueMembership
from ..rules import MeritRules
from .eligibility import EligibilityPolicy


@dataclass(frozen=True)
class UserRanking:
    rank: int
    base_rank: int
    user_id: str
    role: str
    league: str
    points: int
    bias: float
    shift: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rank': self.rank,
            'base_rank': self.base_rank,
            'user_id': self.user_id,
            'role': self.role,
            'league': self.league,
            'points': self.points,
            'bias': self.bias,
            'shift': self.shift,
        }


class LeaderboardAggregator:

    def __init__(self, rules: MeritRules, eligibility: EligibilityPolicy = None):
        self.rules = rules
        self.eligibility = eligibility or EligibilityPolicy(rules.eligibility)

    def league_bias(self, league) -> Decimal:
        """Fractional bias for a tier: 0 for bronze up to the cap for diamond."""
        top_index = len(LEAGUE_ORDER) - 1
        return Decimal(str(self.rules.ranking_bias_cap)) * league_index(league) / top_index

    def rank(self, season_id: int, role: str = None, league: str = None) -> List[UserRanking]:
        query = db.session.query(
            LeagueMembership.user_id,
            LeagueMembership.role,
            LeagueMembership.league,
            LeagueMembership.points,
            LeagueMembership.created_at,
        ).filter(LeagueMembership.season_id == season_id)
        if role:
            query = query.filter(LeagueMembership.role == parse_role(role).value)
        if league:
            query = query.filter(LeagueMembership.league == parse_league(league).value)

        rows = query.all()
        eligible = self.eligibility.eligible_user_ids(row.user_id for row in rows)
        rows = [row for row in rows if row.user_id in eligible]
        rows.sort(key=lambda r: (-r.points, r.created_at, r.user_id))

        total = len(rows)
        staged = []
        for base_rank, row in enumerate(rows, start=1):
            bias = self.league_bias(row.league)
            shift = int((bias * total).to_integral_value(rounding=ROUND_FLOOR))
            staged.append((base_rank - shift, base_rank, shift, bias, row))

        staged.sort(key=lambda item: (item[0], -item[2], item[1]))

        return [
            UserRanking(
                rank=position,
                base_rank=base_rank,
                user_id=row.user_id,
                role=row.role,
                league=row.league,
                points=row.points,
                bias=float(bias),
                shift=shift,
            )
            for position, (_, base_rank, shift, bias, row) in enumerate(staged, start=1)
        ]

    def top(self, season_id: int, limit: int = 10, role: str = None, league: str = None) -> List[UserRanking]:
        return self.rank(season_id, role=role, league=league)[:limit]

    def get_user_rank(self, season_id: int, user_id: str, role: str = None) -> Optional[UserRanking]:
        """A single user's row, or None if absent or ineligible."""
        for entry in self.rank(season_id, role=role):
            if entry.user_id == user_id:
                return entry
        return None
