"""
Merit rules snapshot.

All tunable values (point table, caps, multiplier tiers, promotion
percentages, ranking bias, eligibility gates, quest catalogs) live in one
immutable MeritRules value. Services receive a snapshot when they are built,
so an award in flight never observes a half-applied admin edit.

Admin edits are stored in the RulesOverride row and merged over the
defaults built from config, so every worker serves the same snapshot:

    get_registry().update(
        lambda overrides: set_point_override(overrides, 'operator', 'quote_accepted', 30)
    )
"""
import copy
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, Optional, Tuple

from flask import current_app

from .extensions import db
from .models.enums import CapWindow, Role, parse_role
from .models.rules_override import SINGLETON_ID, RulesOverride


# ==================== Point table ====================

@dataclass(frozen=True)
class PointRule:
    """Points for one (role, event_type). role=SHARED is the fallback variant."""
    role: Role
    event_type: str
    points: int


@dataclass(frozen=True)
class PointTable:
    rules: Tuple[PointRule, ...] = ()

    def _index(self) -> Dict[Tuple[Role, str], int]:
        return {(r.role, r.event_type): r.points for r in self.rules}

    def resolve(self, role, event_type: str) -> int:
        """
        Base points for an event. Always terminates in a value:
        role-specific rule, then the shared rule, then 0.
        """
        index = self._index()
        role = parse_role(role)
        if (role, event_type) in index:
            return index[(role, event_type)]
        return index.get((Role.SHARED, event_type), 0)

    def event_types(self) -> set:
        return {r.event_type for r in self.rules}

    def with_rule(self, role, event_type: str, points: int) -> 'PointTable':
        role = parse_role(role)
        kept = tuple(r for r in self.rules if not (r.role == role and r.event_type == event_type))
        return PointTable(rules=kept + (PointRule(role, event_type, int(points)),))

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        out: Dict[str, Dict[str, int]] = {}
        for r in self.rules:
            out.setdefault(r.role.value, {})[r.event_type] = r.points
        return out


# ==================== Caps ====================

@dataclass(frozen=True)
class CapRule:
    """At most `limit` events of event_type per window. role=SHARED applies to every role."""
    role: Role
    event_type: str
    limit: int
    window: CapWindow

    def to_dict(self) -> Dict:
        return {
            'role': self.role.value,
            'event_type': self.event_type,
            'limit': self.limit,
            'window': self.window.value,
        }


# ==================== Quests ====================

@dataclass(frozen=True)
class QuestDefinition:
    code: str
    label: str
    points: int
    role: Role
    target: int = 1


# ==================== Sub-settings ====================

@dataclass(frozen=True)
class PromotionSettings:
    top_pct: float = 0.20
    bottom_pct: float = 0.20
    min_league_size: int = 10


@dataclass(frozen=True)
class EligibilityGates:
    kyc_required: bool = True
    compliance_clean_required: bool = True
    credentials_required: bool = True
    deposit_required: bool = False

    @property
    def any_enabled(self) -> bool:
        return any((
            self.kyc_required,
            self.compliance_clean_required,
            self.credentials_required,
            self.deposit_required,
        ))


# ==================== Defaults ====================

DEFAULT_POINTS = PointTable(rules=(
    PointRule(Role.BROKER, 'rfq_posted_quality', 5),
    PointRule(Role.BROKER, 'saved_search_hit_response', 10),
    PointRule(Role.BROKER, 'quote_accepted', 25),
    PointRule(Role.BROKER, 'deal_completed_on_time', 40),
    PointRule(Role.OPERATOR, 'quote_submitted_fast', 15),
    PointRule(Role.OPERATOR, 'quote_accepted', 25),
    PointRule(Role.OPERATOR, 'flight_completed_on_time', 40),
    PointRule(Role.OPERATOR, 'fallthrough_recovered', 30),
    PointRule(Role.PILOT, 'assignment_completed_on_time', 25),
    PointRule(Role.PILOT, 'counterpart_positive_review', 10),
    PointRule(Role.PILOT, 'credentials_up_to_date', 10),
    PointRule(Role.CREW, 'assignment_completed_on_time', 25),
    PointRule(Role.CREW, 'counterpart_positive_review', 10),
    PointRule(Role.CREW, 'credentials_up_to_date', 10),
    PointRule(Role.SHARED, 'kyc_completed', 10),
    PointRule(Role.SHARED, 'dispute_free_deal', 20),
    PointRule(Role.SHARED, 'community_helpful', 10),
))

DEFAULT_CAPS = (
    CapRule(Role.BROKER, 'rfq_posted_quality', 10, CapWindow.ROLLING_7_DAYS),
    CapRule(Role.BROKER, 'saved_search_hit_response', 10, CapWindow.CALENDAR_DAY),
    CapRule(Role.OPERATOR, 'quote_submitted_fast', 20, CapWindow.ROLLING_7_DAYS),
    # admin-awarded "community helpful" points
    CapRule(Role.SHARED, 'community_helpful', 2, CapWindow.SEASON),
)

# (minimum streak days, multiplier), highest threshold first
DEFAULT_MULTIPLIER_TIERS = ((14, 2.0), (7, 1.5), (3, 1.2))

DEFAULT_DAILY_QUESTS = (
    QuestDefinition('fast_quote', 'Submit a quote in 5 minutes or less', 10, Role.OPERATOR),
    QuestDefinition('saved_alert', 'Act on a saved-search alert in 10 minutes or less', 10, Role.BROKER),
    QuestDefinition('ontime_close', 'Complete a deal on time', 10, Role.SHARED),
    QuestDefinition('rfq_quality', 'Post a quality RFQ', 10, Role.BROKER),
    QuestDefinition('credentials_check', 'Keep credentials up to date', 10, Role.PILOT),
    QuestDefinition('credentials_check_crew', 'Keep credentials up to date', 10, Role.CREW),
)

DEFAULT_WEEKLY_MISSIONS = (
    QuestDefinition('fast_quotes_3', 'Submit 3 fast quotes', 25, Role.OPERATOR, target=3),
    QuestDefinition('ontime_completion_1', 'Complete 1 deal on time', 25, Role.SHARED, target=1),
    QuestDefinition('re_market_save_1', 'Recover 1 fallthrough', 25, Role.OPERATOR, target=1),
    QuestDefinition('quality_rfqs_5', 'Post 5 quality RFQs', 25, Role.BROKER, target=5),
    QuestDefinition('positive_reviews_2', 'Get 2 positive reviews', 25, Role.PILOT, target=2),
    QuestDefinition('positive_reviews_2_crew', 'Get 2 positive reviews', 25, Role.CREW, target=2),
)

DAILY_QUESTS_PER_USER = 3


# ==================== Snapshot ====================

@dataclass(frozen=True)
class MeritRules:
    """Immutable configuration snapshot for the merit engine."""
    points: PointTable = DEFAULT_POINTS
    caps: Tuple[CapRule, ...] = DEFAULT_CAPS
    multiplier_tiers: Tuple[Tuple[int, float], ...] = DEFAULT_MULTIPLIER_TIERS
    promotion: PromotionSettings = field(default_factory=PromotionSettings)
    ranking_bias_cap: float = 0.05
    eligibility: EligibilityGates = field(default_factory=EligibilityGates)
    timezone: str = 'UTC'
    initial_shelters: int = 0
    daily_quests: Tuple[QuestDefinition, ...] = DEFAULT_DAILY_QUESTS
    weekly_missions: Tuple[QuestDefinition, ...] = DEFAULT_WEEKLY_MISSIONS
    version: int = 1

    def __post_init__(self):
        if not 0 <= self.ranking_bias_cap <= 1:
            raise ValueError('ranking_bias_cap must be between 0 and 1')
        if self.promotion.min_league_size < 1:
            raise ValueError('min_league_size must be at least 1')
        thresholds = [t for t, _ in self.multiplier_tiers]
        if thresholds != sorted(thresholds, reverse=True):
            raise ValueError('multiplier tiers must be ordered by descending threshold')
        factors = [m for _, m in self.multiplier_tiers]
        if factors != sorted(factors, reverse=True) or any(m < 1.0 for m in factors):
            raise ValueError('multiplier tiers must be non-decreasing in streak length and >= 1.0')

    @classmethod
    def from_config(cls, config) -> 'MeritRules':
        """Build the startup snapshot from Flask config values."""
        return cls(
            promotion=PromotionSettings(
                min_league_size=int(config.get('MERIT_MIN_LEAGUE_SIZE', 10)),
            ),
            ranking_bias_cap=float(config.get('MERIT_RANKING_BIAS_CAP', 0.05)),
            timezone=config.get('MERIT_TIMEZONE', 'UTC'),
            initial_shelters=int(config.get('MERIT_INITIAL_SHELTERS', 0)),
        )

    def _next(self, **changes) -> 'MeritRules':
        return replace(self, version=self.version + 1, **changes)

    def with_points(self, role, event_type: str, points: int) -> 'MeritRules':
        if int(points) < 0:
            raise ValueError('points must be non-negative')
        return self._next(points=self.points.with_rule(role, event_type, points))

    def with_cap(self, role, event_type: str, limit: int, window) -> 'MeritRules':
        role = parse_role(role)
        if int(limit) < 0:
            raise ValueError('cap limit must be non-negative')
        kept = tuple(c for c in self.caps if not (c.role == role and c.event_type == event_type))
        cap = CapRule(role, event_type, int(limit), CapWindow(window))
        return self._next(caps=kept + (cap,))

    def without_cap(self, role, event_type: str) -> 'MeritRules':
        role = parse_role(role)
        return self._next(caps=tuple(
            c for c in self.caps if not (c.role == role and c.event_type == event_type)
        ))

    def with_multiplier_tiers(self, tiers: Iterable[Tuple[int, float]]) -> 'MeritRules':
        ordered = tuple(sorted(((int(t), float(m)) for t, m in tiers), reverse=True))
        return self._next(multiplier_tiers=ordered)

    def with_promotion(self, **settings) -> 'MeritRules':
        return self._next(promotion=replace(self.promotion, **settings))

    def with_eligibility(self, **gates) -> 'MeritRules':
        return self._next(eligibility=replace(self.eligibility, **gates))

    def cap_for(self, role, event_type: str) -> Optional[CapRule]:
        """Role-specific cap, else the any-role cap, else None."""
        role = parse_role(role)
        shared = None
        for cap in self.caps:
            if cap.event_type != event_type:
                continue
            if cap.role == role:
                return cap
            if cap.role == Role.SHARED:
                shared = cap
        return shared

    def to_dict(self) -> Dict:
        return {
            'version': self.version,
            'points': self.points.to_dict(),
            'caps': [c.to_dict() for c in self.caps],
            'multiplier_tiers': [
                {'min_streak_days': t, 'multiplier': m} for t, m in self.multiplier_tiers
            ],
            'promotion': {
                'top_pct': self.promotion.top_pct,
                'bottom_pct': self.promotion.bottom_pct,
                'min_league_size': self.promotion.min_league_size,
            },
            'ranking_bias_cap': self.ranking_bias_cap,
            'eligibility': {
                'kyc_required': self.eligibility.kyc_required,
                'compliance_clean_required': self.eligibility.compliance_clean_required,
                'credentials_required': self.eligibility.credentials_required,
                'deposit_required': self.eligibility.deposit_required,
            },
            'timezone': self.timezone,
        }


# ==================== Stored overrides ====================

def set_point_override(overrides: Dict, role, event_type: str, points) -> None:
    points = int(points)
    if points < 0:
        raise ValueError('points must be non-negative')
    role = parse_role(role).value
    overrides.setdefault('points', {}).setdefault(role, {})[event_type] = points


def set_cap_override(overrides: Dict, role, event_type: str, limit, window) -> None:
    limit = int(limit)
    if limit < 0:
        raise ValueError('cap limit must be non-negative')
    role = parse_role(role).value
    overrides.setdefault('caps', {}).setdefault(role, {})[event_type] = {
        'limit': limit,
        'window': CapWindow(window).value,
    }


def remove_cap_override(overrides: Dict, role, event_type: str) -> None:
    """Record a removal; None hides a default cap as well as an edited one."""
    role = parse_role(role).value
    overrides.setdefault('caps', {}).setdefault(role, {})[event_type] = None


def apply_overrides(base: MeritRules, overrides: Dict, version: int) -> MeritRules:
    """Stored admin edits merged over the config-built defaults."""
    rules = base
    for role, events in (overrides.get('points') or {}).items():
        for event_type, points in events.items():
            rules = rules.with_points(role, event_type, points)
    for role, events in (overrides.get('caps') or {}).items():
        for event_type, cap in events.items():
            if cap is None:
                rules = rules.without_cap(role, event_type)
            else:
                rules = rules.with_cap(role, event_type, cap['limit'], cap['window'])
    return replace(rules, version=version)


class RulesRegistry:
    """
    Serves the current MeritRules snapshot.

    Admin edits live in the RulesOverride row, so every worker process sees
    the same rules. Each process caches the snapshot built for the row's
    version and rebuilds it when another process bumps the version.
    """

    def __init__(self, base: MeritRules):
        self.base = base
        self._cached: Optional[Tuple[int, MeritRules]] = None
        self._lock = threading.Lock()

    def _snapshot(self, row: Optional[RulesOverride]) -> MeritRules:
        version = row.version if row else 0
        cached = self._cached
        if cached and cached[0] == version:
            return cached[1]

        with self._lock:
            snapshot = apply_overrides(self.base, (row.settings or {}) if row else {}, version + 1)
            self._cached = (version, snapshot)
        return snapshot

    def current(self) -> MeritRules:
        version = (
            db.session.query(RulesOverride.version)
            .filter(RulesOverride.id == SINGLETON_ID)
            .scalar()
        )
        cached = self._cached
        if cached and cached[0] == (version or 0):
            return cached[1]
        return self._snapshot(db.session.get(RulesOverride, SINGLETON_ID))

    def update(self, change: Callable[[Dict], None]) -> MeritRules:
        """
        Apply `change` to a copy of the stored overrides, validate the
        resulting snapshot and persist it in one transaction.

        Raises:
            ValueError / TypeError: the edit is invalid (nothing is written)
        """
        try:
            row = (
                RulesOverride.query
                .filter_by(id=SINGLETON_ID)
                .with_for_update()
                .first()
            )
            if row is None:
                row = RulesOverride(id=SINGLETON_ID, version=0, settings={})
                db.session.add(row)
                db.session.flush()

            overrides = copy.deepcopy(row.settings or {})
            change(overrides)
            apply_overrides(self.base, overrides, row.version + 2)

            row.settings = overrides
            row.version += 1
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        return self._snapshot(row)


def init_rules(app) -> RulesRegistry:
    registry = RulesRegistry(MeritRules.from_config(app.config))
    app.extensions['merit_rules'] = registry
    return registry


def get_registry() -> RulesRegistry:
    return current_app.extensions['merit_rules']


def get_rules() -> MeritRules:
    """Current rules snapshot for the running app."""
    return get_registry().current()
