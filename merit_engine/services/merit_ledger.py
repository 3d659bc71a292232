"""
Merit Ledger (Event Ledger)

The only write path for merit points. One award is one transaction:

1. Duplicate source_key -> skipped "duplicate" (fast path; the UNIQUE
   constraint on merit_events.source_key is the real guarantee)
2. Resolve base points (override, role rule, shared rule, 0)
   -> 0 without an override is skipped "no_points"
3. Resolve the active season (none/multiple is a ConfigurationError)
4. Cap check -> skipped "cap"
5. Lock the user's streak row FOR UPDATE, derive the multiplier from the
   streak as it stands before this award
6. Insert MeritEvent, increment LeagueMembership.points, advance the streak
7. Commit

A crash anywhere before commit leaves no event and no points.

Usage:
    ledger = MeritLedger(get_rules())
    result = ledger.award('user-1', 'operator', 'quote_submitted_fast',
                          source_key='quote:991|rule:quote_submitted_fast')
    if result.skipped:
        ...
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ..extensions import db
from ..models.enums import League, Role, SeasonStatus, SkipReason, parse_role
from ..models.league import LeagueMembership
from ..models.merit import MeritEvent
from ..models.season import Season
from ..rules import MeritRules
from ..utils.clock import as_naive_utc, utc_now
from ..utils.exceptions import StorageError, ValidationError
from .cap_enforcer import CapEnforcer
from .multiplier import apply_multiplier, multiplier
from .season_manager import SeasonManager
from .streak_tracker import StreakTracker

DEFAULT_MAX_RETRIES = 3


@dataclass
class AwardResult:
    """Outcome of one award. Skips are ordinary results, not errors."""
    ok: bool
    awarded_points: int = 0
    multiplier: float = 1.0
    streak_days: int = 0
    event_id: Optional[int] = None
    skipped: Optional[SkipReason] = None

    @classmethod
    def skip(cls, reason: SkipReason) -> 'AwardResult':
        return cls(ok=False, skipped=reason)

    def to_dict(self) -> Dict[str, Any]:
        if self.skipped:
            return {'ok': False, 'skipped': self.skipped.value}
        return {
            'ok': True,
            'awarded_points': self.awarded_points,
            'multiplier': self.multiplier,
            'streak_days': self.streak_days,
            'event_id': self.event_id,
        }


class MeritLedger:
    """Service for awarding merit points and reading the ledger."""

    def __init__(
        self,
        rules: MeritRules,
        season_manager: SeasonManager = None,
        cap_enforcer: CapEnforcer = None,
        streak_tracker: StreakTracker = None,
        max_retries: int = DEFAULT_MAX_RETRIES
    ):
        self.rules = rules
        self.season_manager = season_manager or SeasonManager(rules)
        self.cap_enforcer = cap_enforcer or CapEnforcer(rules)
        self.streak_tracker = streak_tracker or StreakTracker(rules)
        self.max_retries = max(1, max_retries)

    # ==================== Awarding ====================

    def resolve_base_points(self, role, event_type: str, base_points: int = None) -> int:
        """Explicit override, else the point table (role rule, shared rule, 0)."""
        if base_points is not None:
            if isinstance(base_points, bool) or not isinstance(base_points, int) or base_points <= 0:
                raise ValidationError('base_points override must be a positive integer', 'base_points')
            return base_points
        return self.rules.points.resolve(role, event_type)

    def award(
        self,
        user_id: str,
        role,
        event_type: str,
        source_key: str,
        base_points: int = None,
        metadata: Dict[str, Any] = None,
        now: datetime = None
    ) -> AwardResult:
        """
        Award merit points for one domain event, exactly once per source_key.

        Args:
            user_id: Recipient
            role: broker/operator/pilot/crew/shared
            event_type: Point table key, e.g. 'quote_accepted'
            source_key: Idempotency token
            base_points: Optional explicit point value (admin/quest bonuses)
            metadata: Free-form context stored with the event
            now: Award time (defaults to current UTC)

        Returns:
            AwardResult (success, or skipped duplicate/cap/no_points)

        Raises:
            ValidationError: malformed input
            ConfigurationError: no active season or several
            StorageError: transient database failure; safe to retry with
                the same source_key
        """
        if not user_id or not str(user_id).strip():
            raise ValidationError('user_id is required', 'user_id')
        if not event_type or not str(event_type).strip():
            raise ValidationError('event_type is required', 'event_type')
        if not source_key or not str(source_key).strip():
            raise ValidationError('source_key is required', 'source_key')
        try:
            role = parse_role(role)
        except ValueError:
            raise ValidationError(f'Unknown role: {role}', 'role')

        now = as_naive_utc(now) if now else utc_now()
        attempt = 0

        while True:
            attempt += 1
            try:
                return self._award_once(
                    user_id, role, event_type, source_key, base_points, metadata or {}, now
                )
            except IntegrityError as e:
                db.session.rollback()
                if self._event_exists(source_key):
                    current_app.logger.debug(f"Award skipped (duplicate, concurrent): {source_key}")
                    return AwardResult.skip(SkipReason.DUPLICATE)
                if attempt >= self.max_retries:
                    current_app.logger.error(
                        f"Award failed after {attempt} attempts for {source_key}: {e}"
                    )
                    raise StorageError(f'Could not record award for {source_key}', e)
                current_app.logger.warning(
                    f"Award retry {attempt}/{self.max_retries} for {source_key} after row conflict"
                )
            except (OperationalError, InterfaceError, PoolTimeoutError) as e:
                db.session.rollback()
                current_app.logger.error(f"Storage failure awarding {source_key}: {e}")
                raise StorageError(f'Storage unavailable while awarding {source_key}', e)
            except Exception:
                db.session.rollback()
                raise

    def _award_once(
        self,
        user_id: str,
        role: Role,
        event_type: str,
        source_key: str,
        base_points: Optional[int],
        metadata: Dict[str, Any],
        now: datetime
    ) -> AwardResult:
        if self._event_exists(source_key):
            current_app.logger.debug(f"Award skipped (duplicate): {source_key}")
            return AwardResult.skip(SkipReason.DUPLICATE)

        base = self.resolve_base_points(role, event_type, base_points)
        if base == 0:
            current_app.logger.debug(f"Award skipped (no points): {role.value}/{event_type}")
            return AwardResult.skip(SkipReason.NO_POINTS)

        season = self.season_manager.get_active_season()

        if not self.cap_enforcer.is_within_cap(user_id, role, event_type, now=now, season_id=season.id):
            current_app.logger.debug(f"Award skipped (cap): user {user_id} {event_type}")
            return AwardResult.skip(SkipReason.CAP)

        today = self.streak_tracker.today(now)
        streak = self.streak_tracker.lock_streak(user_id)
        factor = multiplier(
            self.streak_tracker.effective_streak(streak, today),
            self.rules.multiplier_tiers
        )
        awarded = apply_multiplier(base, factor)

        event = MeritEvent(
            user_id=user_id,
            role=role.value,
            event_type=event_type,
            base_points=base,
            multiplier=factor,
            awarded_points=awarded,
            season_id=season.id,
            source_key=source_key,
            event_metadata=metadata,
            created_at=now,
        )
        db.session.add(event)
        db.session.flush()

        self._increment_membership(user_id, role, season, awarded, now)
        self.streak_tracker.register_activity(streak, today)

        db.session.commit()

        current_app.logger.info(
            f"Merit awarded: user {user_id} {role.value}/{event_type} "
            f"{base} x {factor} = {awarded} (streak {streak.current_streak_days}, season {season.id})"
        )
        return AwardResult(
            ok=True,
            awarded_points=awarded,
            multiplier=factor,
            streak_days=streak.current_streak_days,
            event_id=event.id,
        )

    def _event_exists(self, source_key: str) -> bool:
        return db.session.query(
            MeritEvent.query.filter_by(source_key=source_key).exists()
        ).scalar()

    # ==================== Memberships ====================

    def _increment_membership(
        self,
        user_id: str,
        role: Role,
        season: Season,
        awarded: int,
        now: datetime
    ) -> None:
        """points = points + awarded, creating the membership on first award."""
        updated = (
            LeagueMembership.query
            .filter_by(user_id=user_id, season_id=season.id)
            .update(
                {'points': LeagueMembership.points + awarded, 'updated_at': now},
                synchronize_session=False
            )
        )
        if updated:
            if role != Role.SHARED:
                # A membership first opened by a role-agnostic bonus takes the concrete role
                (
                    LeagueMembership.query
                    .filter_by(user_id=user_id, season_id=season.id, role=Role.SHARED.value)
                    .update({'role': role.value}, synchronize_session=False)
                )
            return

        membership = self._new_membership(user_id, role, season, now)
        membership.points += awarded
        db.session.add(membership)
        db.session.flush()

    def _new_membership(self, user_id: str, role: Role, season: Season, now: datetime) -> LeagueMembership:
        """
        First membership of a user in a season.

        Tier and points come from the user's latest closed season: the
        boundary outcome when that season maintained leagues (else bronze),
        and its point total when it did not reset points (else 0).
        """
        previous = (
            LeagueMembership.query
            .join(Season, LeagueMembership.season_id == Season.id)
            .filter(
                LeagueMembership.user_id == user_id,
                Season.status == SeasonStatus.CLOSED.value,
                Season.id != season.id,
            )
            .order_by(Season.end_date.desc(), Season.id.desc())
            .first()
        )

        league = League.BRONZE.value
        points = 0
        membership_role = role.value
        if previous:
            if previous.season.maintain_leagues:
                league = previous.next_league or previous.league
            if not previous.season.reset_points:
                points = previous.points
            if role == Role.SHARED:
                membership_role = previous.role

        return LeagueMembership(
            user_id=user_id,
            season_id=season.id,
            role=membership_role,
            league=league,
            points=points,
            created_at=now,
            updated_at=now,
        )

    # ==================== Reads ====================

    def get_user_membership(self, user_id: str, season_id: int = None) -> Optional[LeagueMembership]:
        if season_id is None:
            season_id = self.season_manager.get_active_season().id
        return LeagueMembership.query.filter_by(user_id=user_id, season_id=season_id).first()

    def get_user_season_points(self, user_id: str, season_id: int = None) -> Dict[str, Any]:
        """Point total and tier in a season (the active one by default)."""
        if season_id is None:
            season_id = self.season_manager.get_active_season().id
        membership = self.get_user_membership(user_id, season_id)
        if not membership:
            return {
                'user_id': user_id,
                'season_id': season_id,
                'role': None,
                'league': None,
                'points': 0,
                'next_league': None,
            }
        return membership.to_dict()

    def get_user_merit_events(self, user_id: str, limit: int = 10) -> List[MeritEvent]:
        """Most recent events first."""
        return (
            MeritEvent.query
            .filter_by(user_id=user_id)
            .order_by(MeritEvent.created_at.desc(), MeritEvent.id.desc())
            .limit(limit)
            .all()
        )
