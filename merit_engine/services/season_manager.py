"""
Season Manager

Owns the season lifecycle (upcoming -> active -> closed) and the
authoritative "active season" lookup used by the award path.

Exactly one season must be active for awards to flow. Zero or several
active seasons is a configuration error and is raised, never defaulted.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.enums import SEASON_TRANSITIONS, SeasonStatus
from ..models.season import Season
from ..rules import MeritRules
from ..utils.clock import utc_now
from ..utils.exceptions import (
    InvalidStatusTransitionError,
    MultipleActiveSeasonsError,
    NoActiveSeasonError,
    SeasonNotFoundError,
    ValidationError,
)
from ..utils.logging_config import get_alert_logger


class SeasonManager:
    """Service for season administration and lookup."""

    def __init__(self, rules: MeritRules):
        self.rules = rules

    # ==================== Lookup ====================

    def get_active_season(self) -> Season:
        """
        The single active season.

        Raises:
            NoActiveSeasonError: nothing is active
            MultipleActiveSeasonsError: more than one season is active
        """
        active = (
            Season.query
            .filter_by(status=SeasonStatus.ACTIVE.value)
            .order_by(Season.id)
            .limit(2)
            .all()
        )
        if not active:
            get_alert_logger().error('Active season lookup failed: no active season')
            raise NoActiveSeasonError()
        if len(active) > 1:
            ids = [s.id for s in Season.query.filter_by(status=SeasonStatus.ACTIVE.value).all()]
            get_alert_logger().critical(f'Active season lookup failed: multiple active seasons {ids}')
            raise MultipleActiveSeasonsError(ids)
        return active[0]

    def get_season(self, season_id: int) -> Season:
        season = db.session.get(Season, season_id)
        if not season:
            raise SeasonNotFoundError(season_id)
        return season

    def list_seasons(self, status: str = None) -> List[Season]:
        query = Season.query
        if status:
            query = query.filter_by(status=SeasonStatus(status).value)
        return query.order_by(Season.start_date, Season.id).all()

    def next_upcoming_season(self) -> Optional[Season]:
        return (
            Season.query
            .filter_by(status=SeasonStatus.UPCOMING.value)
            .order_by(Season.start_date, Season.id)
            .first()
        )

    # ==================== Administration ====================

    def create_season(
        self,
        name: str,
        start_date: date,
        end_date: date,
        reset_points: bool = True,
        maintain_leagues: bool = True
    ) -> Season:
        """Create a new upcoming season."""
        if not isinstance(name, str) or not name.strip():
            raise ValidationError('Season name is required', 'name')
        if end_date < start_date:
            raise ValidationError('end_date must not be before start_date', 'end_date')

        season = Season(
            name=name.strip(),
            status=SeasonStatus.UPCOMING.value,
            start_date=start_date,
            end_date=end_date,
            reset_points=reset_points,
            maintain_leagues=maintain_leagues,
        )
        db.session.add(season)
        db.session.commit()

        current_app.logger.info(f'Season created: {season.id} {season.name} ({start_date} - {end_date})')
        return season

    def activate_season(self, season_id: int, commit: bool = True) -> Season:
        """upcoming -> active. Refused while another season is active."""
        season = self.get_season(season_id)
        self._check_transition(season, SeasonStatus.ACTIVE)

        other = Season.query.filter(
            Season.status == SeasonStatus.ACTIVE.value,
            Season.id != season.id,
        ).first()
        if other:
            raise InvalidStatusTransitionError(
                f'season (season {other.id} is still active)',
                season.status,
                SeasonStatus.ACTIVE.value,
            )

        season.status = SeasonStatus.ACTIVE.value
        season.activated_at = utc_now()

        try:
            db.session.flush()
        except IntegrityError:
            # The partial unique index caught a concurrent activation
            db.session.rollback()
            raise InvalidStatusTransitionError(
                'season (another season was activated concurrently)',
                SeasonStatus.UPCOMING.value,
                SeasonStatus.ACTIVE.value,
            )

        if commit:
            db.session.commit()
            current_app.logger.info(f'Season activated: {season.id} {season.name}')
        return season

    def close_season(self, season_id: int, commit: bool = True) -> Season:
        """active -> closed."""
        season = self.get_season(season_id)
        self._check_transition(season, SeasonStatus.CLOSED)

        season.status = SeasonStatus.CLOSED.value
        season.closed_at = utc_now()
        db.session.flush()

        if commit:
            db.session.commit()
            current_app.logger.info(f'Season closed: {season.id} {season.name}')
        return season

    def rollover(self, next_season_id: int = None) -> Dict[str, Any]:
        """
        Season boundary: run league assignment on the active season, close
        it and activate the next one, as one short transaction.

        The next season's memberships are created lazily by the award path,
        which carries the boundary outcome (`next_league`) and, when the
        closed season has reset_points=False, its point totals.
        """
        from .league_assignment import LeagueAssignmentEngine

        current = self.get_active_season()
        upcoming = self.get_season(next_season_id) if next_season_id else self.next_upcoming_season()
        if not upcoming:
            raise ValidationError('No upcoming season to activate', 'next_season_id')
        if upcoming.status != SeasonStatus.UPCOMING.value:
            raise InvalidStatusTransitionError('season', upcoming.status, SeasonStatus.ACTIVE.value)

        try:
            report = LeagueAssignmentEngine(self.rules).assign(current.id)
            self.close_season(current.id, commit=False)
            self.activate_season(upcoming.id, commit=False)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f'Season rollover: {current.id} closed, {upcoming.id} active, '
            f'{report.promoted} promoted / {report.demoted} demoted'
        )
        return {
            'closed_season': current.to_dict(),
            'active_season': upcoming.to_dict(),
            'league_assignment': report.to_dict(),
        }

    def due_for_rollover(self, today: date) -> bool:
        """True when the active season has ended and a successor can start."""
        try:
            current = self.get_active_season()
        except NoActiveSeasonError:
            return False
        upcoming = self.next_upcoming_season()
        return bool(current.end_date < today and upcoming and upcoming.start_date <= today)

    @staticmethod
    def _check_transition(season: Season, target: SeasonStatus) -> None:
        current = SeasonStatus(season.status)
        if SEASON_TRANSITIONS.get(current) != target:
            raise InvalidStatusTransitionError('season', current.value, target.value)
