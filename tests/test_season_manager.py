"""
Tests for the Season Manager.

Tests cover:
- Season creation and validation
- Monotonic status transitions
- Single active season
- Rollover (league assignment + close + activate)
"""
from datetime import date

import pytest

from merit_engine.extensions import db
from merit_engine.models import LeagueChangeLog, LeagueMembership, Season
from merit_engine.models.enums import SeasonStatus
from merit_engine.utils.exceptions import (
    InvalidStatusTransitionError,
    NoActiveSeasonError,
    SeasonNotFoundError,
    ValidationError,
)


class TestCreateSeason:
    """Tests for SeasonManager.create_season."""

    def test_creates_upcoming(self, app, season_manager):
        season = season_manager.create_season('Q1', date(2026, 1, 1), date(2026, 3, 31))

        assert season.status == SeasonStatus.UPCOMING.value
        assert season.reset_points is True
        assert season.maintain_leagues is True

    def test_rejects_inverted_dates(self, app, season_manager):
        with pytest.raises(ValidationError):
            season_manager.create_season('Bad', date(2026, 3, 1), date(2026, 1, 1))

    def test_rejects_blank_name(self, app, season_manager):
        with pytest.raises(ValidationError):
            season_manager.create_season('  ', date(2026, 1, 1), date(2026, 3, 1))


class TestTransitions:
    """Tests for activate/close."""

    def test_activate_and_lookup(self, app, season_manager, active_season):
        assert season_manager.get_active_season().id == active_season.id
        assert active_season.activated_at is not None

    def test_cannot_activate_while_another_is_active(self, app, season_manager, active_season):
        second = season_manager.create_season('Q2', date(2026, 4, 1), date(2026, 6, 30))

        with pytest.raises(InvalidStatusTransitionError):
            season_manager.activate_season(second.id)

        assert db.session.get(Season, second.id).status == SeasonStatus.UPCOMING.value

    def test_close(self, app, season_manager, active_season):
        season = season_manager.close_season(active_season.id)

        assert season.status == SeasonStatus.CLOSED.value
        assert season.closed_at is not None
        with pytest.raises(NoActiveSeasonError):
            season_manager.get_active_season()

    def test_closed_season_cannot_reactivate(self, app, season_manager, active_season):
        season_manager.close_season(active_season.id)

        with pytest.raises(InvalidStatusTransitionError):
            season_manager.activate_season(active_season.id)

    def test_upcoming_cannot_close(self, app, season_manager):
        season = season_manager.create_season('Q2', date(2026, 4, 1), date(2026, 6, 30))

        with pytest.raises(InvalidStatusTransitionError):
            season_manager.close_season(season.id)

    def test_unknown_season(self, app, season_manager):
        with pytest.raises(SeasonNotFoundError):
            season_manager.activate_season(404)

    def test_list_by_status(self, app, season_manager, active_season):
        season_manager.create_season('Q2', date(2026, 4, 1), date(2026, 6, 30))

        assert [s.name for s in season_manager.list_seasons('upcoming')] == ['Q2']
        assert len(season_manager.list_seasons()) == 2


class TestRollover:
    """Tests for SeasonManager.rollover."""

    def test_rollover_runs_assignment_and_switches_season(self, app, season_manager, active_season, make_membership):
        for i in range(10):
            make_membership(f'op-{i:02d}', active_season.id, league='silver', points=100 - i)
        upcoming = season_manager.create_season('Q2', date(2026, 4, 1), date(2026, 6, 30))

        result = season_manager.rollover()

        assert result['closed_season']['id'] == active_season.id
        assert result['active_season']['id'] == upcoming.id
        assert result['league_assignment']['promoted'] == 2
        assert result['league_assignment']['demoted'] == 2
        assert season_manager.get_active_season().id == upcoming.id
        assert LeagueChangeLog.query.filter_by(season_id=active_season.id).count() == 10

        top = LeagueMembership.query.filter_by(user_id='op-00', season_id=active_season.id).one()
        bottom = LeagueMembership.query.filter_by(user_id='op-09', season_id=active_season.id).one()
        assert top.next_league == 'gold'
        assert bottom.next_league == 'bronze'

    def test_rollover_without_upcoming_changes_nothing(self, app, season_manager, active_season):
        with pytest.raises(ValidationError):
            season_manager.rollover()

        assert season_manager.get_active_season().id == active_season.id

    def test_due_for_rollover(self, app, season_manager, active_season):
        season_manager.create_season('Q2', date(2026, 4, 1), date(2026, 6, 30))

        assert season_manager.due_for_rollover(date(2026, 3, 31)) is False
        assert season_manager.due_for_rollover(date(2026, 4, 1)) is True

    def test_not_due_without_active_season(self, app, season_manager):
        assert season_manager.due_for_rollover(date(2026, 4, 1)) is False
