"""
Shared pytest fixtures for merit engine tests.
"""
from datetime import date, datetime

import pytest

from merit_engine import create_app
from merit_engine.extensions import db
from merit_engine.models import ComplianceStatus, LeagueMembership, UserStreak
from merit_engine.rules import get_rules
from merit_engine.services.merit_ledger import MeritLedger
from merit_engine.services.season_manager import SeasonManager

# Midday UTC, well inside the active season fixture
NOW = datetime(2026, 3, 10, 12, 0, 0)
TODAY = NOW.date()


@pytest.fixture
def app():
    """Create test application with a fresh in-memory database."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def producer_headers():
    return {'X-API-Key': 'test-producer-key', 'Content-Type': 'application/json'}


@pytest.fixture
def admin_headers():
    return {'X-API-Key': 'test-admin-key', 'Content-Type': 'application/json'}


@pytest.fixture
def rules(app):
    return get_rules()


@pytest.fixture
def season_manager(rules):
    return SeasonManager(rules)


@pytest.fixture
def active_season(season_manager):
    """An active season covering NOW."""
    season = season_manager.create_season(
        'Season 1',
        date(2026, 1, 1),
        date(2026, 3, 31),
    )
    season_manager.activate_season(season.id)
    return season


@pytest.fixture
def ledger(rules):
    return MeritLedger(rules)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def make_streak(app):
    """Factory: insert a streak row directly."""
    def _make(user_id, current, last_scored, shelters=0, best=None):
        streak = UserStreak(
            user_id=user_id,
            current_streak_days=current,
            best_streak_days=best if best is not None else current,
            shelters_available=shelters,
            last_scored_date=last_scored,
        )
        db.session.add(streak)
        db.session.commit()
        return streak
    return _make


@pytest.fixture
def make_membership(app):
    """Factory: insert a league membership directly."""
    def _make(user_id, season_id, role='operator', league='bronze', points=0, created_at=None):
        membership = LeagueMembership(
            user_id=user_id,
            season_id=season_id,
            role=role,
            league=league,
            points=points,
            created_at=created_at or NOW,
        )
        db.session.add(membership)
        db.session.commit()
        return membership
    return _make


@pytest.fixture
def make_compliant(app):
    """Factory: insert a compliance row passing every default gate."""
    def _make(user_id, **overrides):
        flags = {
            'kyc_completed': True,
            'compliance_clean': True,
            'credentials_current': True,
            'deposit_on_file': False,
        }
        flags.update(overrides)
        status = ComplianceStatus(user_id=user_id, **flags)
        db.session.add(status)
        db.session.commit()
        return status
    return _make
