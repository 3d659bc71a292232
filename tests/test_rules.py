"""
Tests for the merit rules snapshot.

Tests cover:
- Point resolution with shared fallback
- Cap lookup
- Snapshot immutability
- Stored admin overrides shared by every app instance
"""
import dataclasses
import json

import pytest

from merit_engine import create_app
from merit_engine.config import TestingConfig
from merit_engine.extensions import db
from merit_engine.models import RulesOverride
from merit_engine.models.enums import CapWindow, Role
from merit_engine.rules import (
    DEFAULT_POINTS,
    MeritRules,
    apply_overrides,
    get_registry,
    get_rules,
    remove_cap_override,
    set_cap_override,
    set_point_override,
)


class TestPointTable:
    """Tests for PointTable.resolve."""

    def test_role_specific_rule(self):
        assert DEFAULT_POINTS.resolve('operator', 'quote_submitted_fast') == 15
        assert DEFAULT_POINTS.resolve(Role.BROKER, 'deal_completed_on_time') == 40

    def test_shared_fallback(self):
        assert DEFAULT_POINTS.resolve('pilot', 'dispute_free_deal') == 20

    def test_unknown_event_resolves_to_zero(self):
        assert DEFAULT_POINTS.resolve('crew', 'made_up_event') == 0

    def test_role_rule_wins_over_shared(self):
        table = DEFAULT_POINTS.with_rule('broker', 'kyc_completed', 99)
        assert table.resolve('broker', 'kyc_completed') == 99
        assert table.resolve('operator', 'kyc_completed') == 10

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            DEFAULT_POINTS.resolve('captain', 'quote_accepted')


class TestMeritRules:
    """Tests for MeritRules snapshots."""

    def test_snapshot_is_frozen(self):
        rules = MeritRules()
        with pytest.raises(dataclasses.FrozenInstanceError):
            rules.ranking_bias_cap = 0.5

    def test_with_points_returns_new_snapshot(self):
        rules = MeritRules()
        edited = rules.with_points('operator', 'quote_submitted_fast', 30)

        assert rules.points.resolve('operator', 'quote_submitted_fast') == 15
        assert edited.points.resolve('operator', 'quote_submitted_fast') == 30
        assert edited.version == rules.version + 1

    def test_cap_for_prefers_role_specific(self):
        rules = MeritRules().with_cap('shared', 'quote_submitted_fast', 50, 'season')

        operator_cap = rules.cap_for('operator', 'quote_submitted_fast')
        broker_cap = rules.cap_for('broker', 'quote_submitted_fast')

        assert operator_cap.limit == 20
        assert operator_cap.window == CapWindow.ROLLING_7_DAYS
        assert broker_cap.limit == 50
        assert broker_cap.window == CapWindow.SEASON

    def test_without_cap(self):
        rules = MeritRules().without_cap('broker', 'rfq_posted_quality')
        assert rules.cap_for('broker', 'rfq_posted_quality') is None

    def test_rejects_bias_cap_out_of_range(self):
        with pytest.raises(ValueError):
            MeritRules(ranking_bias_cap=1.5)

    def test_rejects_decreasing_multipliers(self):
        with pytest.raises(ValueError):
            MeritRules(multiplier_tiers=((14, 1.1), (7, 1.5)))

    def test_from_config(self):
        rules = MeritRules.from_config({
            'MERIT_MIN_LEAGUE_SIZE': '4',
            'MERIT_RANKING_BIAS_CAP': '0.1',
            'MERIT_TIMEZONE': 'America/New_York',
        })
        assert rules.promotion.min_league_size == 4
        assert rules.ranking_bias_cap == 0.1
        assert rules.timezone == 'America/New_York'
        assert rules.initial_shelters == 0


class TestRulesRegistry:
    """Tests for the registry serving the stored snapshot."""

    def test_defaults_built_from_config(self, app):
        rules = get_rules()

        assert rules.version == 1
        assert rules.promotion.min_league_size == 10
        assert get_rules() is rules

    def test_update_persists_override(self, app):
        after = get_registry().update(lambda o: set_point_override(o, 'crew', 'community_helpful', 15))

        row = db.session.get(RulesOverride, 1)
        assert row.version == 1
        assert row.settings == {'points': {'crew': {'community_helpful': 15}}}
        assert after.version == 2
        assert get_rules().points.resolve('crew', 'community_helpful') == 15

    def test_failed_update_writes_nothing(self, app):
        before = get_rules()

        with pytest.raises(ValueError):
            get_registry().update(lambda o: set_point_override(o, 'crew', 'community_helpful', -1))

        assert db.session.get(RulesOverride, 1) is None
        assert get_rules() is before

    def test_removed_default_cap_stays_removed(self, app):
        get_registry().update(lambda o: remove_cap_override(o, 'broker', 'rfq_posted_quality'))
        get_registry().update(lambda o: set_point_override(o, 'broker', 'rfq_posted_quality', 6))

        rules = get_rules()
        assert rules.cap_for('broker', 'rfq_posted_quality') is None
        assert rules.points.resolve('broker', 'rfq_posted_quality') == 6
        assert rules.version == 3

    def test_cap_override_validates_window(self, app):
        with pytest.raises(ValueError):
            get_registry().update(lambda o: set_cap_override(o, 'broker', 'quote_accepted', 3, 'fortnight'))

    def test_apply_overrides_on_defaults(self):
        overrides = {
            'points': {'operator': {'quote_accepted': 40}},
            'caps': {'operator': {'quote_submitted_fast': {'limit': 5, 'window': 'calendar_day'}}},
        }

        rules = apply_overrides(MeritRules(), overrides, version=7)

        assert rules.version == 7
        assert rules.points.resolve('operator', 'quote_accepted') == 40
        assert rules.cap_for('operator', 'quote_submitted_fast').window == CapWindow.CALENDAR_DAY


@pytest.fixture
def shared_db_apps(tmp_path, monkeypatch):
    """Two app instances (worker processes) on one database file."""
    monkeypatch.setattr(TestingConfig, 'SQLALCHEMY_DATABASE_URI', f"sqlite:///{tmp_path / 'merit.db'}")
    first = create_app('testing')
    second = create_app('testing')
    with first.app_context():
        db.create_all()
    yield first, second
    with first.app_context():
        db.drop_all()


class TestRulesAcrossWorkers:
    """Admin edits reach every worker and survive restarts."""

    def test_edit_visible_to_other_worker(self, shared_db_apps, admin_headers):
        first, second = shared_db_apps
        with second.app_context():
            assert get_rules().points.resolve('operator', 'quote_accepted') == 25

        response = first.test_client().put(
            '/api/admin/rules/points',
            headers=admin_headers,
            data=json.dumps({'role': 'operator', 'event_type': 'quote_accepted', 'points': 99}),
        )
        assert response.status_code == 200

        with second.app_context():
            rules = get_rules()
            assert rules.points.resolve('operator', 'quote_accepted') == 99
            assert rules.version == 2

    def test_edit_survives_restart(self, shared_db_apps, admin_headers):
        first, _ = shared_db_apps
        first.test_client().delete(
            '/api/admin/rules/caps',
            headers=admin_headers,
            data=json.dumps({'role': 'operator', 'event_type': 'quote_submitted_fast'}),
        )

        restarted = create_app('testing')
        with restarted.app_context():
            assert get_rules().cap_for('operator', 'quote_submitted_fast') is None
