"""
Tests for the Cap Enforcer.

Tests cover:
- Rolling 7-day window
- Calendar-day window (local midnight)
- Season window
- Uncapped events
"""
from datetime import timedelta

from merit_engine.extensions import db
from merit_engine.models import MeritEvent
from merit_engine.models.enums import CapWindow
from merit_engine.rules import MeritRules
from merit_engine.services.cap_enforcer import CapEnforcer


def _event(user_id, event_type, season_id, created_at, key):
    db.session.add(MeritEvent(
        user_id=user_id,
        role='broker',
        event_type=event_type,
        base_points=5,
        multiplier=1.0,
        awarded_points=5,
        season_id=season_id,
        source_key=key,
        created_at=created_at,
    ))
    db.session.commit()


class TestCapWindows:
    """Tests for CapEnforcer.count_in_window."""

    def test_rolling_week_excludes_older_events(self, app, rules, active_season, now):
        _event('u1', 'rfq_posted_quality', active_season.id, now - timedelta(days=8), 'k1')
        _event('u1', 'rfq_posted_quality', active_season.id, now - timedelta(days=6), 'k2')
        _event('u1', 'rfq_posted_quality', active_season.id, now - timedelta(hours=1), 'k3')

        count = CapEnforcer(rules).count_in_window(
            'u1', 'rfq_posted_quality', CapWindow.ROLLING_7_DAYS, now=now
        )
        assert count == 2

    def test_rolling_week_lower_bound_exclusive(self, app, rules, active_season, now):
        _event('u1', 'rfq_posted_quality', active_season.id, now - timedelta(days=7), 'k1')
        _event('u1', 'rfq_posted_quality', active_season.id, now - timedelta(days=7) + timedelta(seconds=1), 'k2')

        enforcer = CapEnforcer(rules)
        assert enforcer.window_start(CapWindow.ROLLING_7_DAYS, now) == now - timedelta(days=7)
        assert enforcer.count_in_window('u1', 'rfq_posted_quality', CapWindow.ROLLING_7_DAYS, now=now) == 1

    def test_calendar_day_resets_at_local_midnight(self, app, rules, active_season, now):
        midnight = now.replace(hour=0, minute=0)
        _event('u1', 'saved_search_hit_response', active_season.id, midnight - timedelta(minutes=1), 'k1')
        _event('u1', 'saved_search_hit_response', active_season.id, midnight, 'k2')

        count = CapEnforcer(rules).count_in_window(
            'u1', 'saved_search_hit_response', CapWindow.CALENDAR_DAY, now=now
        )
        assert count == 1

    def test_calendar_day_uses_configured_timezone(self, app, rules, active_season, now):
        # 03:00 UTC on Mar 10 is still Mar 9 in New York
        ny_rules = MeritRules(timezone='America/New_York')
        late_evening_ny = now.replace(hour=3)
        _event('u1', 'saved_search_hit_response', active_season.id, late_evening_ny, 'k1')

        count = CapEnforcer(ny_rules).count_in_window(
            'u1', 'saved_search_hit_response', CapWindow.CALENDAR_DAY, now=now
        )
        assert count == 0

    def test_season_window(self, app, rules, active_season, now):
        _event('u1', 'community_helpful', active_season.id, now - timedelta(days=40), 'k1')

        count = CapEnforcer(rules).count_in_window(
            'u1', 'community_helpful', CapWindow.SEASON, now=now, season_id=active_season.id
        )
        assert count == 1

    def test_other_users_not_counted(self, app, rules, active_season, now):
        _event('u2', 'rfq_posted_quality', active_season.id, now, 'k1')

        count = CapEnforcer(rules).count_in_window(
            'u1', 'rfq_posted_quality', CapWindow.ROLLING_7_DAYS, now=now
        )
        assert count == 0


class TestIsWithinCap:
    """Tests for CapEnforcer.is_within_cap."""

    def test_admits_until_limit(self, app, rules, active_season, now):
        enforcer = CapEnforcer(rules.with_cap('broker', 'rfq_posted_quality', 2, 'rolling_7_days'))

        assert enforcer.is_within_cap('u1', 'broker', 'rfq_posted_quality', now=now)
        _event('u1', 'rfq_posted_quality', active_season.id, now, 'k1')
        assert enforcer.is_within_cap('u1', 'broker', 'rfq_posted_quality', now=now)
        _event('u1', 'rfq_posted_quality', active_season.id, now, 'k2')
        assert not enforcer.is_within_cap('u1', 'broker', 'rfq_posted_quality', now=now)

    def test_uncapped_event_always_admitted(self, app, rules, active_season, now):
        for i in range(30):
            _event('u1', 'quote_accepted', active_season.id, now, f'k{i}')

        assert CapEnforcer(rules).is_within_cap('u1', 'broker', 'quote_accepted', now=now)

    def test_shared_cap_applies_to_every_role(self, app, rules, active_season, now):
        enforcer = CapEnforcer(rules)
        _event('u1', 'community_helpful', active_season.id, now, 'k1')
        _event('u1', 'community_helpful', active_season.id, now, 'k2')

        check = enforcer.check('u1', 'pilot', 'community_helpful', now=now, season_id=active_season.id)
        assert check.count == 2
        assert not check.allowed
