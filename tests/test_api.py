"""
Tests for the HTTP API.

Tests cover:
- API key authentication (producer and admin)
- POST /api/merit/award outcomes and error mapping
- Read views (streak, points, events)
- Admin season, league and rule endpoints
- Leaderboard and quest endpoints
"""
import json
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from merit_engine.extensions import db
from merit_engine.models import LeagueChangeLog, Season
from merit_engine.rules import get_rules


def _award(client, headers, **overrides):
    body = {
        'user_id': 'op-1',
        'role': 'operator',
        'event_type': 'quote_accepted',
        'source_key': 'deal:1|accepted',
    }
    body.update(overrides)
    return client.post('/api/merit/award', headers=headers, data=json.dumps(body))


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'healthy'


class TestAuth:
    """API key checks."""

    def test_missing_key(self, client, active_season):
        response = _award(client, {'Content-Type': 'application/json'})
        assert response.status_code == 401

    def test_invalid_key(self, client, active_season):
        response = _award(client, {'X-API-Key': 'nope', 'Content-Type': 'application/json'})
        assert response.status_code == 403

    def test_bearer_token_accepted(self, client, active_season):
        headers = {'Authorization': 'Bearer test-producer-key', 'Content-Type': 'application/json'}
        assert _award(client, headers).status_code == 200

    def test_admin_key_can_produce(self, client, admin_headers, active_season):
        assert _award(client, admin_headers).status_code == 200

    def test_producer_key_cannot_admin(self, client, producer_headers):
        response = client.get('/api/admin/seasons', headers=producer_headers)
        assert response.status_code == 403


class TestAwardEndpoint:
    """Tests for POST /api/merit/award."""

    def test_award_ok(self, client, producer_headers, active_season):
        response = _award(client, producer_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['ok'] is True
        assert data['awarded_points'] == 25
        assert data['multiplier'] == 1.0
        assert data['event_id'] is not None

    def test_duplicate_is_a_200_skip(self, client, producer_headers, active_season):
        _award(client, producer_headers)
        response = _award(client, producer_headers)

        assert response.status_code == 200
        assert response.get_json() == {'ok': False, 'skipped': 'duplicate'}

    def test_unknown_event_is_no_points(self, client, producer_headers, active_season):
        response = _award(client, producer_headers, event_type='unheard_of')
        assert response.get_json() == {'ok': False, 'skipped': 'no_points'}

    def test_missing_field(self, client, producer_headers, active_season):
        response = client.post(
            '/api/merit/award',
            headers=producer_headers,
            data=json.dumps({'user_id': 'op-1', 'role': 'operator'}),
        )
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'MISSING_FIELD'

    def test_invalid_role(self, client, producer_headers, active_season):
        response = _award(client, producer_headers, role='captain')
        assert response.status_code == 400

    def test_metadata_must_be_object(self, client, producer_headers, active_season):
        response = _award(client, producer_headers, metadata=['x'])
        assert response.status_code == 400

    def test_no_active_season_is_configuration_error(self, client, producer_headers):
        """A missing active season is an operator problem, not a skip."""
        response = _award(client, producer_headers)
        assert response.status_code == 500

    def test_storage_failure_is_503(self, client, producer_headers, active_season):
        failure = OperationalError('SELECT 1', {}, Exception('connection refused'))
        with patch(
            'merit_engine.services.season_manager.SeasonManager.get_active_season',
            side_effect=failure,
        ):
            response = _award(client, producer_headers)

        assert response.status_code == 503


class TestReadViews:
    """Tests for the per-user read endpoints."""

    def test_streak_defaults(self, client, producer_headers):
        response = client.get('/api/merit/users/nobody/streak', headers=producer_headers)

        assert response.status_code == 200
        assert response.get_json()['streak']['current_streak_days'] == 0

    def test_points_and_events(self, client, producer_headers, active_season):
        _award(client, producer_headers)

        points = client.get('/api/merit/users/op-1/points', headers=producer_headers).get_json()
        events = client.get('/api/merit/users/op-1/events', headers=producer_headers).get_json()

        assert points['membership']['points'] == 25
        assert points['membership']['league'] == 'bronze'
        assert len(events['events']) == 1

    def test_shelter_grant(self, client, producer_headers):
        response = client.post(
            '/api/merit/shelters',
            headers=producer_headers,
            data=json.dumps({'user_id': 'op-1', 'count': 2}),
        )
        assert response.status_code == 200
        assert response.get_json()['streak']['shelters_available'] == 2


class TestAdminSeasons:
    """Tests for /api/admin/seasons."""

    def test_create_and_activate(self, client, admin_headers):
        created = client.post(
            '/api/admin/seasons',
            headers=admin_headers,
            data=json.dumps({'name': 'Q1', 'start_date': '2026-01-01', 'end_date': '2026-03-31'}),
        )
        assert created.status_code == 201
        season_id = created.get_json()['season']['id']

        activated = client.post(f'/api/admin/seasons/{season_id}/activate', headers=admin_headers)
        assert activated.status_code == 200
        assert activated.get_json()['season']['status'] == 'active'

    def test_bad_dates(self, client, admin_headers):
        response = client.post(
            '/api/admin/seasons',
            headers=admin_headers,
            data=json.dumps({'name': 'Q1', 'start_date': 'soon', 'end_date': '2026-03-31'}),
        )
        assert response.status_code == 400

    @pytest.mark.parametrize('changes', [
        {'reset_points': 'false'},
        {'maintain_leagues': 0},
        {'name': 123},
    ])
    def test_field_types_checked(self, client, admin_headers, changes):
        body = {'name': 'Q1', 'start_date': '2026-01-01', 'end_date': '2026-03-31', **changes}
        response = client.post('/api/admin/seasons', headers=admin_headers, data=json.dumps(body))
        assert response.status_code == 400
        assert Season.query.count() == 0

    def test_flags_stored_as_given(self, client, admin_headers):
        body = {
            'name': 'Q1', 'start_date': '2026-01-01', 'end_date': '2026-03-31',
            'reset_points': False, 'maintain_leagues': False,
        }
        response = client.post('/api/admin/seasons', headers=admin_headers, data=json.dumps(body))
        season = response.get_json()['season']
        assert season['reset_points'] is False
        assert season['maintain_leagues'] is False

    def test_second_activation_conflicts(self, client, admin_headers, season_manager, active_season):
        other = season_manager.create_season('Q2', active_season.end_date, active_season.end_date)

        response = client.post(f'/api/admin/seasons/{other.id}/activate', headers=admin_headers)

        assert response.status_code == 409

    def test_unknown_season(self, client, admin_headers):
        response = client.post('/api/admin/seasons/999/close', headers=admin_headers)
        assert response.status_code == 404

    def test_rollover(self, client, admin_headers, season_manager, active_season, make_membership):
        for i in range(10):
            make_membership(f'op-{i}', active_season.id, points=100 - i)
        upcoming = season_manager.create_season('Q2', active_season.end_date, active_season.end_date)

        response = client.post('/api/admin/seasons/rollover', headers=admin_headers, data=json.dumps({}))

        assert response.status_code == 200
        data = response.get_json()
        assert data['active_season']['id'] == upcoming.id
        assert data['league_assignment']['promoted'] == 2
        assert db.session.get(Season, active_season.id).status == 'closed'


class TestAdminLeagues:
    """Tests for league assignment endpoints."""

    def test_run_and_audit(self, client, admin_headers, active_season, make_membership):
        for i in range(10):
            make_membership(f'op-{i}', active_season.id, league='silver', points=100 - i)

        run = client.post(
            f'/api/admin/seasons/{active_season.id}/league-assignment',
            headers=admin_headers,
            data=json.dumps({}),
        )
        changes = client.get(
            f'/api/admin/seasons/{active_season.id}/league-changes?user_id=op-0',
            headers=admin_headers,
        )

        assert run.status_code == 200
        assert run.get_json()['report']['promoted'] == 2
        assert LeagueChangeLog.query.count() == 10
        assert changes.get_json()['changes'][0]['to_league'] == 'gold'


class TestAdminRules:
    """Tests for runtime rule edits."""

    def test_set_points(self, client, admin_headers):
        version = get_rules().version

        response = client.put(
            '/api/admin/rules/points',
            headers=admin_headers,
            data=json.dumps({'role': 'operator', 'event_type': 'quote_accepted', 'points': 30}),
        )

        assert response.status_code == 200
        assert get_rules().version == version + 1
        assert get_rules().points.resolve('operator', 'quote_accepted') == 30

    def test_negative_points_rejected(self, client, admin_headers):
        response = client.put(
            '/api/admin/rules/points',
            headers=admin_headers,
            data=json.dumps({'role': 'operator', 'event_type': 'quote_accepted', 'points': -1}),
        )
        assert response.status_code == 400

    def test_set_and_remove_cap(self, client, admin_headers):
        body = {'role': 'operator', 'event_type': 'quote_accepted', 'limit': 1, 'window': 'calendar_day'}
        assert client.put('/api/admin/rules/caps', headers=admin_headers, data=json.dumps(body)).status_code == 200
        assert get_rules().cap_for('operator', 'quote_accepted').limit == 1

        body = {'role': 'operator', 'event_type': 'quote_accepted'}
        assert client.delete('/api/admin/rules/caps', headers=admin_headers, data=json.dumps(body)).status_code == 200
        assert get_rules().cap_for('operator', 'quote_accepted') is None

    def test_unknown_window(self, client, admin_headers):
        body = {'role': 'operator', 'event_type': 'quote_accepted', 'limit': 1, 'window': 'fortnight'}
        response = client.put('/api/admin/rules/caps', headers=admin_headers, data=json.dumps(body))
        assert response.status_code == 400

    def test_compliance_upsert(self, client, admin_headers):
        response = client.put(
            '/api/admin/compliance/op-1',
            headers=admin_headers,
            data=json.dumps({'kyc_completed': True}),
        )
        assert response.status_code == 200
        assert response.get_json()['compliance']['kyc_completed'] is True

        bad = client.put(
            '/api/admin/compliance/op-1',
            headers=admin_headers,
            data=json.dumps({'is_vip': True}),
        )
        assert bad.status_code == 400

    @pytest.mark.parametrize('body', [[1], 'kyc', {'kyc_completed': 'false'}, {'deposit_on_file': 1}])
    def test_compliance_body_checked(self, client, admin_headers, body):
        response = client.put('/api/admin/compliance/op-1', headers=admin_headers, data=json.dumps(body))
        assert response.status_code == 400


class TestLeaderboardEndpoint:
    """Tests for /api/leaderboard."""

    def test_active_leaderboard(self, client, producer_headers, active_season, make_membership, make_compliant):
        make_membership('a', active_season.id, points=10)
        make_membership('b', active_season.id, points=20)
        make_compliant('a')

        response = client.get('/api/leaderboard/active', headers=producer_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['total'] == 1
        assert data['rankings'][0]['user_id'] == 'a'
        assert data['ranking_bias_cap'] == pytest.approx(0.05)
        assert {'base_rank', 'bias', 'shift'} <= set(data['rankings'][0])

    def test_invalid_filter(self, client, producer_headers, active_season):
        response = client.get('/api/leaderboard/active?league=emerald', headers=producer_headers)
        assert response.status_code == 400

    def test_platinum_filter(self, client, producer_headers, active_season):
        response = client.get('/api/leaderboard/active?league=platinum', headers=producer_headers)
        assert response.status_code == 200

    def test_unknown_season(self, client, producer_headers):
        response = client.get('/api/leaderboard/404', headers=producer_headers)
        assert response.status_code == 404


class TestQuestEndpoints:
    """Tests for /api/quests."""

    def test_daily_flow(self, client, producer_headers, active_season):
        assigned = client.post(
            '/api/quests/users/op-1/daily',
            headers=producer_headers,
            data=json.dumps({'role': 'operator'}),
        )
        assert assigned.status_code == 200
        assert len(assigned.get_json()['quests']) == 2

        progress = client.post(
            '/api/quests/users/op-1/daily/fast_quote/progress',
            headers=producer_headers,
            data=json.dumps({}),
        )
        assert progress.status_code == 200
        assert progress.get_json()['bonus']['ok'] is True

    def test_unknown_quest(self, client, producer_headers, active_season):
        response = client.post(
            '/api/quests/users/op-1/daily/nope/progress',
            headers=producer_headers,
            data=json.dumps({}),
        )
        assert response.status_code == 404

    def test_weekly_flow(self, client, producer_headers, active_season):
        client.post(
            '/api/quests/users/op-1/weekly',
            headers=producer_headers,
            data=json.dumps({'role': 'operator'}),
        )

        response = client.post(
            '/api/quests/users/op-1/weekly/ontime_completion_1/progress',
            headers=producer_headers,
            data=json.dumps({}),
        )

        assert response.status_code == 200
        assert response.get_json()['shelter_awarded'] is True
