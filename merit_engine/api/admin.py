"""
Admin API Endpoints

Operator interface: season lifecycle, league assignment runs, rule edits
and the compliance projection feed.
"""

from datetime import date

from flask import Blueprint, current_app, jsonify, request

from ..middleware.auth import require_admin_key
from ..models.enums import CapWindow
from ..rules import (
    get_registry,
    get_rules,
    remove_cap_override,
    set_cap_override,
    set_point_override,
)
from ..services.eligibility import EligibilityPolicy
from ..services.league_assignment import LeagueAssignmentEngine
from ..services.season_manager import SeasonManager
from ..services.streak_tracker import StreakTracker
from ..utils.errors import ErrorCode, bad_request

admin_bp = Blueprint('admin', __name__)


def get_season_manager() -> SeasonManager:
    return SeasonManager(get_rules())


def _parse_date(value, field):
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError(f'{field} must be an ISO date (YYYY-MM-DD)')


# ==================== Seasons ====================

@admin_bp.route('/seasons', methods=['GET'])
@require_admin_key
def list_seasons():
    """List seasons. ?status=upcoming|active|closed"""
    status = request.args.get('status')
    try:
        seasons = get_season_manager().list_seasons(status)
    except ValueError:
        return bad_request(f'Unknown status: {status}', ErrorCode.INVALID_FIELD)

    return jsonify({'success': True, 'seasons': [s.to_dict() for s in seasons]})


@admin_bp.route('/seasons', methods=['POST'])
@require_admin_key
def create_season():
    """Create an upcoming season."""
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return bad_request('No data provided')

    for field in ('name', 'start_date', 'end_date'):
        if field not in data:
            return bad_request(f'Missing required field: {field}', ErrorCode.MISSING_FIELD)

    try:
        start_date = _parse_date(data['start_date'], 'start_date')
        end_date = _parse_date(data['end_date'], 'end_date')
    except ValueError as e:
        return bad_request(str(e), ErrorCode.INVALID_FIELD)

    if not isinstance(data['name'], str):
        return bad_request('name must be a string', ErrorCode.INVALID_FIELD)
    for flag in ('reset_points', 'maintain_leagues'):
        if not isinstance(data.get(flag, True), bool):
            return bad_request(f'{flag} must be true or false', ErrorCode.INVALID_FIELD)

    season = get_season_manager().create_season(
        name=data['name'],
        start_date=start_date,
        end_date=end_date,
        reset_points=data.get('reset_points', True),
        maintain_leagues=data.get('maintain_leagues', True),
    )
    return jsonify({'success': True, 'season': season.to_dict()}), 201


@admin_bp.route('/seasons/active', methods=['GET'])
@require_admin_key
def get_active_season():
    season = get_season_manager().get_active_season()
    return jsonify({'success': True, 'season': season.to_dict()})


@admin_bp.route('/seasons/<int:season_id>/activate', methods=['POST'])
@require_admin_key
def activate_season(season_id):
    season = get_season_manager().activate_season(season_id)
    return jsonify({'success': True, 'season': season.to_dict()})


@admin_bp.route('/seasons/<int:season_id>/close', methods=['POST'])
@require_admin_key
def close_season(season_id):
    season = get_season_manager().close_season(season_id)
    return jsonify({'success': True, 'season': season.to_dict()})


@admin_bp.route('/seasons/rollover', methods=['POST'])
@require_admin_key
def rollover_season():
    """Close the active season (with league assignment) and activate the next."""
    data = request.get_json(silent=True) or {}
    next_season_id = data.get('next_season_id')
    if next_season_id is not None:
        try:
            next_season_id = int(next_season_id)
        except (TypeError, ValueError):
            return bad_request('next_season_id must be an integer', ErrorCode.INVALID_FIELD)

    result = get_season_manager().rollover(next_season_id)
    return jsonify({'success': True, **result})


# ==================== Leagues ====================

@admin_bp.route('/seasons/<int:season_id>/league-assignment', methods=['POST'])
@require_admin_key
def run_league_assignment(season_id):
    """Run (or rerun) boundary promotion/demotion. Body: role (optional)."""
    data = request.get_json(silent=True) or {}
    get_season_manager().get_season(season_id)

    try:
        report = LeagueAssignmentEngine(get_rules()).run(season_id, role=data.get('role'))
    except ValueError:
        return bad_request(f"Unknown role: {data.get('role')}", ErrorCode.INVALID_FIELD)

    return jsonify({'success': True, 'report': report.to_dict()})


@admin_bp.route('/seasons/<int:season_id>/league-changes', methods=['GET'])
@require_admin_key
def list_league_changes(season_id):
    """Audit log of boundary decisions. ?user_id="""
    changes = LeagueAssignmentEngine(get_rules()).get_changes(
        season_id, user_id=request.args.get('user_id')
    )
    return jsonify({'success': True, 'changes': [c.to_dict() for c in changes]})


# ==================== Rules ====================

@admin_bp.route('/rules', methods=['GET'])
@require_admin_key
def get_rules_snapshot():
    return jsonify({'success': True, 'rules': get_rules().to_dict()})


@admin_bp.route('/rules/points', methods=['PUT'])
@require_admin_key
def set_point_rule():
    """Set points for (role, event_type). Body: role, event_type, points."""
    data = request.get_json(silent=True) or {}
    for field in ('role', 'event_type', 'points'):
        if field not in data:
            return bad_request(f'Missing required field: {field}', ErrorCode.MISSING_FIELD)

    try:
        rules = get_registry().update(
            lambda o: set_point_override(o, data['role'], data['event_type'], data['points'])
        )
    except (TypeError, ValueError) as e:
        return bad_request(str(e), ErrorCode.INVALID_FIELD)

    current_app.logger.info(
        f"Point rule set: {data['role']}/{data['event_type']} = {data['points']} (rules v{rules.version})"
    )
    return jsonify({'success': True, 'rules': rules.to_dict()})


@admin_bp.route('/rules/caps', methods=['PUT'])
@require_admin_key
def set_cap_rule():
    """Set a cap. Body: role, event_type, limit, window."""
    data = request.get_json(silent=True) or {}
    for field in ('role', 'event_type', 'limit', 'window'):
        if field not in data:
            return bad_request(f'Missing required field: {field}', ErrorCode.MISSING_FIELD)

    try:
        window = CapWindow(data['window'])
        rules = get_registry().update(
            lambda o: set_cap_override(o, data['role'], data['event_type'], data['limit'], window)
        )
    except (TypeError, ValueError) as e:
        return bad_request(str(e), ErrorCode.INVALID_FIELD)

    current_app.logger.info(
        f"Cap set: {data['role']}/{data['event_type']} {data['limit']} per {window.value} "
        f"(rules v{rules.version})"
    )
    return jsonify({'success': True, 'rules': rules.to_dict()})


@admin_bp.route('/rules/caps', methods=['DELETE'])
@require_admin_key
def delete_cap_rule():
    """Remove a cap. Body: role, event_type."""
    data = request.get_json(silent=True) or {}
    for field in ('role', 'event_type'):
        if field not in data:
            return bad_request(f'Missing required field: {field}', ErrorCode.MISSING_FIELD)

    try:
        rules = get_registry().update(
            lambda o: remove_cap_override(o, data['role'], data['event_type'])
        )
    except ValueError as e:
        return bad_request(str(e), ErrorCode.INVALID_FIELD)

    return jsonify({'success': True, 'rules': rules.to_dict()})


# ==================== Compliance ====================

@admin_bp.route('/compliance/<user_id>', methods=['PUT'])
@require_admin_key
def upsert_compliance(user_id):
    """Update the compliance projection for one user."""
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return bad_request('No data provided')

    try:
        status = EligibilityPolicy(get_rules().eligibility).upsert_status(user_id, **data)
    except ValueError as e:
        return bad_request(str(e), ErrorCode.INVALID_FIELD)

    return jsonify({'success': True, 'compliance': status.to_dict()})


# ==================== Streaks ====================

@admin_bp.route('/streaks/rollover', methods=['POST'])
@require_admin_key
def run_streak_rollover():
    """Run the daily streak rollover now. Body: date (optional ISO date)."""
    data = request.get_json(silent=True) or {}
    try:
        today = _parse_date(data['date'], 'date') if data.get('date') else None
    except ValueError as e:
        return bad_request(str(e), ErrorCode.INVALID_FIELD)

    result = StreakTracker(get_rules()).daily_rollover(today)
    return jsonify({'success': True, **result})
