"""
Merit API Endpoints

Award path for event producers plus per-user read views
(streak, season points, recent events).
"""

from flask import Blueprint, current_app, jsonify, request

from ..middleware.auth import require_producer_key
from ..rules import get_rules
from ..services.merit_ledger import MeritLedger
from ..utils.errors import ErrorCode, bad_request, exception_response
from ..utils.exceptions import MeritEngineError

merit_bp = Blueprint('merit', __name__)

MAX_EVENTS_LIMIT = 100


def get_ledger() -> MeritLedger:
    """Ledger bound to the current rules snapshot."""
    return MeritLedger(
        get_rules(),
        max_retries=current_app.config.get('MERIT_ROW_CREATE_RETRIES', 3)
    )


@merit_bp.route('/award', methods=['POST'])
@require_producer_key
def award():
    """
    Award merit points for a domain event.

    Request body:
        user_id, role, event_type, source_key (required)
        base_points (optional override), metadata (optional object)

    Returns 200 for both awards and skips:
        {"ok": true, "awarded_points": .., "multiplier": .., "streak_days": .., "event_id": ..}
        {"ok": false, "skipped": "duplicate" | "cap" | "no_points"}
    """
    data = request.get_json(silent=True)
    if not data:
        return bad_request('No data provided')

    for field in ('user_id', 'role', 'event_type', 'source_key'):
        if not data.get(field):
            return bad_request(f'Missing required field: {field}', ErrorCode.MISSING_FIELD)

    metadata = data.get('metadata') or {}
    if not isinstance(metadata, dict):
        return bad_request('metadata must be an object', ErrorCode.INVALID_FIELD)

    try:
        result = get_ledger().award(
            user_id=str(data['user_id']),
            role=data['role'],
            event_type=data['event_type'],
            source_key=data['source_key'],
            base_points=data.get('base_points'),
            metadata=metadata,
        )
    except MeritEngineError as e:
        return exception_response(e)

    return jsonify(result.to_dict())


@merit_bp.route('/shelters', methods=['POST'])
@require_producer_key
def award_shelter():
    """Grant streak shelters. Body: user_id, count (default 1)."""
    data = request.get_json(silent=True) or {}
    user_id = data.get('user_id')
    if not user_id:
        return bad_request('Missing required field: user_id', ErrorCode.MISSING_FIELD)

    try:
        count = int(data.get('count', 1))
    except (TypeError, ValueError):
        return bad_request('count must be an integer', ErrorCode.INVALID_FIELD)

    try:
        streak = get_ledger().streak_tracker.award_shelter(str(user_id), count)
    except MeritEngineError as e:
        return exception_response(e)

    return jsonify({'success': True, 'streak': streak.to_dict()})


@merit_bp.route('/users/<user_id>/streak', methods=['GET'])
@require_producer_key
def get_streak(user_id):
    """Streak view for a user (defaults if the user never scored)."""
    return jsonify({
        'success': True,
        'streak': get_ledger().streak_tracker.get_user_streak_summary(user_id),
    })


@merit_bp.route('/users/<user_id>/points', methods=['GET'])
@require_producer_key
def get_points(user_id):
    """Season points and league. ?season_id= defaults to the active season."""
    season_id = request.args.get('season_id', type=int)
    try:
        points = get_ledger().get_user_season_points(user_id, season_id)
    except MeritEngineError as e:
        return exception_response(e)

    return jsonify({'success': True, 'membership': points})


@merit_bp.route('/users/<user_id>/events', methods=['GET'])
@require_producer_key
def get_events(user_id):
    """Most recent merit events. ?limit= (default 10, max 100)."""
    limit = request.args.get('limit', 10, type=int)
    limit = max(1, min(limit, MAX_EVENTS_LIMIT))

    events = get_ledger().get_user_merit_events(user_id, limit=limit)
    return jsonify({
        'success': True,
        'events': [e.to_dict() for e in events],
    })
