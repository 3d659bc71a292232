"""
Quest API Endpoints

Daily quests (briefings) and weekly missions (orders) for quest systems.
"""

from datetime import date

from flask import Blueprint, current_app, jsonify, request

from ..middleware.auth import require_producer_key
from ..rules import get_rules
from ..services.merit_ledger import MeritLedger
from ..services.quest_service import QuestService
from ..utils.errors import ErrorCode, bad_request

quests_bp = Blueprint('quests', __name__)


def get_service() -> QuestService:
    rules = get_rules()
    ledger = MeritLedger(rules, max_retries=current_app.config.get('MERIT_ROW_CREATE_RETRIES', 3))
    return QuestService(rules, ledger)


def _request_date():
    raw = request.args.get('date')
    return date.fromisoformat(raw) if raw else None


@quests_bp.route('/users/<user_id>/daily', methods=['GET'])
@require_producer_key
def list_daily_quests(user_id):
    """Quests assigned for a day. ?date= (default today)"""
    try:
        day = _request_date()
    except ValueError:
        return bad_request('date must be an ISO date (YYYY-MM-DD)', ErrorCode.INVALID_FIELD)

    quests = get_service().get_daily_quests(user_id, day)
    return jsonify({'success': True, 'quests': [q.to_dict() for q in quests]})


@quests_bp.route('/users/<user_id>/daily', methods=['POST'])
@require_producer_key
def assign_daily_quests(user_id):
    """Assign today's quests. Body: role."""
    data = request.get_json(silent=True) or {}
    if not data.get('role'):
        return bad_request('Missing required field: role', ErrorCode.MISSING_FIELD)

    try:
        quests = get_service().assign_daily_quests(user_id, data['role'])
    except ValueError:
        return bad_request(f"Unknown role: {data['role']}", ErrorCode.INVALID_FIELD)

    return jsonify({'success': True, 'quests': [q.to_dict() for q in quests]})


@quests_bp.route('/users/<user_id>/daily/<quest_code>/progress', methods=['POST'])
@require_producer_key
def record_daily_progress(user_id, quest_code):
    """Advance today's quest. Body: increment (default 1)."""
    data = request.get_json(silent=True) or {}
    try:
        increment = int(data.get('increment', 1))
    except (TypeError, ValueError):
        return bad_request('increment must be an integer', ErrorCode.INVALID_FIELD)

    result = get_service().record_quest_progress(user_id, quest_code, increment=increment)
    return jsonify({'success': True, **result})


@quests_bp.route('/users/<user_id>/weekly', methods=['GET'])
@require_producer_key
def list_weekly_missions(user_id):
    """Missions in the active season (or ?season_id=)."""
    season_id = request.args.get('season_id', type=int)
    missions = get_service().get_weekly_missions(user_id, season_id)
    return jsonify({'success': True, 'missions': [m.to_dict() for m in missions]})


@quests_bp.route('/users/<user_id>/weekly', methods=['POST'])
@require_producer_key
def assign_weekly_missions(user_id):
    """Assign the active season's missions. Body: role."""
    data = request.get_json(silent=True) or {}
    if not data.get('role'):
        return bad_request('Missing required field: role', ErrorCode.MISSING_FIELD)

    try:
        missions = get_service().assign_weekly_missions(user_id, data['role'])
    except ValueError:
        return bad_request(f"Unknown role: {data['role']}", ErrorCode.INVALID_FIELD)

    return jsonify({'success': True, 'missions': [m.to_dict() for m in missions]})


@quests_bp.route('/users/<user_id>/weekly/<mission_code>/progress', methods=['POST'])
@require_producer_key
def record_weekly_progress(user_id, mission_code):
    """Advance a mission. Body: increment (default 1)."""
    data = request.get_json(silent=True) or {}
    try:
        increment = int(data.get('increment', 1))
    except (TypeError, ValueError):
        return bad_request('increment must be an integer', ErrorCode.INVALID_FIELD)

    result = get_service().record_mission_progress(user_id, mission_code, increment=increment)
    return jsonify({'success': True, **result})
