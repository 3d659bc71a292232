"""
Leaderboard API Endpoints

Read-only rankings. Each entry exposes base rank, bias and shift so the
league bias applied to the ordering is auditable.
"""

from flask import Blueprint, jsonify, request

from ..middleware.auth import require_producer_key
from ..models.enums import parse_league, parse_role
from ..rules import get_rules
from ..services.leaderboard import LeaderboardAggregator
from ..services.season_manager import SeasonManager
from ..utils.errors import ErrorCode, bad_request

leaderboard_bp = Blueprint('leaderboard', __name__)

MAX_LIMIT = 500


def _filters():
    """Validated (role, league, limit) from the query string."""
    role = request.args.get('role')
    league = request.args.get('league')
    if role:
        parse_role(role)
    if league:
        parse_league(league)
    limit = request.args.get('limit', 100, type=int)
    return role, league, max(1, min(limit, MAX_LIMIT))


def _render(season, role, league, limit):
    rules = get_rules()
    rankings = LeaderboardAggregator(rules).rank(season.id, role=role, league=league)
    return jsonify({
        'success': True,
        'season': season.to_dict(),
        'ranking_bias_cap': rules.ranking_bias_cap,
        'total': len(rankings),
        'rankings': [r.to_dict() for r in rankings[:limit]],
    })


@leaderboard_bp.route('/active', methods=['GET'])
@require_producer_key
def active_leaderboard():
    """Leaderboard for the active season. ?role=&league=&limit="""
    try:
        role, league, limit = _filters()
    except ValueError as e:
        return bad_request(str(e), ErrorCode.INVALID_FIELD)

    season = SeasonManager(get_rules()).get_active_season()
    return _render(season, role, league, limit)


@leaderboard_bp.route('/<int:season_id>', methods=['GET'])
@require_producer_key
def season_leaderboard(season_id):
    """Leaderboard for any season. ?role=&league=&limit="""
    try:
        role, league, limit = _filters()
    except ValueError as e:
        return bad_request(str(e), ErrorCode.INVALID_FIELD)

    season = SeasonManager(get_rules()).get_season(season_id)
    return _render(season, role, league, limit)
