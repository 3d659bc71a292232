"""
Merit engine services.
"""
from .multiplier import multiplier, apply_multiplier
from .cap_enforcer import CapEnforcer, CapCheck
from .streak_tracker import StreakTracker
from .season_manager import SeasonManager
from .merit_ledger import MeritLedger, AwardResult
from .league_assignment import LeagueAssignmentEngine, AssignmentReport, plan_cohort
from .eligibility import EligibilityPolicy
from .leaderboard import LeaderboardAggregator, UserRanking
from .quest_service import QuestService

__all__ = [
    'multiplier',
    'apply_multiplier',
    'CapEnforcer',
    'CapCheck',
    'StreakTracker',
    'SeasonManager',
    'MeritLedger',
    'AwardResult',
    'LeagueAssignmentEngine',
    'AssignmentReport',
    'plan_cohort',
    'EligibilityPolicy',
    'LeaderboardAggregator',
    'UserRanking',
    'QuestService',
]
