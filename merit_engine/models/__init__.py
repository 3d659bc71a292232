"""
Database models for the merit engine.
Merit ledger, streaks, seasons, leagues, compliance projection and quests.
"""
from .enums import (
    Role,
    League,
    SeasonStatus,
    SkipReason,
    CapWindow,
    LeagueChangeType,
    LEAGUE_ORDER,
)
from .season import Season
from .merit import MeritEvent
from .streak import UserStreak
from .league import LeagueMembership, LeagueChangeLog
from .compliance import ComplianceStatus
from .quests import DailyQuest, WeeklyMission
from .rules_override import RulesOverride

__all__ = [
    # Enums
    'Role',
    'League',
    'SeasonStatus',
    'SkipReason',
    'CapWindow',
    'LeagueChangeType',
    'LEAGUE_ORDER',
    # Models
    'Season',
    'MeritEvent',
    'UserStreak',
    'LeagueMembership',
    'LeagueChangeLog',
    'ComplianceStatus',
    'DailyQuest',
    'WeeklyMission',
    'RulesOverride',
]
