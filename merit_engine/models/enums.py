"""
Closed value sets shared by models and services.
"""
from enum import Enum
from typing import List


class Role(str, Enum):
    """Marketplace roles. SHARED is the role-agnostic fallback."""
    BROKER = 'broker'
    OPERATOR = 'operator'
    PILOT = 'pilot'
    CREW = 'crew'
    SHARED = 'shared'


class League(str, Enum):
    """Ordered league tiers, lowest first."""
    BRONZE = 'bronze'
    SILVER = 'silver'
    GOLD = 'gold'
    PLATINUM = 'platinum'
    DIAMOND = 'diamond'


class SeasonStatus(str, Enum):
    """Season lifecycle. Transitions only move forward."""
    UPCOMING = 'upcoming'
    ACTIVE = 'active'
    CLOSED = 'closed'


class SkipReason(str, Enum):
    """Expected, non-error outcomes of an award."""
    DUPLICATE = 'duplicate'
    CAP = 'cap'
    NO_POINTS = 'no_points'


class CapWindow(str, Enum):
    """Counting windows for anti-farming caps."""
    CALENDAR_DAY = 'calendar_day'      # resets at local midnight
    ROLLING_7_DAYS = 'rolling_7_days'  # trailing 7 x 24h ending now
    SEASON = 'season'                  # events in the active season


class LeagueChangeType(str, Enum):
    PROMOTED = 'promoted'
    DEMOTED = 'demoted'
    UNCHANGED = 'unchanged'


LEAGUE_ORDER: List[League] = list(League)

SEASON_TRANSITIONS = {
    SeasonStatus.UPCOMING: SeasonStatus.ACTIVE,
    SeasonStatus.ACTIVE: SeasonStatus.CLOSED,
}


def parse_role(value) -> Role:
    """Parse a role value, raising ValueError for anything outside the set."""
    if isinstance(value, Role):
        return value
    return Role(str(value).strip().lower())


def parse_league(value) -> League:
    if isinstance(value, League):
        return value
    return League(str(value).strip().lower())


def league_index(league) -> int:
    """Position of a league in LEAGUE_ORDER (bronze == 0)."""
    return LEAGUE_ORDER.index(parse_league(league))


def promote(league) -> League:
    """One tier up, capped at the top tier."""
    idx = league_index(league)
    return LEAGUE_ORDER[min(idx + 1, len(LEAGUE_ORDER) - 1)]


def demote(league) -> League:
    """One tier down, floored at the bottom tier."""
    idx = league_index(league)
    return LEAGUE_ORDER[max(idx - 1, 0)]
