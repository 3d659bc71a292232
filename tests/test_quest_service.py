"""
Tests for the Quest Service.

Tests cover:
- Deterministic daily pick
- Quest progress and one-time bonus payout
- Weekly missions and the shelter grant
"""
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from merit_engine.models import MeritEvent, UserStreak, WeeklyMission
from merit_engine.models.enums import Role
from merit_engine.services.quest_service import (
    BRIEFING_EVENT,
    ORDER_EVENT,
    QuestService,
    briefing_source_key,
)
from merit_engine.services.streak_tracker import StreakTracker
from merit_engine.utils.exceptions import NotFoundError, ValidationError


@pytest.fixture
def quests(rules, ledger):
    return QuestService(rules, ledger)


class TestDailyQuests:
    """Daily quest assignment and completion."""

    def test_pick_is_deterministic(self, app, quests, today):
        first = quests.pick_daily_quests('broker-1', 'broker', today)
        second = quests.pick_daily_quests('broker-1', 'broker', today)

        assert [q.code for q in first] == [q.code for q in second]
        assert len(first) == 3
        assert all(q.role in (Role.BROKER, Role.SHARED) for q in first)

    def test_pick_limited_by_catalog(self, app, quests, today):
        picked = quests.pick_daily_quests('op-1', 'operator', today)

        assert {q.code for q in picked} == {'fast_quote', 'ontime_close'}

    def test_assign_is_stable_within_a_day(self, app, quests, today):
        first = quests.assign_daily_quests('broker-1', 'broker', today)
        second = quests.assign_daily_quests('broker-1', 'broker', today)

        assert [q.id for q in first] == [q.id for q in second]

    def test_completion_pays_bonus_once(self, app, quests, active_season, today, now):
        quests.assign_daily_quests('op-1', 'operator', today)

        result = quests.record_quest_progress('op-1', 'fast_quote', day=today, now=now)
        replay = quests.record_quest_progress('op-1', 'fast_quote', day=today, now=now)

        assert result['quest']['completed'] is True
        assert result['bonus']['ok'] is True
        assert result['bonus']['awarded_points'] == 10
        assert replay['bonus'] == {'ok': False, 'skipped': 'duplicate'}

        events = MeritEvent.query.filter_by(event_type=BRIEFING_EVENT).all()
        assert len(events) == 1
        assert events[0].source_key == briefing_source_key('fast_quote', 'op-1', today)

    def test_unassigned_quest(self, app, quests, today):
        with pytest.raises(NotFoundError):
            quests.record_quest_progress('op-1', 'fast_quote', day=today)

    def test_increment_must_be_positive(self, app, quests, today):
        with pytest.raises(ValidationError):
            quests.record_quest_progress('op-1', 'fast_quote', day=today, increment=0)


class TestWeeklyMissions:
    """Weekly missions and shelters."""

    def test_assign_role_and_shared(self, app, quests, active_season):
        missions = quests.assign_weekly_missions('op-1', 'operator')

        assert {m.mission_code for m in missions} == {
            'fast_quotes_3', 'ontime_completion_1', 're_market_save_1'
        }
        assert all(m.season_id == active_season.id for m in missions)
        assert len(quests.assign_weekly_missions('op-1', 'operator')) == 3

    def test_partial_progress_pays_nothing(self, app, quests, active_season, now):
        quests.assign_weekly_missions('op-1', 'operator')

        result = quests.record_mission_progress('op-1', 'fast_quotes_3', increment=2, now=now)

        assert result['quest']['current_count'] == 2
        assert result['bonus'] is None
        assert result['shelter_awarded'] is False

    def test_completion_grants_bonus_and_one_shelter(self, app, quests, active_season, now):
        quests.assign_weekly_missions('op-1', 'operator')

        quests.record_mission_progress('op-1', 'fast_quotes_3', increment=2, now=now)
        done = quests.record_mission_progress('op-1', 'fast_quotes_3', increment=5, now=now)
        replay = quests.record_mission_progress('op-1', 'fast_quotes_3', now=now)

        assert done['quest']['current_count'] == 3
        assert done['bonus']['awarded_points'] == 25
        assert done['shelter_awarded'] is True
        assert replay['shelter_awarded'] is False
        assert replay['bonus']['skipped'] == 'duplicate'

        streak = UserStreak.query.filter_by(user_id='op-1').one()
        assert streak.shelters_available == 1
        assert MeritEvent.query.filter_by(event_type=ORDER_EVENT).count() == 1

    def test_failed_shelter_grant_repaired_on_retry(self, app, quests, active_season, now):
        quests.assign_weekly_missions('op-1', 'operator')
        db_down = OperationalError('UPDATE', {}, Exception('db down'))

        with patch.object(StreakTracker, 'award_shelter', side_effect=db_down):
            with pytest.raises(OperationalError):
                quests.record_mission_progress('op-1', 'fast_quotes_3', increment=3, now=now)

        mission = WeeklyMission.query.filter_by(user_id='op-1', mission_code='fast_quotes_3').one()
        assert mission.completed is True
        assert mission.shelter_granted is False
        assert MeritEvent.query.filter_by(event_type=ORDER_EVENT).count() == 1

        retry = quests.record_mission_progress('op-1', 'fast_quotes_3', now=now)
        again = quests.record_mission_progress('op-1', 'fast_quotes_3', now=now)

        assert retry['bonus']['skipped'] == 'duplicate'
        assert retry['shelter_awarded'] is True
        assert retry['quest']['shelter_granted'] is True
        assert again['shelter_awarded'] is False
        streak = UserStreak.query.filter_by(user_id='op-1').one()
        assert streak.shelters_available == 1

    def test_unknown_mission(self, app, quests, active_season):
        with pytest.raises(NotFoundError):
            quests.record_mission_progress('op-1', 'nope')
