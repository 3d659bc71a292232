"""
Quest Service

Daily quests ("briefings") and weekly missions ("orders").

- Daily quests: up to DAILY_QUESTS_PER_USER picked per user per day from the
  role's catalog plus shared quests. The pick is seeded by user and date, so
  reassigning on the same day yields the same set.
- Weekly missions: every role/shared mission, scoped to the active season.
- Completion pays a bonus through MeritLedger.award (role shared, explicit
  base points). Source keys are stable per quest instance, so replaying a
  completed quest never pays twice. Each completed mission also grants one
  streak shelter, flagged on the mission row so a retry after a failed
  grant repairs it.
"""

import random
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.enums import Role, SkipReason, parse_role
from ..models.quests import DailyQuest, WeeklyMission
from ..rules import DAILY_QUESTS_PER_USER, MeritRules
from ..utils.clock import utc_now
from ..utils.exceptions import NotFoundError, ValidationError
from .merit_ledger import AwardResult, MeritLedger

BRIEFING_EVENT = 'briefing_completed'
ORDER_EVENT = 'order_completed'


def briefing_source_key(quest_code: str, user_id: str, day: date) -> str:
    return f'briefing:{quest_code}|user:{user_id}|{day.isoformat()}'


def order_source_key(mission_code: str, user_id: str, season_id: int) -> str:
    return f'order:{mission_code}|user:{user_id}|season:{season_id}'


class QuestService:
    """Service for quest assignment, progress and completion bonuses."""

    def __init__(self, rules: MeritRules, ledger: MeritLedger = None):
        self.rules = rules
        self.ledger = ledger or MeritLedger(rules)

    # ==================== Daily quests ====================

    def pick_daily_quests(self, user_id: str, role, day: date) -> list:
        """Deterministic daily pick for (user, day)."""
        role = parse_role(role)
        candidates = [q for q in self.rules.daily_quests if q.role in (role, Role.SHARED)]
        rng = random.Random(f'{user_id}:{day.isoformat()}')
        return rng.sample(candidates, min(DAILY_QUESTS_PER_USER, len(candidates)))

    def assign_daily_quests(self, user_id: str, role, day: date = None) -> List[DailyQuest]:
        """Assign today's quests; a user who already has them keeps them."""
        day = day or self.ledger.streak_tracker.today()
        existing = self.get_daily_quests(user_id, day)
        if existing:
            return existing

        for quest in self.pick_daily_quests(user_id, role, day):
            db.session.add(DailyQuest(
                user_id=user_id,
                quest_code=quest.code,
                assigned_date=day,
                target_count=quest.target,
                current_count=0,
                bonus_points=quest.points,
                completed=False,
            ))
        try:
            db.session.commit()
        except IntegrityError:
            # Assigned concurrently; the other writer's rows win
            db.session.rollback()

        current_app.logger.info(f"Daily quests assigned: user {user_id} {day.isoformat()}")
        return self.get_daily_quests(user_id, day)

    def get_daily_quests(self, user_id: str, day: date = None) -> List[DailyQuest]:
        day = day or self.ledger.streak_tracker.today()
        return (
            DailyQuest.query
            .filter_by(user_id=user_id, assigned_date=day)
            .order_by(DailyQuest.id)
            .all()
        )

    def record_quest_progress(
        self,
        user_id: str,
        quest_code: str,
        day: date = None,
        increment: int = 1,
        now: datetime = None
    ) -> Dict[str, Any]:
        """
        Advance a daily quest. Completing it pays the bonus.

        Returns:
            Dict with the quest and the bonus AwardResult (None until complete)
        """
        if increment < 1:
            raise ValidationError('increment must be at least 1', 'increment')
        day = day or self.ledger.streak_tracker.today(now)

        quest = DailyQuest.query.filter_by(
            user_id=user_id, quest_code=quest_code, assigned_date=day
        ).first()
        if not quest:
            raise NotFoundError('Quest', quest_code)

        if not quest.completed:
            quest.current_count = min(quest.current_count + increment, quest.target_count)
            if quest.current_count >= quest.target_count:
                quest.completed = True
                quest.completed_at = now or utc_now()
            db.session.commit()

        bonus = None
        if quest.completed:
            bonus = self.ledger.award(
                user_id=user_id,
                role=Role.SHARED,
                event_type=BRIEFING_EVENT,
                source_key=briefing_source_key(quest.quest_code, user_id, day),
                base_points=quest.bonus_points,
                metadata={'briefing_code': quest.quest_code},
                now=now,
            )
            if bonus.ok:
                current_app.logger.info(
                    f"Briefing completed: user {user_id} {quest.quest_code} +{bonus.awarded_points}"
                )

        return self._progress_result(quest, bonus)

    # ==================== Weekly missions ====================

    def assign_weekly_missions(self, user_id: str, role) -> List[WeeklyMission]:
        """Assign every role/shared mission for the active season."""
        role = parse_role(role)
        season = self.ledger.season_manager.get_active_season()

        held = {
            m.mission_code
            for m in WeeklyMission.query.filter_by(user_id=user_id, season_id=season.id).all()
        }
        for mission in self.rules.weekly_missions:
            if mission.role not in (role, Role.SHARED) or mission.code in held:
                continue
            db.session.add(WeeklyMission(
                user_id=user_id,
                season_id=season.id,
                mission_code=mission.code,
                target_count=mission.target,
                current_count=0,
                bonus_points=mission.points,
                completed=False,
                shelter_granted=False,
            ))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()

        return self.get_weekly_missions(user_id, season.id)

    def get_weekly_missions(self, user_id: str, season_id: int = None) -> List[WeeklyMission]:
        if season_id is None:
            season_id = self.ledger.season_manager.get_active_season().id
        return (
            WeeklyMission.query
            .filter_by(user_id=user_id, season_id=season_id)
            .order_by(WeeklyMission.id)
            .all()
        )

    def record_mission_progress(
        self,
        user_id: str,
        mission_code: str,
        increment: int = 1,
        now: datetime = None
    ) -> Dict[str, Any]:
        """Advance a weekly mission. Completion pays the bonus and grants one shelter."""
        if increment < 1:
            raise ValidationError('increment must be at least 1', 'increment')
        season = self.ledger.season_manager.get_active_season()

        mission = WeeklyMission.query.filter_by(
            user_id=user_id, season_id=season.id, mission_code=mission_code
        ).first()
        if not mission:
            raise NotFoundError('Mission', mission_code)

        if not mission.completed:
            mission.current_count = min(mission.current_count + increment, mission.target_count)
            if mission.current_count >= mission.target_count:
                mission.completed = True
                mission.completed_at = now or utc_now()
            db.session.commit()

        bonus = None
        shelter_awarded = False
        if mission.completed:
            bonus = self.ledger.award(
                user_id=user_id,
                role=Role.SHARED,
                event_type=ORDER_EVENT,
                source_key=order_source_key(mission.mission_code, user_id, season.id),
                base_points=mission.bonus_points,
                metadata={'order_code': mission.mission_code},
                now=now,
            )
            if bonus.ok:
                current_app.logger.info(
                    f"Order completed: user {user_id} {mission.mission_code} +{bonus.awarded_points}"
                )
            # A duplicate means an earlier call paid the bonus; it may have
            # failed before the shelter was granted
            if bonus.ok or bonus.skipped == SkipReason.DUPLICATE:
                shelter_awarded = self._grant_mission_shelter(mission.id, user_id)

        result = self._progress_result(mission, bonus)
        result['shelter_awarded'] = shelter_awarded
        return result

    def _grant_mission_shelter(self, mission_id: int, user_id: str) -> bool:
        """Grant the mission's shelter once. Returns False if already granted."""
        try:
            mission = (
                WeeklyMission.query
                .filter_by(id=mission_id)
                .with_for_update()
                .populate_existing()
                .one()
            )
            if mission.shelter_granted:
                db.session.rollback()
                return False

            self.ledger.streak_tracker.award_shelter(user_id, commit=False)
            mission.shelter_granted = True
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(f"Shelter granted: user {user_id} mission {mission.mission_code}")
        return True

    @staticmethod
    def _progress_result(item, bonus: Optional[AwardResult]) -> Dict[str, Any]:
        return {
            'quest': item.to_dict(),
            'bonus': bonus.to_dict() if bonus else None,
        }
