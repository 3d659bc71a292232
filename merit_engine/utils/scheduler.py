"""
Background scheduler for automated merit tasks.

Handles:
- Streak rollover: reset lapsed, unsheltered streaks (daily at 00:05 in MERIT_TIMEZONE)
- Season rollover check: close the ended season and activate the next
  one once its start date arrives (daily at 00:15 in MERIT_TIMEZONE)
"""
import os
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None
_flask_app = None  # Flask app reference for job contexts


def init_scheduler(app):
    """
    Initialize the background scheduler.

    Only runs in production or when ENABLE_SCHEDULER=true, and only in the
    first process that gets here (gunicorn workers share the environment).
    """
    global _scheduler, _flask_app

    _flask_app = app

    if app.config.get('TESTING'):
        logger.debug('[Scheduler] Disabled in testing mode')
        return None

    if not (os.getenv('FLASK_ENV') == 'production' or os.getenv('ENABLE_SCHEDULER') == 'true'):
        logger.info('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return None

    if os.getenv('SCHEDULER_RUNNING') == 'true':
        logger.info('[Scheduler] Already running in another process')
        return None

    tz = app.config.get('MERIT_TIMEZONE', 'UTC')
    _scheduler = BackgroundScheduler(
        timezone=tz,
        job_defaults={
            'coalesce': True,  # Combine missed runs
            'max_instances': 1,
            'misfire_grace_time': 3600
        }
    )

    _scheduler.add_job(
        run_streak_rollover,
        trigger=CronTrigger(hour=0, minute=5),
        id='streak_rollover',
        name='Reset lapsed streaks',
        replace_existing=True
    )

    _scheduler.add_job(
        run_season_rollover_check,
        trigger=CronTrigger(hour=0, minute=15),
        id='season_rollover',
        name='Roll over ended seasons',
        replace_existing=True
    )

    _scheduler.start()
    os.environ['SCHEDULER_RUNNING'] = 'true'

    logger.info(f'[Scheduler] Started with 2 jobs ({tz}): streak rollover 00:05, season rollover 00:15')

    import atexit
    atexit.register(shutdown_scheduler)
    return _scheduler


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info('[Scheduler] Shutdown complete')


def run_streak_rollover():
    """Reset streaks that lapsed without a shelter. Runs daily."""
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    with _flask_app.app_context():
        from ..rules import get_rules
        from ..services.streak_tracker import StreakTracker

        try:
            result = StreakTracker(get_rules()).daily_rollover()
            logger.info(f'[Scheduler] Streak rollover {result["date"]}: {result["reset"]} reset')
        except Exception as e:
            logger.error(f'[Scheduler] Streak rollover failed: {e}')


def run_season_rollover_check():
    """Roll the season over when the active one has ended. Runs daily."""
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    with _flask_app.app_context():
        from ..rules import get_rules
        from ..services.season_manager import SeasonManager
        from ..services.streak_tracker import StreakTracker

        rules = get_rules()
        manager = SeasonManager(rules)
        today = StreakTracker(rules).today()

        try:
            if not manager.due_for_rollover(today):
                logger.debug(f'[Scheduler] No season rollover due on {today.isoformat()}')
                return
            result = manager.rollover()
            logger.info(
                f'[Scheduler] Season rollover: closed {result["closed_season"]["id"]}, '
                f'activated {result["active_season"]["id"]}'
            )
        except Exception as e:
            logger.error(f'[Scheduler] Season rollover failed: {e}')


def get_next_run_times() -> dict:
    """Get the next scheduled run times for all jobs."""
    if not _scheduler:
        return {'error': 'Scheduler not initialized'}

    jobs = {}
    for job in _scheduler.get_jobs():
        next_run = job.next_run_time
        jobs[job.id] = {
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None
        }
    return jobs
