"""
CLI Commands for seasons, leagues and streaks.

These commands can be run manually or via cron jobs:

# Season boundary (run daily shortly after midnight)
5 0 * * * cd /app && flask seasons rollover --if-due

# Streak rollover (run daily at midnight)
0 0 * * * cd /app && flask streaks rollover
"""

from datetime import date

import click
from flask.cli import with_appcontext

from ..rules import get_rules
from ..services.league_assignment import LeagueAssignmentEngine
from ..services.season_manager import SeasonManager
from ..services.streak_tracker import StreakTracker
from ..utils.exceptions import MeritEngineError


def _iso_date(ctx, param, value):
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter('expected YYYY-MM-DD')


@click.group('seasons')
def seasons_cli():
    """Season lifecycle commands."""
    pass


@seasons_cli.command('create')
@click.argument('name')
@click.option('--start', 'start_date', required=True, callback=_iso_date, help='Start date (YYYY-MM-DD)')
@click.option('--end', 'end_date', required=True, callback=_iso_date, help='End date (YYYY-MM-DD)')
@click.option('--keep-points', is_flag=True, help='Carry point totals into the following season')
@click.option('--reset-leagues', is_flag=True, help='Start everyone at bronze in the following season')
@with_appcontext
def create_season(name, start_date, end_date, keep_points, reset_leagues):
    """Create an upcoming season."""
    try:
        season = SeasonManager(get_rules()).create_season(
            name,
            start_date,
            end_date,
            reset_points=not keep_points,
            maintain_leagues=not reset_leagues,
        )
    except MeritEngineError as e:
        raise click.ClickException(e.message)

    click.echo(f"Created season {season.id}: {season.name} ({season.start_date} - {season.end_date})")


@seasons_cli.command('activate')
@click.argument('season_id', type=int)
@with_appcontext
def activate_season(season_id):
    """Activate an upcoming season."""
    try:
        season = SeasonManager(get_rules()).activate_season(season_id)
    except MeritEngineError as e:
        raise click.ClickException(e.message)
    click.echo(f"Season {season.id} ({season.name}) is now active")


@seasons_cli.command('close')
@click.argument('season_id', type=int)
@with_appcontext
def close_season(season_id):
    """Close the active season without activating another."""
    try:
        season = SeasonManager(get_rules()).close_season(season_id)
    except MeritEngineError as e:
        raise click.ClickException(e.message)
    click.echo(f"Season {season.id} ({season.name}) closed")


@seasons_cli.command('active')
@with_appcontext
def show_active():
    """Show the active season."""
    try:
        season = SeasonManager(get_rules()).get_active_season()
    except MeritEngineError as e:
        raise click.ClickException(e.message)
    click.echo(f"Active season {season.id}: {season.name} ({season.start_date} - {season.end_date})")


@seasons_cli.command('rollover')
@click.option('--next-season-id', type=int, help='Season to activate (default: next upcoming)')
@click.option('--if-due', is_flag=True, help='Only roll over when the active season has ended')
@with_appcontext
def rollover(next_season_id, if_due):
    """Run league assignment, close the active season and activate the next."""
    rules = get_rules()
    manager = SeasonManager(rules)

    if if_due and not manager.due_for_rollover(StreakTracker(rules).today()):
        click.echo("No rollover due")
        return

    try:
        result = manager.rollover(next_season_id)
    except MeritEngineError as e:
        raise click.ClickException(e.message)

    report = result['league_assignment']
    click.echo(f"Closed season {result['closed_season']['id']}, activated {result['active_season']['id']}")
    click.echo(f"  Promoted: {report['promoted']}")
    click.echo(f"  Demoted: {report['demoted']}")


@seasons_cli.command('assign-leagues')
@click.argument('season_id', type=int)
@click.option('--role', help='Only this role cohort')
@click.option('--dry-run', is_flag=True, help='Preview without writing')
@with_appcontext
def assign_leagues(season_id, role, dry_run):
    """Run (or rerun) boundary promotion/demotion for a season."""
    engine = LeagueAssignmentEngine(get_rules())
    try:
        report = engine.plan(season_id, role) if dry_run else engine.run(season_id, role)
    except ValueError:
        raise click.BadParameter(f'unknown role {role}', param_hint='--role')
    except MeritEngineError as e:
        raise click.ClickException(e.message)

    click.echo(f"{'[DRY RUN] ' if dry_run else ''}League assignment for season {season_id}:")
    for cohort in report.cohorts:
        if cohort.movement_skipped:
            click.echo(f"  {cohort.role}: {cohort.size} members (below minimum, no movement)")
        else:
            click.echo(
                f"  {cohort.role}: {cohort.size} members, "
                f"{cohort.promoted} promoted, {cohort.demoted} demoted"
            )
    click.echo(f"TOTAL: {report.promoted} promoted, {report.demoted} demoted")


@click.group('streaks')
def streaks_cli():
    """Streak maintenance commands."""
    pass


@streaks_cli.command('rollover')
@click.option('--date', 'today', callback=_iso_date, help='Local date to evaluate (default: today)')
@with_appcontext
def streak_rollover(today):
    """Reset streaks that lapsed without a shelter."""
    result = StreakTracker(get_rules()).daily_rollover(today)
    click.echo(f"Streak rollover for {result['date']}: {result['reset']} reset")


def init_app(app):
    """Register season and streak commands with the Flask app."""
    app.cli.add_command(seasons_cli)
    app.cli.add_command(streaks_cli)
