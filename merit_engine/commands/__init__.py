"""
CLI Commands for the merit engine.

Usage:
    flask seasons create "Season 3" --start 2026-01-01 --end 2026-03-31
    flask seasons activate 3
    flask seasons active
    flask seasons close 3
    flask seasons rollover [--next-season-id 4] [--if-due]
    flask seasons assign-leagues 3 [--role operator] [--dry-run]

    flask streaks rollover [--date 2026-01-15]
"""
from .seasons import init_app as init_season_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_season_commands(app)
