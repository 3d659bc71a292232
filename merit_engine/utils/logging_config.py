"""
Logging configuration for the merit engine.

Module loggers propagate to the root handler configured here. Configuration
and invariant failures additionally go to the `merit_engine.alerts` logger so
operators can route them to paging separately from ordinary errors.

Environment Variables:
    LOG_LEVEL: Root log level (default INFO)
"""
import logging
import os
import sys

ALERTS_LOGGER = 'merit_engine.alerts'

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'

_configured = False


def setup_logging(level: str = None) -> None:
    """Configure root logging once per process."""
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=(level or os.getenv('LOG_LEVEL', 'INFO')).upper(),
        format=LOG_FORMAT,
        stream=sys.stdout,
    )

    # Quiet chatty libraries
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('apscheduler').setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_alert_logger() -> logging.Logger:
    return logging.getLogger(ALERTS_LOGGER)
