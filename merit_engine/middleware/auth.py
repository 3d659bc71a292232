"""
API key authentication.

Two callers reach the merit engine over HTTP:
- event producers (deal/quote workflows, quest systems) send awards
- operators administer seasons, league runs and rules

Both authenticate with the X-API-Key header.
"""
import hmac
from functools import wraps
from typing import Iterable, Optional

from flask import current_app, g, request

from ..utils.errors import forbidden, unauthorized

API_KEY_HEADER = 'X-API-Key'


def get_api_key_from_request() -> Optional[str]:
    """
    API key from the X-API-Key header, or a Bearer Authorization header.
    """
    key = request.headers.get(API_KEY_HEADER)
    if key:
        return key.strip()

    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[7:].strip()

    return None


def _matches(candidate: str, keys: Iterable[str]) -> bool:
    return any(key and hmac.compare_digest(candidate, key) for key in keys)


def require_producer_key(f):
    """
    Require a producer (or admin) API key.

    Sets g.caller to 'producer' or 'admin'.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        key = get_api_key_from_request()
        if not key:
            return unauthorized('Missing API key')

        admin_key = current_app.config.get('MERIT_ADMIN_API_KEY')
        if admin_key and _matches(key, [admin_key]):
            g.caller = 'admin'
            return f(*args, **kwargs)

        if not _matches(key, current_app.config.get('MERIT_PRODUCER_API_KEYS', ())):
            current_app.logger.warning(f'Rejected producer key on {request.path}')
            return forbidden('Invalid API key')

        g.caller = 'producer'
        return f(*args, **kwargs)

    return decorated_function


def require_admin_key(f):
    """Require the admin API key."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        key = get_api_key_from_request()
        if not key:
            return unauthorized('Missing API key')

        admin_key = current_app.config.get('MERIT_ADMIN_API_KEY')
        if not admin_key or not _matches(key, [admin_key]):
            current_app.logger.warning(f'Rejected admin key on {request.path}')
            return forbidden('Admin API key required')

        g.caller = 'admin'
        return f(*args, **kwargs)

    return decorated_function
