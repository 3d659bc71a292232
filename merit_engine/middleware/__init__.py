"""
Middleware package for the merit engine.
"""
from .auth import require_producer_key, require_admin_key, get_api_key_from_request
