"""
Rate limiting for public routes

Each app gets its own slowapi ``Limiter`` built from its settings, so two
apps in one process keep separate limits, switches and counters.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import Settings


def create_limiter(settings: Settings) -> Limiter:
    return Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def verify_rate_limit(settings: Settings) -> str:
    """Per-client limit for the public verification page."""
    return f"{settings.verify_rate_limit_per_min}/minute"
