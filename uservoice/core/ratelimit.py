# File: uservoice/core/ratelimit.py

from slowapi import Limiter
from slowapi.util import get_remote_address
from uservoice.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

AUTH_LIMIT = settings.auth_rate_limit
