"""Rate limiter shared by all routers (slowapi, keyed on client address)."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from src.config import settings

limiter = Limiter(key_func=get_remote_address)

# Applied per route via ``@limiter.limit(RATE_LIMIT)``.
RATE_LIMIT = settings.rate_limit
