"""
Rate limiting for write endpoints.

Uses slowapi keyed by client IP address. Limits are applied explicitly per
endpoint; counters live in process memory.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from insighter_server.config import get_settings

# In production behind a reverse proxy, ensure X-Forwarded-For is set
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    enabled=get_settings().rate_limit_enabled,
)

WORKSPACE_CREATE_RATE_LIMIT = get_settings().workspace_create_rate_limit
