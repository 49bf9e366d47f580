"""
Rate limiting configuration for the API.

Provides a shared Limiter instance that can be used across all route modules.
Recognition calls paid and quota-limited extractors, so it gets its own limit.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from tarot_recog.config import RECOGNIZE_RATE_LIMIT

# Shared rate limiter instance
# Using remote address (IP) as the key for rate limiting
limiter = Limiter(key_func=get_remote_address)

RECOGNIZE_LIMIT = RECOGNIZE_RATE_LIMIT
