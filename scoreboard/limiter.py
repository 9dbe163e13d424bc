"""
Rate limiter configuration using SlowAPI.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import Config

# Create a limiter instance that uses the client's IP address
limiter = Limiter(key_func=get_remote_address, enabled=Config.RATE_LIMIT_ENABLED)

write_limit = Config.WRITE_RATE_LIMIT
read_limit = Config.READ_RATE_LIMIT
