from slowapi import Limiter
from slowapi.util import get_remote_address

# Outbound LLM calls are the expensive part; limits apply to those routes only
LLM_ROUTE_LIMIT = "20/minute"

limiter = Limiter(key_func=get_remote_address, default_limits=[])
