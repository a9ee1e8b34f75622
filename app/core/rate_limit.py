from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# Keyed by client address.  With several API instances behind a balancer,
# RATE_LIMIT_STORAGE_URI must point at a shared store (e.g. redis://).
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    in_memory_fallback_enabled=True,
)
