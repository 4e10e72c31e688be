
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

# key_func: clients are limited per remote address
# storage_uri: memory:// by default; point at redis to share limits across workers
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
)
