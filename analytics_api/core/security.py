
import hmac
import re
import secrets
from typing import Optional

from passlib.context import CryptContext

from ..config import settings

API_KEY_BYTES = 32

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__rounds=settings.HASH_TIME_COST,
)

# Prefix is not pinned: keys issued under an earlier API_KEY_PREFIX stay well-formed
_API_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_]{0,16}[0-9a-f]{%d}$" % (API_KEY_BYTES * 2))


def create_api_key() -> str:
    """Return a new plaintext key: prefix + 256 random bits as hex."""
    return settings.API_KEY_PREFIX + secrets.token_hex(API_KEY_BYTES)


def is_well_formed_api_key(api_key: Optional[str]) -> bool:
    return bool(api_key) and _API_KEY_PATTERN.match(api_key) is not None


def hash_api_key(api_key: str) -> str:
    return pwd_context.hash(api_key)


def verify_api_key(plain_key: str, hashed_key: str) -> bool:
    try:
        return pwd_context.verify(plain_key, hashed_key)
    except ValueError:
        # unrecognised or corrupt hash in the store
        return False


def is_admin_key(api_key: Optional[str]) -> bool:
    if not settings.ADMIN_API_KEY or not api_key:
        return False
    return hmac.compare_digest(api_key.encode("utf-8"), settings.ADMIN_API_KEY.encode("utf-8"))
