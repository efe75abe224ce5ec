from passlib.context import CryptContext
from datetime import datetime, timezone
import secrets

from storefront.core.config import Settings

pwd_ctx = CryptContext(schemes=['pbkdf2_sha256'], deprecated='auto')

# 32 bytes -> 64 hex characters
TOKEN_BYTES = 32

def hash_password(p: str) -> str: return pwd_ctx.hash(p)

def verify_password(p: str, h: str) -> bool: return pwd_ctx.verify(p, h)

def now_utc() -> datetime: return datetime.now(timezone.utc)

def generate_token() -> str: return secrets.token_hex(TOKEN_BYTES)

def mask_token(token: str) -> str:
    return token if len(token) <= 12 else f"{token[:8]}...{token[-4:]}"


class AdminAccount:
    """The single operator account, configured from the environment."""

    def __init__(self, username: str, password_hash: str):
        self.username = username
        self._password_hash = password_hash

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdminAccount":
        password_hash = settings.ADMIN_PASSWORD_HASH or hash_password(settings.ADMIN_PASSWORD)
        return cls(settings.ADMIN_USERNAME, password_hash)

    def verify(self, username: str, password: str) -> bool:
        username_ok = secrets.compare_digest(username.encode('utf-8'), self.username.encode('utf-8'))
        # always run the hash check so timing does not reveal the username
        password_ok = verify_password(password, self._password_hash)
        return username_ok and password_ok
