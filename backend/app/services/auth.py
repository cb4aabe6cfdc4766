"""
Auth service: password hashing and JWT creation/verification.
Uses bcrypt directly (no passlib) to avoid passlib/bcrypt version conflicts.
TokenService is built once from settings at startup and passed to whatever needs it.
"""
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from app.config import Settings
from app.errors import InvalidToken, TokenExpired

# Bcrypt limit is 72 bytes; use 71 so we never exceed
BCRYPT_MAX_BYTES = 71
MIN_PASSWORD_LENGTH = 6


def _truncate_to_bytes(s: str, max_bytes: int = BCRYPT_MAX_BYTES) -> bytes:
    """Truncate string to at most max_bytes UTF-8; return bytes for bcrypt."""
    if not s:
        return b""
    encoded = s.encode("utf-8")
    if len(encoded) <= max_bytes:
        return encoded
    return encoded[:max_bytes]


def hash_password(password: str) -> str:
    """Hash password for storage. Raises ValueError if password is None."""
    if password is None:
        raise ValueError("password is required")
    raw = _truncate_to_bytes(password)
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(raw, salt)
    return hashed.decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    raw = _truncate_to_bytes(plain)
    try:
        return bcrypt.checkpw(raw, hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


class TokenService:
    """Issues and verifies access tokens carrying {sub, email, role}."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_hours: int = 168):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire = timedelta(hours=expire_hours)

    @classmethod
    def from_settings(cls, config: Settings) -> "TokenService":
        return cls(config.secret_key, config.jwt_algorithm, config.jwt_expire_hours)

    def issue(self, user_id: int, email: str, role: str, expires_in: timedelta | None = None) -> str:
        expire = datetime.now(timezone.utc) + (expires_in if expires_in is not None else self._expire)
        # JWT exp must be numeric (Unix timestamp), not datetime
        payload = {"sub": str(user_id), "email": email, "role": role, "exp": int(expire.timestamp())}
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def decode(self, token: str) -> dict:
        """Return claims; raise TokenExpired or InvalidToken."""
        try:
            claims = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            raise TokenExpired("Token has expired")
        except JWTError:
            raise InvalidToken("Invalid token")
        sub = claims.get("sub")
        if sub is None or not str(sub).isdigit():
            raise InvalidToken("Invalid token")
        return claims
