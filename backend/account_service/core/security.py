import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
from jose import JWTError, jwt

from account_service.core.config import settings

# Bcrypt limit is 72 bytes; truncate to avoid errors
BCRYPT_MAX_PASSWORD_BYTES = 72

VERIFICATION_CODE_MIN = 100_000
VERIFICATION_CODE_MAX = 999_999


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """bcrypt.checkpw compares in constant time. A malformed hash is a mismatch."""
    pwd_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]
    try:
        return bcrypt.checkpw(pwd_bytes, hashed_password.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


def get_password_hash(password: str, rounds: Optional[int] = None) -> str:
    pwd_bytes = password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(pwd_bytes, salt).decode("utf-8")


def generate_verification_code() -> str:
    """6-digit one-time code drawn uniformly from 100000-999999."""
    span = VERIFICATION_CODE_MAX - VERIFICATION_CODE_MIN + 1
    return str(VERIFICATION_CODE_MIN + secrets.randbelow(span))


class TokenService:
    """
    Signs and verifies JWTs with a single secret fixed at construction.
    Every failure (bad structure, bad signature, expired) reads as None to callers.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        if not secret_key:
            raise ValueError("Token signing secret must not be empty")
        self._secret_key = secret_key
        self._algorithm = algorithm

    def issue(
        self,
        subject: str,
        expires_delta: timedelta,
        extra_claims: Optional[dict] = None,
    ) -> str:
        expire = datetime.now(timezone.utc) + expires_delta
        to_encode: dict[str, Any] = {"sub": subject, "exp": expire}
        if extra_claims:
            to_encode.update(extra_claims)
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: Optional[str]) -> Optional[dict]:
        if not token:
            return None
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError:
            return None
        if not payload.get("sub"):
            return None
        return payload
