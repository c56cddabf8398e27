"""
Account lifecycle: register, login, forgot-password, verify-code, reset-password, edit, delete.

Every operation returns an AccountResult whose status is the HTTP code to answer with:

    200 OK, 201 Created, 204 Deleted
    400 invalid input, duplicate email, and unknown account or bad password on login
    401 token missing, invalid, expired or issued for another account
    404 unknown email on forgot-password, no live matching code on verify-code
    500 store, mail or any unexpected failure

Login and verify-code give one answer for both "no such account" and "wrong secret".
"""

import functools
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from fastapi import status
from pydantic import EmailStr, TypeAdapter, ValidationError

from account_service.core.config import settings
from account_service.core.security import (
    TokenService,
    generate_verification_code,
    get_password_hash,
    verify_password,
)
from account_service.models.user import FIELD_MAX_LENGTHS
from account_service.schemas.user import AccountRecord, AccountResult
from account_service.services.credential_store import CredentialStore, DuplicateEmailError
from account_service.services.email import MailNotifier, build_verification_code_email

logger = logging.getLogger(__name__)

USER_ROLE = "User"

_email_adapter = TypeAdapter(EmailStr)


def _result(status_code: int, message: str, token: Optional[str] = None) -> AccountResult:
    return AccountResult(status=status_code, message=message, token=token)


def _is_email(value: str) -> bool:
    try:
        _email_adapter.validate_python(value)
    except ValidationError:
        return False
    return True


def _too_long(fields: dict[str, Optional[str]]) -> Optional[AccountResult]:
    """400 result for the first value longer than its column, if any."""
    for name, value in fields.items():
        limit = FIELD_MAX_LENGTHS[name]
        if value is not None and len(value) > limit:
            return _result(status.HTTP_400_BAD_REQUEST, f"{name} must be at most {limit} characters")
    return None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timezone-aware columns back naive
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@functools.lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return get_password_hash("not-a-real-password")


def _guarded(operation: Callable[..., AccountResult]) -> Callable[..., AccountResult]:
    """Turn any failure escaping an operation into a 500 result."""

    @functools.wraps(operation)
    def wrapper(self: "AccountLifecycleManager", *args: Any, **kwargs: Any) -> AccountResult:
        try:
            return operation(self, *args, **kwargs)
        except Exception as e:
            logger.exception("Account operation %s failed", operation.__name__)
            return _result(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or e.__class__.__name__)

    return wrapper


class AccountLifecycleManager:
    def __init__(
        self,
        store: CredentialStore,
        tokens: TokenService,
        mailer: MailNotifier,
        *,
        sender: Optional[str] = None,
        now: Optional[Callable[[], datetime]] = None,
        session_ttl: Optional[timedelta] = None,
        reset_ttl: Optional[timedelta] = None,
        code_ttl: Optional[timedelta] = None,
        password_min_length: Optional[int] = None,
    ):
        self.store = store
        self.tokens = tokens
        self.mailer = mailer
        self.sender = sender or f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.session_ttl = session_ttl or timedelta(hours=settings.SESSION_TOKEN_EXPIRE_HOURS)
        self.reset_ttl = reset_ttl or timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
        self.code_ttl = code_ttl or timedelta(minutes=settings.VERIFY_CODE_EXPIRE_MINUTES)
        self.password_min_length = password_min_length or settings.PASSWORD_MIN_LENGTH

    def _password_too_short(self, password: str) -> bool:
        return len(password) < self.password_min_length

    def _too_short_result(self) -> AccountResult:
        return _result(
            status.HTTP_400_BAD_REQUEST,
            f"Password must be at least {self.password_min_length} characters long",
        )

    def _authorize(self, token: Optional[str], account_id: Optional[str] = None):
        """Claims for a valid token, or the 401 result to return instead."""
        if not token:
            return None, _result(status.HTTP_401_UNAUTHORIZED, "Token is missing")
        claims = self.tokens.verify(token)
        if claims is None:
            return None, _result(status.HTTP_401_UNAUTHORIZED, "Invalid token")
        if account_id is not None and claims["sub"] != account_id:
            logger.warning("Token subject does not match requested account id")
            return None, _result(status.HTTP_401_UNAUTHORIZED, "Invalid user ID")
        return claims, None

    @_guarded
    def register(
        self, username: Optional[str], email: Optional[str], password: Optional[str]
    ) -> AccountResult:
        if not username or not email or not password:
            return _result(status.HTTP_400_BAD_REQUEST, "Username, email, and password are required")
        if self._password_too_short(password):
            return self._too_short_result()
        if not _is_email(email):
            return _result(status.HTTP_400_BAD_REQUEST, "Invalid email address")
        too_long = _too_long({"username": username, "email": email})
        if too_long:
            return too_long

        # Fast path only; the unique index decides races
        if self.store.find_by_email(email) is not None:
            return _result(status.HTTP_400_BAD_REQUEST, "User already exists")
        try:
            record = self.store.create(username, email, get_password_hash(password))
        except DuplicateEmailError:
            return _result(status.HTTP_400_BAD_REQUEST, "User already exists")

        logger.info("Registered account %s", record.id)
        return _result(status.HTTP_201_CREATED, "User registered successfully")

    @_guarded
    def login(self, email: Optional[str], password: Optional[str]) -> AccountResult:
        if not email or not password:
            return _result(status.HTTP_400_BAD_REQUEST, "Email and password are required")

        record = self.store.find_by_email(email)
        if record is None:
            # Same bcrypt cost as a real mismatch
            verify_password(password, _dummy_hash())
            return _result(status.HTTP_400_BAD_REQUEST, "Invalid credentials")
        if not verify_password(password, record.hashed_password):
            logger.info("Failed login for account %s", record.id)
            return _result(status.HTTP_400_BAD_REQUEST, "Invalid credentials")

        token = self.tokens.issue(
            record.id,
            self.session_ttl,
            extra_claims={"email": record.email, "role": USER_ROLE},
        )
        return _result(status.HTTP_200_OK, "User logged in successfully", token)

    @_guarded
    def forgot_password(self, email: Optional[str]) -> AccountResult:
        if not email:
            return _result(status.HTTP_400_BAD_REQUEST, "Email is required")

        record = self.store.find_by_email(email)
        if record is None:
            return _result(status.HTTP_404_NOT_FOUND, "User not found")

        code = generate_verification_code()
        # Overwrites any outstanding code: one live code per account
        self.store.update(
            record.id,
            {"verification_code": code, "code_expiry": self.now() + self.code_ttl},
        )
        expire_minutes = int(self.code_ttl.total_seconds() // 60)
        # A failed send leaves the new code stored; calling forgot-password again is the retry
        self.mailer.send(build_verification_code_email(self.sender, record.email, code, expire_minutes))

        logger.info("Verification code issued for account %s (expires in %s min)", record.id, expire_minutes)
        return _result(status.HTTP_200_OK, "Verification code sent successfully")

    @_guarded
    def verify_code(self, email: Optional[str], code: Optional[str]) -> AccountResult:
        if not email or not code:
            return _result(status.HTTP_400_BAD_REQUEST, "Email and verification code are required")

        record = self.store.find_by_email(email)
        if not self._code_matches(record, code):
            return _result(status.HTTP_404_NOT_FOUND, "Invalid verification code")

        # One-time use
        self.store.update(record.id, {"verification_code": None, "code_expiry": None})
        token = self.tokens.issue(record.id, self.reset_ttl)
        return _result(status.HTTP_200_OK, "Verification successful", token)

    def _code_matches(self, record: Optional[AccountRecord], code: str) -> bool:
        if record is None or not record.verification_code or record.code_expiry is None:
            return False
        if not hmac.compare_digest(record.verification_code.encode(), code.encode()):
            return False
        return self.now() < _as_utc(record.code_expiry)

    @_guarded
    def reset_password(self, token: Optional[str], password: Optional[str]) -> AccountResult:
        """Set a new password. The verify-code step is the authorization; the old password is not asked for."""
        if not password:
            return _result(status.HTTP_400_BAD_REQUEST, "Password is required")
        if self._password_too_short(password):
            return self._too_short_result()
        claims, denied = self._authorize(token)
        if denied:
            return denied

        record = self.store.find_by_id(claims["sub"])
        if record is None:
            return _result(status.HTTP_400_BAD_REQUEST, "User not found")

        updated = self.store.update(record.id, {"hashed_password": get_password_hash(password)})
        if updated is None:
            return _result(status.HTTP_400_BAD_REQUEST, "User not found")

        logger.info("Password reset for account %s", updated.id)
        return _result(status.HTTP_200_OK, "Password updated successfully")

    @_guarded
    def edit(
        self,
        token: Optional[str],
        account_id: Optional[str],
        username: Optional[str],
        email: Optional[str],
        profile_photo: Optional[str] = None,
        phone_token: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> AccountResult:
        if not account_id or not username or not email:
            return _result(status.HTTP_400_BAD_REQUEST, "Id, username and email are required")
        if not _is_email(email):
            return _result(status.HTTP_400_BAD_REQUEST, "Invalid email address")

        fields: dict[str, Any] = {"username": username, "email": email}
        optional = {
            "profile_photo": profile_photo,
            "phone_token": phone_token,
            "phone_number": phone_number,
        }
        fields.update({k: v for k, v in optional.items() if v is not None})
        too_long = _too_long(fields)
        if too_long:
            return too_long

        claims, denied = self._authorize(token, account_id)
        if denied:
            return denied

        try:
            updated = self.store.update(claims["sub"], fields)
        except DuplicateEmailError:
            return _result(status.HTTP_400_BAD_REQUEST, "Email already in use")
        if updated is None:
            return _result(status.HTTP_400_BAD_REQUEST, "User not found")

        logger.info("Updated account %s", updated.id)
        return _result(status.HTTP_200_OK, "User updated successfully")

    @_guarded
    def delete(self, token: Optional[str], account_id: Optional[str]) -> AccountResult:
        if not account_id:
            return _result(status.HTTP_400_BAD_REQUEST, "Id is required")
        claims, denied = self._authorize(token, account_id)
        if denied:
            return denied

        if not self.store.delete(claims["sub"]):
            return _result(status.HTTP_400_BAD_REQUEST, "User not found")

        logger.info("Deleted account %s", claims["sub"])
        return _result(status.HTTP_204_NO_CONTENT, "User deleted successfully")
