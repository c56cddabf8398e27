"""Account persistence behind a small protocol so the account manager can run against any store."""

import logging
import uuid
from typing import Any, Optional, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from account_service.models.user import User
from account_service.schemas.user import AccountRecord

logger = logging.getLogger(__name__)

# Columns an update may touch; id and created_at are immutable
UPDATABLE_FIELDS = frozenset(
    {
        "username",
        "email",
        "hashed_password",
        "phone_number",
        "profile_photo",
        "phone_token",
        "verification_code",
        "code_expiry",
    }
)


class CredentialStoreError(Exception):
    """The store could not complete a read or write. Nothing was committed."""


class DuplicateEmailError(CredentialStoreError):
    """Another account already owns this email."""


def _describe(e: SQLAlchemyError) -> str:
    # str(e) embeds the statement parameters, which may include a password hash
    orig = getattr(e, "orig", None)
    return str(orig) if orig is not None else e.__class__.__name__


class CredentialStore(Protocol):
    def find_by_email(self, email: str) -> Optional[AccountRecord]: ...

    def find_by_id(self, account_id: str) -> Optional[AccountRecord]: ...

    def create(self, username: str, email: str, hashed_password: str) -> AccountRecord: ...

    def update(self, account_id: str, fields: dict[str, Any]) -> Optional[AccountRecord]: ...

    def delete(self, account_id: str) -> bool: ...


class SqlAlchemyCredentialStore:
    """
    CredentialStore over the `users` table.
    Each write is its own transaction: it commits fully or is rolled back.
    Email uniqueness is decided by the unique index, so concurrent registrations
    of one address end with exactly one row and a DuplicateEmailError for the rest.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> Optional[AccountRecord]:
        try:
            user = self.db.query(User).filter(User.email == email).first()
        except SQLAlchemyError as e:
            raise CredentialStoreError(_describe(e)) from e
        return AccountRecord.model_validate(user) if user else None

    def find_by_id(self, account_id: str) -> Optional[AccountRecord]:
        try:
            user = self.db.query(User).filter(User.id == account_id).first()
        except SQLAlchemyError as e:
            raise CredentialStoreError(_describe(e)) from e
        return AccountRecord.model_validate(user) if user else None

    def create(self, username: str, email: str, hashed_password: str) -> AccountRecord:
        user = User(
            id=str(uuid.uuid4()),
            username=username,
            email=email,
            hashed_password=hashed_password,
        )
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        return AccountRecord.model_validate(user)

    def update(self, account_id: str, fields: dict[str, Any]) -> Optional[AccountRecord]:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        try:
            user = self.db.query(User).filter(User.id == account_id).first()
        except SQLAlchemyError as e:
            raise CredentialStoreError(_describe(e)) from e
        if not user:
            return None
        for name, value in fields.items():
            setattr(user, name, value)
        self._commit()
        self.db.refresh(user)
        return AccountRecord.model_validate(user)

    def delete(self, account_id: str) -> bool:
        try:
            user = self.db.query(User).filter(User.id == account_id).first()
        except SQLAlchemyError as e:
            raise CredentialStoreError(_describe(e)) from e
        if not user:
            return False
        self.db.delete(user)
        self._commit()
        return True

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Uniqueness violation on users: %s", e.orig)
            raise DuplicateEmailError("Email already registered") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CredentialStoreError(_describe(e)) from e
