import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SMTP_HOST"] = ""

from datetime import datetime, timezone  # noqa: E402
from typing import Any, Optional  # noqa: E402
import uuid  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from account_service.core.deps import get_db, get_mail_notifier  # noqa: E402
from account_service.core.security import TokenService  # noqa: E402
from account_service.main import app  # noqa: E402
from account_service.models import Base  # noqa: E402
from account_service.schemas.user import AccountRecord  # noqa: E402
from account_service.services.credential_store import DuplicateEmailError  # noqa: E402
from account_service.services.email import MailDeliveryError, MailMessage  # noqa: E402


class FakeMailNotifier:
    """Records messages instead of sending them."""

    def __init__(self):
        self.sent: list[MailMessage] = []
        self.fail = False

    def send(self, message: MailMessage) -> None:
        if self.fail:
            raise MailDeliveryError("SMTP connection refused")
        self.sent.append(message)

    @property
    def last_code(self) -> str:
        text = self.sent[-1].text
        return text.split("Your verification code is: ", 1)[1][:6]


class InMemoryCredentialStore:
    def __init__(self):
        self.records: dict[str, AccountRecord] = {}
        self.broken = False

    def _check(self):
        if self.broken:
            raise RuntimeError("store unavailable")

    def find_by_email(self, email: str) -> Optional[AccountRecord]:
        self._check()
        return next((r for r in self.records.values() if r.email == email), None)

    def find_by_id(self, account_id: str) -> Optional[AccountRecord]:
        self._check()
        return self.records.get(account_id)

    def create(self, username: str, email: str, hashed_password: str) -> AccountRecord:
        self._check()
        if any(r.email == email for r in self.records.values()):
            raise DuplicateEmailError("Email already registered")
        record = AccountRecord(
            id=str(uuid.uuid4()), username=username, email=email, hashed_password=hashed_password
        )
        self.records[record.id] = record
        return record

    def update(self, account_id: str, fields: dict[str, Any]) -> Optional[AccountRecord]:
        self._check()
        record = self.records.get(account_id)
        if record is None:
            return None
        if "email" in fields and any(
            r.email == fields["email"] and r.id != account_id for r in self.records.values()
        ):
            raise DuplicateEmailError("Email already registered")
        updated = record.model_copy(update=fields)
        self.records[account_id] = updated
        return updated

    def delete(self, account_id: str) -> bool:
        self._check()
        return self.records.pop(account_id, None) is not None


class Clock:
    def __init__(self):
        self.current = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        hide_parameters=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer():
    return FakeMailNotifier()


@pytest.fixture
def tokens():
    return TokenService("test-secret")


@pytest.fixture
def memory_store():
    return InMemoryCredentialStore()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def client(engine, mailer):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mail_notifier] = lambda: mailer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
