from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from account_service.core.config import settings
from account_service.core.database import SessionLocal
from account_service.core.security import TokenService
from account_service.services.accounts import AccountLifecycleManager
from account_service.services.credential_store import SqlAlchemyCredentialStore
from account_service.services.email import MailNotifier, SmtpMailNotifier


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_token_service(request: Request) -> TokenService:
    """Token service built once at startup with the process-wide secret."""
    return request.app.state.token_service


def get_mail_notifier() -> MailNotifier:
    return SmtpMailNotifier(settings)


def get_account_manager(
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    mailer: MailNotifier = Depends(get_mail_notifier),
) -> AccountLifecycleManager:
    return AccountLifecycleManager(
        store=SqlAlchemyCredentialStore(db),
        tokens=tokens,
        mailer=mailer,
    )
