"""Compose and send account emails (password reset code) via SMTP."""

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol

from account_service.core.config import Settings

logger = logging.getLogger(__name__)

# Avoid blocking the request forever if SMTP is slow or unreachable
SMTP_TIMEOUT_SECONDS = 15


class MailDeliveryError(Exception):
    """The mail transport refused or failed to take the message."""


@dataclass(frozen=True)
class MailMessage:
    sender: str
    to: str
    subject: str
    text: str
    html: Optional[str] = None


class MailNotifier(Protocol):
    def send(self, message: MailMessage) -> None: ...


def build_verification_code_email(
    sender: str, to_email: str, code: str, expire_minutes: int
) -> MailMessage:
    subject = "Verification Code"
    html = f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: sans-serif; max-width: 560px; margin: 0 auto; padding: 24px;">
  <p style="font-size: 16px; color: #1a1a1a; line-height: 1.5;">
    We received a request to reset the password for your account. Use the code below to continue.
  </p>
  <p style="margin: 24px 0; font-size: 28px; font-weight: 600; letter-spacing: 0.2em; color: #1a1a1a;">
    {code}
  </p>
  <p style="font-size: 14px; color: #737373;">
    This code is valid for {expire_minutes} minutes.
  </p>
  <p style="font-size: 14px; color: #737373;">
    If you didn't request this, you can ignore this email.
  </p>
</body>
</html>
"""
    text = (
        f"Your verification code is: {code}. "
        f"This code is valid for {expire_minutes} minutes.\n\n"
        "If you didn't request this, you can ignore this email."
    )
    return MailMessage(sender=sender, to=to_email, subject=subject, text=text, html=html)


class SmtpMailNotifier:
    """
    Sends over SMTP with STARTTLS. When SMTP_HOST/SMTP_USER are unset the message
    is dropped with a warning so local setups work without a mail server.
    Transport failures raise MailDeliveryError.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def sender(self) -> str:
        return f"{self.settings.SMTP_FROM_NAME} <{self.settings.SMTP_FROM_EMAIL}>"

    def send(self, message: MailMessage) -> None:
        s = self.settings
        if not s.SMTP_HOST or not s.SMTP_USER:
            logger.warning("SMTP not configured (SMTP_HOST/SMTP_USER). Skipping send to %s.", message.to)
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = message.sender
        msg["To"] = message.to
        msg.attach(MIMEText(message.text, "plain"))
        if message.html:
            msg.attach(MIMEText(message.html, "html"))

        try:
            with smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=SMTP_TIMEOUT_SECONDS) as server:
                server.starttls()
                server.login(s.SMTP_USER, s.SMTP_PASSWORD)
                server.sendmail(s.SMTP_FROM_EMAIL, [message.to], msg.as_string())
        except smtplib.SMTPAuthenticationError as e:
            logger.exception("SMTP login failed for %s", message.to)
            raise MailDeliveryError(f"SMTP login failed: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            logger.exception("SMTP error (timeout or network) for %s", message.to)
            raise MailDeliveryError(f"Failed to send email: {e}") from e
        logger.info("Email '%s' sent to %s", message.subject, message.to)
