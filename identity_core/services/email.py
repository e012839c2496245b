"""
E-mail delivery via fastapi-mail.

In test mode messages are logged (without the token) instead of sent.
"""

from typing import Optional
from urllib.parse import urlencode

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from identity_core.config import Settings, get_settings
from identity_core.logging_config import get_logger, mask_email

logger = get_logger(__name__)

RESET_SUBJECT = "Reset your password"

RESET_BODY = """Hi {name},

We received a request to reset the password for your account.
Use the link below to choose a new password. The link expires in {ttl_minutes} minutes
and can only be used once.

{reset_link}

If you did not request a password reset, you can ignore this e-mail.
"""


class EmailService:
    """Sends account e-mails."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.test_mode = self.settings.email_test_mode
        self.fastmail: Optional[FastMail] = None
        if not self.test_mode:
            self.fastmail = FastMail(self._connection_config())
        logger.info(
            "EmailService initialized",
            extra={"test_mode": self.test_mode, "smtp_configured": bool(self.settings.smtp_user)},
        )

    def _connection_config(self) -> ConnectionConfig:
        s = self.settings
        return ConnectionConfig(
            MAIL_USERNAME=s.smtp_user,
            MAIL_PASSWORD=s.smtp_password,
            MAIL_FROM=s.smtp_from_email,
            MAIL_FROM_NAME=s.smtp_from_name,
            MAIL_PORT=s.smtp_port,
            MAIL_SERVER=s.smtp_host,
            MAIL_STARTTLS=s.smtp_starttls,
            MAIL_SSL_TLS=s.smtp_ssl_tls,
            USE_CREDENTIALS=bool(s.smtp_user and s.smtp_password),
            VALIDATE_CERTS=True,
        )

    def reset_link(self, reset_token: str) -> str:
        return f"{self.settings.password_reset_url}?{urlencode({'token': reset_token})}"

    async def send_password_reset(
        self,
        to_email: str,
        reset_token: str,
        first_name: Optional[str] = None,
    ) -> bool:
        """
        Send a password reset link.

        Returns:
            True if the message was handed to the SMTP server (or logged in
            test mode). Delivery errors propagate to the caller.
        """
        body = RESET_BODY.format(
            name=first_name or "there",
            ttl_minutes=self.settings.password_reset_token_expire_minutes,
            reset_link=self.reset_link(reset_token),
        )

        if self.fastmail is None:
            logger.info(
                "Password reset e-mail (test mode)",
                extra={"to_email": mask_email(to_email), "subject": RESET_SUBJECT},
            )
            return True

        message = MessageSchema(
            subject=RESET_SUBJECT,
            recipients=[to_email],
            body=body,
            subtype=MessageType.plain,
        )
        await self.fastmail.send_message(message)
        logger.info("Password reset e-mail sent", extra={"to_email": mask_email(to_email)})
        return True
