"""
SMTP Email Provider

Standard SMTP delivery for prospect pipeline emails.

Configuration (see config.settings.SMTPSettings):
    SMTP_HOST: SMTP server hostname
    SMTP_PORT: SMTP server port (default: 587)
    SMTP_USERNAME / SMTP_PASSWORD: Authentication
    SMTP_USE_TLS: Use STARTTLS (default: True)
    SMTP_USE_SSL: Use implicit SSL (default: False)
"""

import logging
import smtplib
import ssl
import uuid
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from config.settings import SMTPSettings

from .email_provider import (
    DeliveryResult,
    DeliveryStatus,
    EmailMessage,
    EmailProvider,
)

logger = logging.getLogger(__name__)


class SMTPProvider(EmailProvider):
    """SMTP email provider with STARTTLS/SSL and basic authentication."""

    def __init__(
        self,
        settings: Optional[SMTPSettings] = None,
        from_email: str = "noreply@localhost",
        from_name: str = "Fund Investor Relations",
    ):
        """
        Initialize SMTP provider.

        Args:
            settings: SMTP settings; loaded from the environment if None
            from_email: Default sender email
            from_name: Default sender name
        """
        self.settings = settings or SMTPSettings()
        self.from_email = from_email
        self.from_name = from_name

    @property
    def provider_name(self) -> str:
        return "smtp"

    def is_configured(self) -> bool:
        """Check if SMTP is properly configured."""
        return self.settings.is_configured

    def _build(self, message: EmailMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((
            message.from_name or self.from_name,
            message.from_email or self.from_email,
        ))
        msg["To"] = message.to
        msg["Subject"] = message.subject
        if message.reply_to:
            msg["Reply-To"] = message.reply_to

        if message.body_text:
            msg.attach(MIMEText(message.body_text, "plain", "utf-8"))
        if message.body_html:
            msg.attach(MIMEText(message.body_html, "html", "utf-8"))
        return msg

    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        if s.use_ssl:
            server = smtplib.SMTP_SSL(s.host, s.port, timeout=s.timeout,
                                      context=ssl.create_default_context())
        else:
            server = smtplib.SMTP(s.host, s.port, timeout=s.timeout)
        try:
            if s.use_tls and not s.use_ssl:
                server.starttls(context=ssl.create_default_context())
            if s.username and s.password:
                server.login(s.username, s.password)
        except Exception:
            server.close()
            raise
        return server

    def _failure(self, status: DeliveryStatus, error_code: str, error_message: str) -> DeliveryResult:
        return DeliveryResult(
            success=False,
            status=status,
            provider=self.provider_name,
            error_message=error_message,
            error_code=error_code,
        )

    def send(self, message: EmailMessage) -> DeliveryResult:
        """
        Send email via SMTP.

        Args:
            message: Email message to send

        Returns:
            DeliveryResult with status
        """
        if not self.is_configured():
            return self._failure(
                DeliveryStatus.FAILED, "NOT_CONFIGURED", "SMTP not configured (missing SMTP_HOST)",
            )

        message.validate()
        msg = self._build(message)

        try:
            with self._connect() as server:
                server.sendmail(message.from_email or self.from_email, [message.to], msg.as_string())
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP auth error: {e}")
            return self._failure(DeliveryStatus.FAILED, "AUTH_ERROR", f"SMTP authentication failed: {e}")
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"SMTP recipients refused: {e}")
            return self._failure(DeliveryStatus.BOUNCED, "RECIPIENTS_REFUSED", f"Recipients refused: {e}")
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error: {e}")
            return self._failure(DeliveryStatus.FAILED, "SMTP_ERROR", str(e))

        logger.info(f"SMTP: Email sent to {message.to}")

        # SMTP doesn't return a message ID, generate one
        return DeliveryResult(
            success=True,
            status=DeliveryStatus.SENT,
            message_id=f"smtp-{uuid.uuid4()}",
            provider=self.provider_name,
        )
