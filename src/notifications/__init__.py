"""
Notification Delivery

Email delivery for the prospect pipeline.

Provides:
- Email provider abstraction (SMTP, null/logging provider)
- Prospect email service rendering pipeline templates

Usage:
    from notifications import ProspectEmailService

    service = ProspectEmailService()
    result = await service.send("meeting_invite", "ada@example.com", variables)
"""

from .email_provider import (
    EmailProvider,
    EmailMessage,
    DeliveryResult,
    DeliveryStatus,
    NullEmailProvider,
    get_email_provider,
    set_email_provider,
)

from .smtp_provider import SMTPProvider
from .prospect_email_service import ProspectEmailService

__all__ = [
    # Core interfaces
    "EmailProvider",
    "EmailMessage",
    "DeliveryResult",
    "DeliveryStatus",
    "NullEmailProvider",
    "get_email_provider",
    "set_email_provider",
    # Providers
    "SMTPProvider",
    # Prospect emails
    "ProspectEmailService",
]
