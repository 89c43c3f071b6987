"""
Prospect Email Service

Delivers pipeline email intents through the configured email provider.
Renders a subject and a plain-text body from the template variables; the
branded HTML templates live with the frontend, outside this package.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Union

from prospect_pipeline.email_dispatch import EmailTemplate
from prospect_pipeline.errors import EmailError, Result

from .email_provider import DeliveryResult, EmailMessage, EmailProvider, get_email_provider

logger = logging.getLogger(__name__)


SUBJECTS: Dict[EmailTemplate, str] = {
    EmailTemplate.KYC_INVITE: "You're invited to invest in {fundName}",
    EmailTemplate.KYC_AUTO_SEND: "Complete your investor profile for {fundName}",
    EmailTemplate.MEETING_INVITE: "Schedule your call with {fundName}",
    EmailTemplate.POST_MEETING_ONBOARDING: "Create your {fundName} investor account",
    EmailTemplate.DOCUMENT_REJECTION: "Action needed: please resubmit your documents",
    EmailTemplate.DOCUMENTS_APPROVED_DOCUSIGN: "Your documents are approved - please sign",
    EmailTemplate.WELCOME_INVESTOR: "Welcome to {fundName}",
    EmailTemplate.KYC_REMINDER: "Reminder: complete your {fundName} investor profile",
    EmailTemplate.ONBOARDING_REMINDER: "Reminder: finish onboarding with {fundName}",
}

# Variables that are links; rendered on their own line
_LINK_VARIABLES = ("kycUrl", "calendlyUrl", "accountCreationUrl", "portalUrl",
                   "docusignUrl", "onboardingUrl")


def render_subject(template: EmailTemplate, variables: Dict[str, Any]) -> str:
    return SUBJECTS[template].format(fundName=variables.get("fundName") or "the fund")


def render_text(template: EmailTemplate, variables: Dict[str, Any]) -> str:
    """Plain-text fallback body: greeting, details, then links."""
    lines = [f"Hi {variables.get('recipientName') or 'Investor'},", ""]

    for key, value in variables.items():
        if value is None or key in ("recipientName", "fundName") or key in _LINK_VARIABLES:
            continue
        lines.append(f"{key}: {value}")

    links = [variables[key] for key in _LINK_VARIABLES if variables.get(key)]
    if links:
        lines.append("")
        lines.extend(links)

    lines.extend(["", variables.get("fundName") or ""])
    return "\n".join(lines).rstrip() + "\n"


class ProspectEmailService:
    """
    Email service consumed by the pipeline orchestrator.

    ``send`` never raises for delivery problems: provider failures and
    provider exceptions come back as an EmailError inside the Result.
    """

    def __init__(
        self,
        provider: Optional[EmailProvider] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        self._provider = provider
        self._from_email = from_email
        self._from_name = from_name

    @property
    def provider(self) -> EmailProvider:
        return self._provider or get_email_provider()

    async def send(
        self,
        template: Union[EmailTemplate, str],
        recipient: str,
        variables: Dict[str, Any],
    ) -> Result[DeliveryResult]:
        """
        Render and deliver one templated email.

        Args:
            template: Template name
            recipient: Recipient email address
            variables: Template variables

        Returns:
            Result carrying the DeliveryResult, or an EmailError
        """
        template = EmailTemplate(template)
        message = EmailMessage(
            to=recipient,
            subject=render_subject(template, variables),
            body_text=render_text(template, variables),
            from_email=self._from_email,
            from_name=self._from_name,
            tags=[f"template:{template.value}"],
            metadata={"template": template.value, "variables": dict(variables)},
        )

        provider = self.provider
        try:
            result = await asyncio.to_thread(provider.send, message)
        except Exception as e:
            logger.exception(f"[EMAIL] Error sending {template.value} to {recipient}: {e}")
            return Result.fail(EmailError(template.value, recipient, str(e)))

        if not result.success:
            reason = result.error_message or result.status.value
            logger.warning(f"[EMAIL] {template.value} to {recipient} failed: {reason}")
            return Result.fail(EmailError(template.value, recipient, reason))

        logger.info(f"[EMAIL] {template.value} to {recipient}: sent via {provider.provider_name}")
        return Result.ok(result)
