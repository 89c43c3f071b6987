"""
Email Trigger Dispatcher

Decides which notification, if any, a pipeline change should produce. The
decision is pure: it returns an EmailIntent and leaves delivery to the
email service.

Suppression rules:
- every intent belongs to a decision point (KYC review, document review of a
  given submission cycle, ...); once any email went out for a decision point,
  no second outcome is produced for it
- nothing is produced once the prospect is in a terminal status, except the
  email announcing the terminal transition itself
- reminders are produced only while the prospect sits in the status the
  reminder targets
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from .errors import ReminderNotApplicable, Result, ValidationError
from .models import Prospect
from .reminders import ReminderKind
from .states import ProspectSource, ProspectStatus

logger = logging.getLogger(__name__)


class EmailTemplate(str, Enum):
    """Templates the email service knows how to render."""
    KYC_INVITE = "kyc_invite"
    KYC_AUTO_SEND = "kyc_auto_send"
    MEETING_INVITE = "meeting_invite"
    POST_MEETING_ONBOARDING = "post_meeting_onboarding"
    DOCUMENT_REJECTION = "document_rejection"
    DOCUMENTS_APPROVED_DOCUSIGN = "documents_approved_docusign"
    WELCOME_INVESTOR = "welcome_investor"
    KYC_REMINDER = "kyc_reminder"
    ONBOARDING_REMINDER = "onboarding_reminder"


class DecisionPoint(str, Enum):
    """Decisions whose outcomes are mutually exclusive notifications."""
    INVITATION = "invitation"
    KYC_REVIEW = "kyc_review"
    ACCOUNT_INVITE = "account_invite"
    DOCUMENT_REVIEW = "document_review"     # keyed by document cycle
    CONVERSION = "conversion"
    REMINDER = "reminder"                   # repeatable, never suppressed


@dataclass(frozen=True)
class SentEmail:
    """Ledger entry for an email the service accepted."""
    prospect_id: str
    template: EmailTemplate
    decision_point: DecisionPoint
    cycle: int
    sent_at: datetime
    message_id: Optional[str] = None


@dataclass(frozen=True)
class EmailIntent:
    """Which template to send, to whom, with which variables."""
    template: EmailTemplate
    recipient: str
    variables: Dict[str, Any]
    decision_point: DecisionPoint
    cycle: int = 0


@dataclass
class EmailContext:
    """Fund-level values the templates need, plus the prospect's email ledger."""
    fund_name: str
    base_url: str = "http://localhost:5173"
    manager_name: Optional[str] = None
    manager_email: Optional[str] = None
    calendly_url: Optional[str] = None
    docusign_url: Optional[str] = None
    commitment_amount: Optional[Decimal] = None
    sent_emails: Sequence[SentEmail] = field(default_factory=tuple)

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{path}"


def recipient_name(prospect: Prospect, first_name_only: bool = False) -> str:
    """Salutation used by the templates; 'Investor' when nothing better is known."""
    if first_name_only:
        return prospect.first_name or "Investor"
    name = prospect.display_name
    return "Investor" if name == prospect.email else name


def format_amount(amount: Optional[Decimal]) -> Optional[str]:
    if amount is None:
        return None
    return f"{amount:,}"


def format_date(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return f"{value:%B} {value.day}, {value.year}"


# =============================================================================
# TEMPLATE VARIABLES
# =============================================================================

def _kyc_link_variables(prospect: Prospect, context: EmailContext) -> Dict[str, Any]:
    return {
        "recipientName": recipient_name(prospect, first_name_only=True),
        "fundName": context.fund_name,
        "kycUrl": context.url(f"/kyc/token/{prospect.kyc_link_token}"),
    }


def _kyc_invite_variables(prospect: Prospect, context: EmailContext) -> Dict[str, Any]:
    variables = _kyc_link_variables(prospect, context)
    variables.update({
        "managerName": context.manager_name,
        "managerEmail": context.manager_email,
    })
    return variables


def _meeting_invite_variables(prospect: Prospect, context: EmailContext) -> Dict[str, Any]:
    return {
        "recipientName": recipient_name(prospect),
        "fundName": context.fund_name,
        "calendlyUrl": context.calendly_url,
        "managerName": context.manager_name,
    }


def _post_meeting_variables(prospect: Prospect, context: EmailContext) -> Dict[str, Any]:
    return {
        "recipientName": recipient_name(prospect),
        "fundName": context.fund_name,
        "accountCreationUrl": context.url(f"/onboard/{prospect.id}"),
        "managerName": context.manager_name,
    }


def _document_rejection_variables(prospect: Prospect, context: EmailContext) -> Dict[str, Any]:
    return {
        "recipientName": recipient_name(prospect),
        "fundName": context.fund_name,
        "documentName": "Verification Documents",
        "documentType": "Identity/Accreditation",
        "rejectionReason": prospect.document_rejection_reason,
        "portalUrl": context.url("/investor/documents"),
    }


def _documents_approved_variables(prospect: Prospect, context: EmailContext) -> Dict[str, Any]:
    return {
        "recipientName": recipient_name(prospect),
        "fundName": context.fund_name,
        "docusignUrl": context.docusign_url or context.url("/investor/documents"),
        "commitmentAmount": format_amount(
            context.commitment_amount or prospect.indicative_commitment
        ),
    }


def _welcome_investor_variables(prospect: Prospect, context: EmailContext) -> Dict[str, Any]:
    return {
        "recipientName": recipient_name(prospect),
        "fundName": context.fund_name,
        "investmentAmount": format_amount(context.commitment_amount),
        "investmentDate": format_date(prospect.converted_at),
        "portalUrl": context.url("/investor/dashboard"),
        "managerName": context.manager_name,
        "managerEmail": context.manager_email,
    }


def _onboarding_reminder_variables(prospect: Prospect, context: EmailContext) -> Dict[str, Any]:
    return {
        "recipientName": recipient_name(prospect),
        "fundName": context.fund_name,
        "onboardingUrl": context.url("/investor/profile"),
    }


VariableBuilder = Callable[[Prospect, EmailContext], Dict[str, Any]]

TEMPLATE_VARIABLES: Dict[EmailTemplate, VariableBuilder] = {
    EmailTemplate.KYC_INVITE: _kyc_invite_variables,
    EmailTemplate.KYC_AUTO_SEND: _kyc_link_variables,
    EmailTemplate.MEETING_INVITE: _meeting_invite_variables,
    EmailTemplate.POST_MEETING_ONBOARDING: _post_meeting_variables,
    EmailTemplate.DOCUMENT_REJECTION: _document_rejection_variables,
    EmailTemplate.DOCUMENTS_APPROVED_DOCUSIGN: _documents_approved_variables,
    EmailTemplate.WELCOME_INVESTOR: _welcome_investor_variables,
    EmailTemplate.KYC_REMINDER: _kyc_link_variables,
    EmailTemplate.ONBOARDING_REMINDER: _onboarding_reminder_variables,
}


# =============================================================================
# DECISIONS
# =============================================================================

# (previous, new) -> (template, decision point). Pairs not listed send nothing;
# that includes every transition into NOT_ELIGIBLE.
TRANSITION_EMAILS: Dict[Tuple[ProspectStatus, ProspectStatus], Tuple[EmailTemplate, DecisionPoint]] = {
    (ProspectStatus.KYC_SUBMITTED, ProspectStatus.PRE_QUALIFIED):
        (EmailTemplate.MEETING_INVITE, DecisionPoint.KYC_REVIEW),
    (ProspectStatus.MEETING_COMPLETE, ProspectStatus.ACCOUNT_INVITE_SENT):
        (EmailTemplate.POST_MEETING_ONBOARDING, DecisionPoint.ACCOUNT_INVITE),
    (ProspectStatus.DOCUMENTS_PENDING, ProspectStatus.DOCUMENTS_REJECTED):
        (EmailTemplate.DOCUMENT_REJECTION, DecisionPoint.DOCUMENT_REVIEW),
    (ProspectStatus.DOCUMENTS_PENDING, ProspectStatus.DOCUMENTS_APPROVED):
        (EmailTemplate.DOCUMENTS_APPROVED_DOCUSIGN, DecisionPoint.DOCUMENT_REVIEW),
    (ProspectStatus.DOCUSIGN_SIGNED, ProspectStatus.CONVERTED):
        (EmailTemplate.WELCOME_INVESTOR, DecisionPoint.CONVERSION),
}


def decision_cycle(decision_point: DecisionPoint, prospect: Prospect) -> int:
    """Document review decisions are per submission cycle; others happen once."""
    if decision_point == DecisionPoint.DOCUMENT_REVIEW:
        return prospect.document_cycle
    return 0


def is_suppressed(intent: EmailIntent, sent_emails: Sequence[SentEmail]) -> bool:
    """Whether an email already went out for the intent's decision point."""
    if intent.decision_point == DecisionPoint.REMINDER:
        return False
    return any(
        sent.decision_point == intent.decision_point and sent.cycle == intent.cycle
        for sent in sent_emails
    )


def build_intent(
    template: EmailTemplate,
    decision_point: DecisionPoint,
    prospect: Prospect,
    context: EmailContext,
) -> EmailIntent:
    return EmailIntent(
        template=template,
        recipient=prospect.email,
        variables=TEMPLATE_VARIABLES[template](prospect, context),
        decision_point=decision_point,
        cycle=decision_cycle(decision_point, prospect),
    )


def _unless_suppressed(intent: EmailIntent, prospect: Prospect, context: EmailContext) -> Optional[EmailIntent]:
    if is_suppressed(intent, context.sent_emails):
        logger.warning(
            f"Suppressed {intent.template.value} for prospect {prospect.id}: "
            f"{intent.decision_point.value} (cycle {intent.cycle}) already notified"
        )
        return None
    return intent


def decide_email(
    previous_status: ProspectStatus,
    new_status: ProspectStatus,
    prospect: Prospect,
    context: EmailContext,
) -> Optional[EmailIntent]:
    """
    Decide the notification for a committed status change.

    Args:
        previous_status: Status before the change
        new_status: Status after the change
        prospect: Prospect as persisted after the change
        context: Fund values and the prospect's sent-email ledger

    Returns:
        EmailIntent, or None if the change sends nothing or is suppressed
    """
    if previous_status.is_terminal:
        return None

    rule = TRANSITION_EMAILS.get((previous_status, new_status))
    if rule is None:
        return None

    template, decision_point = rule
    intent = build_intent(template, decision_point, prospect, context)
    return _unless_suppressed(intent, prospect, context)


def decide_invitation_email(prospect: Prospect, context: EmailContext) -> Optional[EmailIntent]:
    """
    Decide the KYC link email for a newly created prospect.

    Manual sends get the manager's invitation, interest-form sign-ups get the
    automatic link, website KYC submissions get nothing.
    """
    if prospect.is_terminal or prospect.status != ProspectStatus.KYC_SENT:
        return None

    if prospect.source == ProspectSource.MANUAL:
        template = EmailTemplate.KYC_INVITE
    elif prospect.source == ProspectSource.INTEREST_FORM:
        template = EmailTemplate.KYC_AUTO_SEND
    else:
        return None

    if not prospect.kyc_link_token:
        logger.warning(f"Cannot send {template.value} to prospect {prospect.id}: no KYC link token")
        return None

    intent = build_intent(template, DecisionPoint.INVITATION, prospect, context)
    return _unless_suppressed(intent, prospect, context)


REMINDER_TEMPLATES: Dict[ReminderKind, EmailTemplate] = {
    ReminderKind.KYC: EmailTemplate.KYC_REMINDER,
    ReminderKind.ONBOARDING: EmailTemplate.ONBOARDING_REMINDER,
}


def decide_reminder(
    kind: ReminderKind,
    prospect: Prospect,
    context: EmailContext,
) -> Result[EmailIntent]:
    """
    Decide a reminder email.

    Fails with ReminderNotApplicable unless the prospect is in the status the
    reminder targets; terminal prospects never match a target.
    """
    required = kind.target_status
    if prospect.status != required:
        return Result.fail(ReminderNotApplicable(kind.value, prospect.status.value, required.value))

    if kind == ReminderKind.KYC and not prospect.kyc_link_token:
        return Result.fail(ValidationError(
            "Cannot send KYC reminder without a KYC link token",
            field="kyc_link_token",
        ))

    return Result.ok(build_intent(REMINDER_TEMPLATES[kind], DecisionPoint.REMINDER, prospect, context))
