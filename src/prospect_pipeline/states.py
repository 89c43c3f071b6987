"""
Prospect Statuses and Enumerations

Defines the pipeline statuses, the single transition table, and the
display/grouping helpers used by manager-facing views.
"""

from enum import Enum
from typing import Dict, FrozenSet, Set


class ProspectStatus(str, Enum):
    """
    Pipeline status of a prospect.

    Exactly one value at any time. CONVERTED and NOT_ELIGIBLE are terminal.
    """
    KYC_SENT = "kyc_sent"                           # Initial state
    KYC_SUBMITTED = "kyc_submitted"
    PRE_QUALIFIED = "pre_qualified"
    NOT_ELIGIBLE = "not_eligible"                   # Terminal
    MEETING_SCHEDULED = "meeting_scheduled"
    MEETING_COMPLETE = "meeting_complete"
    ACCOUNT_INVITE_SENT = "account_invite_sent"
    ACCOUNT_CREATED = "account_created"
    ONBOARDING_SUBMITTED = "onboarding_submitted"
    DOCUMENTS_PENDING = "documents_pending"
    DOCUMENTS_APPROVED = "documents_approved"
    DOCUMENTS_REJECTED = "documents_rejected"
    DOCUSIGN_SENT = "docusign_sent"
    DOCUSIGN_SIGNED = "docusign_signed"
    CONVERTED = "converted"                         # Terminal

    @property
    def label(self) -> str:
        """Human-readable status label."""
        return STATUS_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        """Whether no outgoing transition exists."""
        return self in TERMINAL_STATUSES

    @property
    def stage_group(self) -> str:
        """Pipeline column this status is displayed under."""
        return STAGE_GROUPS[self]

    @property
    def requires_manager_action(self) -> bool:
        """Whether the fund manager is the one expected to act next."""
        return self in MANAGER_ACTION_STATUSES

    @property
    def next_action(self) -> str:
        """Recommended next step for the prospect in this status."""
        return NEXT_ACTIONS[self]


class ProspectSource(str, Enum):
    """How the prospect entered the pipeline."""
    MANUAL = "manual"                   # Manager sent a KYC invitation
    INTEREST_FORM = "interest_form"     # Public interest form, KYC link auto-sent
    WEBSITE = "website"                 # Public KYC form submitted directly


class InvestorCategory(str, Enum):
    """Individual or entity investor."""
    INDIVIDUAL = "individual"
    ENTITY = "entity"


class DocumentType(str, Enum):
    """Validation documents an investor can upload."""
    TAX_FILING = "tax_filing"
    PROOF_OF_IDENTITY = "proof_of_identity"
    NET_WORTH_STATEMENT = "net_worth_statement"
    BANK_STATEMENT = "bank_statement"
    OTHER = "other"


class DocumentStatus(str, Enum):
    """Validation status of a single uploaded document."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProspectEvent(str, Enum):
    """External events that may advance a prospect automatically."""
    KYC_FORM_SUBMITTED = "kyc_form_submitted"
    KYC_APPROVED = "kyc_approved"
    KYC_REJECTED = "kyc_rejected"
    MEETING_BOOKED = "meeting_booked"
    MEETING_COMPLETED = "meeting_completed"
    ACCOUNT_INVITE_SENT = "account_invite_sent"
    ACCOUNT_CREATED = "account_created"
    ONBOARDING_SUBMITTED = "onboarding_submitted"
    DOCUMENTS_UPLOADED = "documents_uploaded"
    DOCUMENTS_APPROVED = "documents_approved"
    DOCUMENTS_REJECTED = "documents_rejected"
    DOCUSIGN_SENT = "docusign_sent"
    DOCUSIGN_SIGNED = "docusign_signed"
    CONVERTED_TO_INVESTOR = "converted_to_investor"


TERMINAL_STATUSES: FrozenSet[ProspectStatus] = frozenset({
    ProspectStatus.CONVERTED,
    ProspectStatus.NOT_ELIGIBLE,
})


# Pipeline edges. NOT_ELIGIBLE is reachable from every non-terminal status
# and is added below rather than repeated per row.
_PIPELINE_EDGES: Dict[ProspectStatus, Set[ProspectStatus]] = {
    ProspectStatus.KYC_SENT: {ProspectStatus.KYC_SUBMITTED},
    ProspectStatus.KYC_SUBMITTED: {ProspectStatus.PRE_QUALIFIED},
    ProspectStatus.PRE_QUALIFIED: {ProspectStatus.MEETING_SCHEDULED},
    ProspectStatus.MEETING_SCHEDULED: {ProspectStatus.MEETING_COMPLETE},
    ProspectStatus.MEETING_COMPLETE: {ProspectStatus.ACCOUNT_INVITE_SENT},
    ProspectStatus.ACCOUNT_INVITE_SENT: {ProspectStatus.ACCOUNT_CREATED},
    ProspectStatus.ACCOUNT_CREATED: {ProspectStatus.ONBOARDING_SUBMITTED},
    ProspectStatus.ONBOARDING_SUBMITTED: {ProspectStatus.DOCUMENTS_PENDING},
    ProspectStatus.DOCUMENTS_PENDING: {
        ProspectStatus.DOCUMENTS_APPROVED,
        ProspectStatus.DOCUMENTS_REJECTED,
    },
    ProspectStatus.DOCUMENTS_REJECTED: {ProspectStatus.DOCUMENTS_PENDING},
    ProspectStatus.DOCUMENTS_APPROVED: {ProspectStatus.DOCUSIGN_SENT},
    ProspectStatus.DOCUSIGN_SENT: {ProspectStatus.DOCUSIGN_SIGNED},
    ProspectStatus.DOCUSIGN_SIGNED: {ProspectStatus.CONVERTED},
    ProspectStatus.CONVERTED: set(),
    ProspectStatus.NOT_ELIGIBLE: set(),
}

VALID_TRANSITIONS: Dict[ProspectStatus, FrozenSet[ProspectStatus]] = {
    status: frozenset(
        targets if status in TERMINAL_STATUSES
        else targets | {ProspectStatus.NOT_ELIGIBLE}
    )
    for status, targets in _PIPELINE_EDGES.items()
}


# Status -> stage timestamp field on the prospect record. Each field is set
# the first time the prospect enters that status and never cleared.
STAGE_TIMESTAMP_FIELDS: Dict[ProspectStatus, str] = {
    ProspectStatus.KYC_SENT: "kyc_sent_at",
    ProspectStatus.KYC_SUBMITTED: "kyc_submitted_at",
    ProspectStatus.PRE_QUALIFIED: "pre_qualified_at",
    ProspectStatus.NOT_ELIGIBLE: "not_eligible_at",
    ProspectStatus.MEETING_SCHEDULED: "meeting_scheduled_at",
    ProspectStatus.MEETING_COMPLETE: "meeting_completed_at",
    ProspectStatus.ACCOUNT_INVITE_SENT: "account_invite_sent_at",
    ProspectStatus.ACCOUNT_CREATED: "account_created_at",
    ProspectStatus.ONBOARDING_SUBMITTED: "onboarding_submitted_at",
    ProspectStatus.DOCUMENTS_PENDING: "documents_submitted_at",
    ProspectStatus.DOCUMENTS_APPROVED: "documents_approved_at",
    ProspectStatus.DOCUMENTS_REJECTED: "documents_rejected_at",
    ProspectStatus.DOCUSIGN_SENT: "docusign_sent_at",
    ProspectStatus.DOCUSIGN_SIGNED: "docusign_signed_at",
    ProspectStatus.CONVERTED: "converted_at",
}


STATUS_LABELS: Dict[ProspectStatus, str] = {
    ProspectStatus.KYC_SENT: "KYC Sent",
    ProspectStatus.KYC_SUBMITTED: "KYC Submitted",
    ProspectStatus.PRE_QUALIFIED: "Pre-Qualified",
    ProspectStatus.NOT_ELIGIBLE: "Not Eligible",
    ProspectStatus.MEETING_SCHEDULED: "Meeting Scheduled",
    ProspectStatus.MEETING_COMPLETE: "Meeting Complete",
    ProspectStatus.ACCOUNT_INVITE_SENT: "Account Invite Sent",
    ProspectStatus.ACCOUNT_CREATED: "Account Created",
    ProspectStatus.ONBOARDING_SUBMITTED: "Onboarding Submitted",
    ProspectStatus.DOCUMENTS_PENDING: "Documents Pending",
    ProspectStatus.DOCUMENTS_APPROVED: "Documents Approved",
    ProspectStatus.DOCUMENTS_REJECTED: "Documents Rejected",
    ProspectStatus.DOCUSIGN_SENT: "DocuSign Sent",
    ProspectStatus.DOCUSIGN_SIGNED: "DocuSign Signed",
    ProspectStatus.CONVERTED: "Converted to Investor",
}


STAGE_GROUPS: Dict[ProspectStatus, str] = {
    ProspectStatus.KYC_SENT: "KYC",
    ProspectStatus.KYC_SUBMITTED: "KYC",
    ProspectStatus.PRE_QUALIFIED: "KYC",
    ProspectStatus.MEETING_SCHEDULED: "Meeting",
    ProspectStatus.MEETING_COMPLETE: "Meeting",
    ProspectStatus.ACCOUNT_INVITE_SENT: "Onboarding",
    ProspectStatus.ACCOUNT_CREATED: "Onboarding",
    ProspectStatus.ONBOARDING_SUBMITTED: "Onboarding",
    ProspectStatus.DOCUMENTS_PENDING: "Documents",
    ProspectStatus.DOCUMENTS_APPROVED: "Documents",
    ProspectStatus.DOCUMENTS_REJECTED: "Documents",
    ProspectStatus.DOCUSIGN_SENT: "Signing",
    ProspectStatus.DOCUSIGN_SIGNED: "Signing",
    ProspectStatus.CONVERTED: "Converted",
    ProspectStatus.NOT_ELIGIBLE: "Rejected",
}


MANAGER_ACTION_STATUSES: FrozenSet[ProspectStatus] = frozenset({
    ProspectStatus.KYC_SUBMITTED,
    ProspectStatus.MEETING_COMPLETE,
    ProspectStatus.DOCUMENTS_PENDING,
    ProspectStatus.DOCUSIGN_SIGNED,
})


NEXT_ACTIONS: Dict[ProspectStatus, str] = {
    ProspectStatus.KYC_SENT: "Waiting for prospect to complete KYC form",
    ProspectStatus.KYC_SUBMITTED: "Review KYC submission and approve or reject",
    ProspectStatus.PRE_QUALIFIED: "Waiting for prospect to schedule meeting",
    ProspectStatus.MEETING_SCHEDULED: "Waiting for meeting to occur",
    ProspectStatus.MEETING_COMPLETE: "Send account creation invite",
    ProspectStatus.ACCOUNT_INVITE_SENT: "Waiting for prospect to create account",
    ProspectStatus.ACCOUNT_CREATED: "Waiting for prospect to complete onboarding",
    ProspectStatus.ONBOARDING_SUBMITTED: "Waiting for validation documents",
    ProspectStatus.DOCUMENTS_PENDING: "Review and approve or reject documents",
    ProspectStatus.DOCUMENTS_APPROVED: "Send DocuSign for signature",
    ProspectStatus.DOCUMENTS_REJECTED: "Waiting for prospect to resubmit documents",
    ProspectStatus.DOCUSIGN_SENT: "Waiting for DocuSign to be signed",
    ProspectStatus.DOCUSIGN_SIGNED: "Convert prospect to investor",
    ProspectStatus.CONVERTED: "Completed - investor created",
    ProspectStatus.NOT_ELIGIBLE: "Prospect is not eligible",
}


# Event -> status the event moves the prospect into
EVENT_TARGETS: Dict[ProspectEvent, ProspectStatus] = {
    ProspectEvent.KYC_FORM_SUBMITTED: ProspectStatus.KYC_SUBMITTED,
    ProspectEvent.KYC_APPROVED: ProspectStatus.PRE_QUALIFIED,
    ProspectEvent.KYC_REJECTED: ProspectStatus.NOT_ELIGIBLE,
    ProspectEvent.MEETING_BOOKED: ProspectStatus.MEETING_SCHEDULED,
    ProspectEvent.MEETING_COMPLETED: ProspectStatus.MEETING_COMPLETE,
    ProspectEvent.ACCOUNT_INVITE_SENT: ProspectStatus.ACCOUNT_INVITE_SENT,
    ProspectEvent.ACCOUNT_CREATED: ProspectStatus.ACCOUNT_CREATED,
    ProspectEvent.ONBOARDING_SUBMITTED: ProspectStatus.ONBOARDING_SUBMITTED,
    ProspectEvent.DOCUMENTS_UPLOADED: ProspectStatus.DOCUMENTS_PENDING,
    ProspectEvent.DOCUMENTS_APPROVED: ProspectStatus.DOCUMENTS_APPROVED,
    ProspectEvent.DOCUMENTS_REJECTED: ProspectStatus.DOCUMENTS_REJECTED,
    ProspectEvent.DOCUSIGN_SENT: ProspectStatus.DOCUSIGN_SENT,
    ProspectEvent.DOCUSIGN_SIGNED: ProspectStatus.DOCUSIGN_SIGNED,
    ProspectEvent.CONVERTED_TO_INVESTOR: ProspectStatus.CONVERTED,
}
