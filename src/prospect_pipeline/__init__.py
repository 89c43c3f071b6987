"""
Prospect Pipeline

State machine for prospective investors, from KYC invitation to conversion
into an Investor.

Design Principles:
- One transition table: every legal status change is an edge in VALID_TRANSITIONS
- Pure decisions: validation, document review, conversion and email choice
  are side-effect free and return a Result
- Conditional writes: the store applies a status change only if the status
  it was validated against is still current
- Emails after commit: a failed notification never undoes a transition

Pipeline:
kyc_sent -> kyc_submitted -> pre_qualified -> meeting_scheduled ->
meeting_complete -> account_invite_sent -> account_created ->
onboarding_submitted -> documents_pending -> documents_approved ->
docusign_sent -> docusign_signed -> converted

documents_pending -> documents_rejected -> documents_pending (re-submission);
any non-terminal status -> not_eligible.

The orchestrator lives in ``prospect_pipeline.service`` and the in-memory
store in ``prospect_pipeline.memory_store``.
"""

from .states import (
    ProspectStatus,
    ProspectSource,
    ProspectEvent,
    InvestorCategory,
    DocumentType,
    DocumentStatus,
    VALID_TRANSITIONS,
    TERMINAL_STATUSES,
    STAGE_TIMESTAMP_FIELDS,
)

from .errors import (
    PipelineError,
    IllegalTransition,
    InvalidState,
    ValidationError,
    ConcurrentModification,
    ReminderNotApplicable,
    EmailError,
    ProspectNotFound,
    Result,
)

from .models import (
    Prospect,
    ValidationDocument,
    Investor,
    InvestorDraft,
)

from .transitions import (
    can_transition,
    possible_next_statuses,
    validate_transition,
    next_status_for_event,
    can_pre_qualify,
    apply_transition,
)

from .documents import (
    can_approve_documents,
    approve_documents,
    reject_documents,
    submit_documents,
)

from .conversion import (
    can_convert_to_investor,
    prepare_investor_conversion,
)

from .email_dispatch import (
    EmailTemplate,
    DecisionPoint,
    EmailIntent,
    EmailContext,
    SentEmail,
    decide_email,
    decide_invitation_email,
    decide_reminder,
)

from .reminders import (
    ReminderKind,
    ScheduledReminder,
)

__all__ = [
    # States
    "ProspectStatus",
    "ProspectSource",
    "ProspectEvent",
    "InvestorCategory",
    "DocumentType",
    "DocumentStatus",
    "VALID_TRANSITIONS",
    "TERMINAL_STATUSES",
    "STAGE_TIMESTAMP_FIELDS",
    # Errors
    "PipelineError",
    "IllegalTransition",
    "InvalidState",
    "ValidationError",
    "ConcurrentModification",
    "ReminderNotApplicable",
    "EmailError",
    "ProspectNotFound",
    "Result",
    # Records
    "Prospect",
    "ValidationDocument",
    "Investor",
    "InvestorDraft",
    # Transitions
    "can_transition",
    "possible_next_statuses",
    "validate_transition",
    "next_status_for_event",
    "can_pre_qualify",
    "apply_transition",
    # Documents
    "can_approve_documents",
    "approve_documents",
    "reject_documents",
    "submit_documents",
    # Conversion
    "can_convert_to_investor",
    "prepare_investor_conversion",
    # Email
    "EmailTemplate",
    "DecisionPoint",
    "EmailIntent",
    "EmailContext",
    "SentEmail",
    "decide_email",
    "decide_invitation_email",
    "decide_reminder",
    # Reminders
    "ReminderKind",
    "ScheduledReminder",
]
