"""
Document Workflow

Validation documents attached to a prospect during onboarding, and the
approve / reject / re-submit decisions that gate the DOCUMENTS_* statuses.
"""

from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from .errors import InvalidState, Result, ValidationError
from .models import Prospect, ValidationDocument
from .schemas import DocumentUpload
from .states import DocumentStatus, ProspectStatus
from .transitions import apply_transition


def review_document(
    document: ValidationDocument,
    decision: DocumentStatus,
    now: datetime,
    reason: Optional[str] = None,
) -> Result[ValidationDocument]:
    """Move one document out of PENDING. Reviewed documents are immutable."""
    if decision == DocumentStatus.PENDING:
        return Result.fail(ValidationError("Review decision must be approved or rejected"))

    if not document.is_pending:
        return Result.fail(InvalidState(
            f"{decision.value} document {document.id}",
            document.validation_status.value,
            DocumentStatus.PENDING.value,
        ))

    return Result.ok(replace(
        document,
        validation_status=decision,
        reviewed_at=now,
        rejection_reason=reason if decision == DocumentStatus.REJECTED else None,
    ))


def can_approve_documents(prospect: Prospect) -> Result[None]:
    """
    Check the prospect's documents can be approved.

    Requires DOCUMENTS_PENDING (else InvalidState) and at least one pending
    document (else ValidationError).
    """
    if prospect.status != ProspectStatus.DOCUMENTS_PENDING:
        return Result.fail(InvalidState(
            "approve documents",
            prospect.status.value,
            ProspectStatus.DOCUMENTS_PENDING.value,
        ))

    if not prospect.pending_documents:
        return Result.fail(ValidationError(
            "No pending documents to approve",
            field="documents",
        ))

    return Result.ok()


def _review_pending(
    prospect: Prospect,
    decision: DocumentStatus,
    now: datetime,
    reason: Optional[str] = None,
) -> List[ValidationDocument]:
    reviewed = []
    for document in prospect.documents:
        if document.is_pending:
            document = review_document(document, decision, now, reason).unwrap()
        reviewed.append(document)
    return reviewed


def approve_documents(prospect: Prospect, now: datetime) -> Result[Prospect]:
    """Approve every pending document and move to DOCUMENTS_APPROVED."""
    check = can_approve_documents(prospect)
    if not check.is_ok:
        return Result.fail(check.error)

    return apply_transition(
        prospect,
        ProspectStatus.DOCUMENTS_APPROVED,
        now,
        documents=_review_pending(prospect, DocumentStatus.APPROVED, now),
    )


def reject_documents(prospect: Prospect, reason: str, now: datetime) -> Result[Prospect]:
    """
    Reject the pending documents and move to DOCUMENTS_REJECTED.

    Requires DOCUMENTS_PENDING (else InvalidState) and a non-blank reason
    (else ValidationError). The input prospect is never modified.
    """
    if prospect.status != ProspectStatus.DOCUMENTS_PENDING:
        return Result.fail(InvalidState(
            "reject documents",
            prospect.status.value,
            ProspectStatus.DOCUMENTS_PENDING.value,
        ))

    reason = (reason or "").strip()
    if not reason:
        return Result.fail(ValidationError("Rejection reason is required", field="reason"))

    return apply_transition(
        prospect,
        ProspectStatus.DOCUMENTS_REJECTED,
        now,
        document_rejection_reason=reason,
        documents=_review_pending(prospect, DocumentStatus.REJECTED, now, reason),
    )


def submit_documents(
    prospect: Prospect,
    uploads: Sequence[DocumentUpload],
    now: datetime,
    new_id: Callable[[], str],
) -> Result[Prospect]:
    """
    Attach newly uploaded documents and move to DOCUMENTS_PENDING.

    Valid from ONBOARDING_SUBMITTED (first submission) or DOCUMENTS_REJECTED
    (re-submission). Each submission opens a new document cycle; earlier
    documents, rejected ones included, are kept untouched.
    """
    if prospect.status not in (
        ProspectStatus.ONBOARDING_SUBMITTED,
        ProspectStatus.DOCUMENTS_REJECTED,
    ):
        return Result.fail(InvalidState(
            "submit documents",
            prospect.status.value,
            f"{ProspectStatus.ONBOARDING_SUBMITTED.value} or "
            f"{ProspectStatus.DOCUMENTS_REJECTED.value}",
        ))

    if not uploads:
        return Result.fail(ValidationError("At least one document is required", field="documents"))

    cycle = prospect.document_cycle + 1
    added = [
        ValidationDocument(
            id=new_id(),
            prospect_id=prospect.id,
            document_type=upload.document_type,
            file_name=upload.file_name,
            uploaded_at=now,
            cycle=cycle,
        )
        for upload in uploads
    ]

    return apply_transition(
        prospect,
        ProspectStatus.DOCUMENTS_PENDING,
        now,
        documents=list(prospect.documents) + added,
    )
