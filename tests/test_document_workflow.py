"""
Tests for the Document Workflow

Verifies:
1. Documents only leave PENDING once
2. Approval requires DOCUMENTS_PENDING and a pending document
3. Rejection requires a reason and keeps the rejected documents
4. Re-submission opens a new document cycle
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from prospect_pipeline.documents import (
    approve_documents,
    can_approve_documents,
    reject_documents,
    review_document,
    submit_documents,
)
from prospect_pipeline.errors import InvalidState, ValidationError
from prospect_pipeline.schemas import DocumentUpload
from prospect_pipeline.states import DocumentStatus, DocumentType, ProspectStatus

from tests.helpers.prospects import NOW, make_prospect, pending_document


def _counter():
    n = {"value": 0}

    def new_id():
        n["value"] += 1
        return f"doc-new-{n['value']}"
    return new_id


class TestReviewDocument:
    """Single-document review."""

    def test_approve(self):
        reviewed = review_document(pending_document(), DocumentStatus.APPROVED, NOW).unwrap()
        assert reviewed.validation_status == DocumentStatus.APPROVED
        assert reviewed.reviewed_at == NOW
        assert reviewed.rejection_reason is None

    def test_reject_keeps_reason(self):
        reviewed = review_document(
            pending_document(), DocumentStatus.REJECTED, NOW, "Blurry scan",
        ).unwrap()
        assert reviewed.validation_status == DocumentStatus.REJECTED
        assert reviewed.rejection_reason == "Blurry scan"

    def test_reviewed_document_is_immutable(self):
        approved = replace(pending_document(), validation_status=DocumentStatus.APPROVED)
        result = review_document(approved, DocumentStatus.REJECTED, NOW, "late")
        assert isinstance(result.error, InvalidState)

    def test_pending_is_not_a_decision(self):
        result = review_document(pending_document(), DocumentStatus.PENDING, NOW)
        assert isinstance(result.error, ValidationError)


class TestApproveDocuments:
    """Approving a document submission."""

    def test_approves_all_pending(self):
        prospect = make_prospect(ProspectStatus.DOCUMENTS_PENDING)

        updated = approve_documents(prospect, NOW).unwrap()

        assert updated.status == ProspectStatus.DOCUMENTS_APPROVED
        assert updated.documents_approved_at == NOW
        assert [d.validation_status for d in updated.documents] == [DocumentStatus.APPROVED]
        assert prospect.documents[0].is_pending

    def test_requires_documents_pending(self):
        result = approve_documents(make_prospect(ProspectStatus.ONBOARDING_SUBMITTED), NOW)
        assert isinstance(result.error, InvalidState)

    def test_requires_a_pending_document(self):
        prospect = make_prospect(ProspectStatus.DOCUMENTS_PENDING, documents=[])
        result = can_approve_documents(prospect)
        assert isinstance(result.error, ValidationError)
        assert result.error.field == "documents"

    def test_only_pending_documents_are_reviewed(self):
        old = replace(
            pending_document("doc-0", cycle=1),
            validation_status=DocumentStatus.REJECTED,
            reviewed_at=NOW - timedelta(days=2),
            rejection_reason="Expired",
        )
        prospect = make_prospect(
            ProspectStatus.DOCUMENTS_PENDING,
            document_cycle=2,
            documents=[old, pending_document("doc-1", cycle=2)],
        )

        updated = approve_documents(prospect, NOW).unwrap()

        assert updated.documents[0] == old
        assert updated.documents[1].validation_status == DocumentStatus.APPROVED


class TestRejectDocuments:
    """Rejecting a document submission."""

    def test_reject_with_reason(self):
        prospect = make_prospect(ProspectStatus.DOCUMENTS_PENDING)

        updated = reject_documents(prospect, "  Passport expired ", NOW).unwrap()

        assert updated.status == ProspectStatus.DOCUMENTS_REJECTED
        assert updated.document_rejection_reason == "Passport expired"
        assert updated.documents[0].validation_status == DocumentStatus.REJECTED
        assert updated.documents[0].rejection_reason == "Passport expired"

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_blank_reason_rejected(self, reason):
        prospect = make_prospect(ProspectStatus.DOCUMENTS_PENDING)
        result = reject_documents(prospect, reason, NOW)
        assert isinstance(result.error, ValidationError)
        assert result.error.field == "reason"
        assert prospect.status == ProspectStatus.DOCUMENTS_PENDING

    def test_status_checked_before_reason(self):
        result = reject_documents(make_prospect(ProspectStatus.DOCUMENTS_APPROVED), "", NOW)
        assert isinstance(result.error, InvalidState)


class TestSubmitDocuments:
    """First submission and re-submission."""

    def test_first_submission(self):
        prospect = make_prospect(ProspectStatus.ONBOARDING_SUBMITTED)
        uploads = [
            DocumentUpload(document_type=DocumentType.PROOF_OF_IDENTITY, file_name="id.pdf"),
            DocumentUpload(document_type=DocumentType.TAX_FILING, file_name="1040.pdf"),
        ]

        updated = submit_documents(prospect, uploads, NOW, _counter()).unwrap()

        assert updated.status == ProspectStatus.DOCUMENTS_PENDING
        assert updated.document_cycle == 1
        assert [d.id for d in updated.documents] == ["doc-new-1", "doc-new-2"]
        assert all(d.cycle == 1 and d.is_pending for d in updated.documents)

    def test_resubmission_keeps_history(self):
        rejected = reject_documents(make_prospect(ProspectStatus.DOCUMENTS_PENDING), "Blurry", NOW).unwrap()
        uploads = [DocumentUpload(document_type=DocumentType.PROOF_OF_IDENTITY, file_name="id-v2.pdf")]

        updated = submit_documents(rejected, uploads, NOW + timedelta(days=1), _counter()).unwrap()

        assert updated.status == ProspectStatus.DOCUMENTS_PENDING
        assert updated.document_cycle == 2
        assert len(updated.documents) == 2
        assert updated.documents[0].validation_status == DocumentStatus.REJECTED
        assert updated.documents[1].cycle == 2
        assert [d.id for d in updated.pending_documents] == ["doc-new-1"]

    def test_requires_onboarding_or_rejected(self):
        uploads = [DocumentUpload(document_type=DocumentType.OTHER, file_name="x.pdf")]
        result = submit_documents(make_prospect(ProspectStatus.DOCUMENTS_PENDING), uploads, NOW, _counter())
        assert isinstance(result.error, InvalidState)

    def test_requires_an_upload(self):
        result = submit_documents(make_prospect(ProspectStatus.ONBOARDING_SUBMITTED), [], NOW, _counter())
        assert isinstance(result.error, ValidationError)
