"""
Prospect Pipeline Records

Prospect, validation document and investor records exchanged between the
pure pipeline functions and the store. The pipeline functions never mutate
a record in place; they return updated copies.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .states import (
    DocumentStatus,
    DocumentType,
    InvestorCategory,
    ProspectSource,
    ProspectStatus,
    STAGE_TIMESTAMP_FIELDS,
)


@dataclass
class ValidationDocument:
    """
    Validation document uploaded during onboarding.

    Moves pending -> approved or pending -> rejected only. A rejected document
    stays as history; a re-upload is a new pending document.
    """
    id: str
    prospect_id: str
    document_type: DocumentType
    file_name: str
    uploaded_at: datetime
    cycle: int = 1
    validation_status: DocumentStatus = DocumentStatus.PENDING
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.validation_status == DocumentStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "prospect_id": self.prospect_id,
            "document_type": self.document_type.value,
            "file_name": self.file_name,
            "cycle": self.cycle,
            "validation_status": self.validation_status.value,
            "uploaded_at": self.uploaded_at.isoformat(),
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "rejection_reason": self.rejection_reason,
        }


@dataclass
class Prospect:
    """
    A prospective investor tracked through the pipeline for one fund.

    Invariants maintained by the pipeline functions:
    - ``investor_id`` is set if and only if status is CONVERTED
    - a stage timestamp is set if and only if the prospect has entered that stage
    - ``document_cycle`` counts document submissions; it increases on every
      entry into DOCUMENTS_PENDING
    """
    id: str
    fund_id: str
    email: str
    status: ProspectStatus = ProspectStatus.KYC_SENT
    source: ProspectSource = ProspectSource.MANUAL

    # Classification
    investor_category: Optional[InvestorCategory] = None
    investor_type: Optional[str] = None

    # Contact / identity
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None

    # Entity identity
    entity_legal_name: Optional[str] = None
    authorized_signer_first_name: Optional[str] = None
    authorized_signer_last_name: Optional[str] = None
    authorized_signer_title: Optional[str] = None

    # Accreditation
    accreditation_bases: List[str] = field(default_factory=list)

    # Commercial intent (informational only)
    indicative_commitment: Optional[Decimal] = None
    timeline: Optional[str] = None
    investment_goals: List[str] = field(default_factory=list)

    # Pipeline metadata
    sent_by: Optional[str] = None
    kyc_link_token: Optional[str] = None
    notes: Optional[str] = None

    # Stage timestamps
    kyc_sent_at: Optional[datetime] = None
    kyc_submitted_at: Optional[datetime] = None
    pre_qualified_at: Optional[datetime] = None
    not_eligible_at: Optional[datetime] = None
    meeting_scheduled_at: Optional[datetime] = None
    meeting_completed_at: Optional[datetime] = None
    account_invite_sent_at: Optional[datetime] = None
    account_created_at: Optional[datetime] = None
    onboarding_submitted_at: Optional[datetime] = None
    documents_submitted_at: Optional[datetime] = None
    documents_approved_at: Optional[datetime] = None
    documents_rejected_at: Optional[datetime] = None
    docusign_sent_at: Optional[datetime] = None
    docusign_signed_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None

    # Documents
    document_cycle: int = 0
    document_rejection_reason: Optional[str] = None
    docusign_envelope_id: Optional[str] = None

    # Conversion
    converted_to_investor: bool = False
    investor_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Loaded alongside the prospect, persisted in their own table
    documents: List[ValidationDocument] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        """Best available name for emails and manager views."""
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        if self.first_name:
            return self.first_name
        if self.entity_legal_name:
            return self.entity_legal_name
        if self.authorized_signer_first_name and self.authorized_signer_last_name:
            return f"{self.authorized_signer_first_name} {self.authorized_signer_last_name}"
        return self.email

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def pending_documents(self) -> List[ValidationDocument]:
        return [d for d in self.documents if d.is_pending]

    def stage_timestamp(self, status: ProspectStatus) -> Optional[datetime]:
        """Timestamp recorded when the prospect first entered ``status``."""
        return getattr(self, STAGE_TIMESTAMP_FIELDS[status])

    def copy(self, **changes: Any) -> "Prospect":
        """Return an updated copy; the documents list is copied, not shared."""
        changes.setdefault("documents", list(self.documents))
        return replace(self, **changes)

    def diff(self, other: "Prospect") -> Dict[str, Any]:
        """Fields whose value differs in ``other``, excluding documents."""
        changed = {}
        for f in fields(self):
            if f.name == "documents":
                continue
            new_value = getattr(other, f.name)
            if getattr(self, f.name) != new_value:
                changed[f.name] = new_value
        return changed

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "documents":
                value = [d.to_dict() for d in value]
            elif isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, Decimal):
                value = str(value)
            elif hasattr(value, "value"):
                value = value.value
            data[f.name] = value
        data["status_label"] = self.status.label
        data["next_action"] = self.status.next_action
        return data


@dataclass(frozen=True)
class InvestorDraft:
    """Fields needed to materialize an Investor from a converted prospect."""
    id: str
    prospect_id: str
    fund_id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str]
    entity_type: Optional[str]
    entity_name: Optional[str]
    commitment_amount: Decimal
    joined_at: datetime
    status: str = "active"


@dataclass
class Investor:
    """Persisted investor record created from a prospect."""
    id: str
    prospect_id: str
    fund_id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str]
    entity_type: Optional[str]
    entity_name: Optional[str]
    commitment_amount: Decimal
    joined_at: datetime
    status: str = "active"

    @classmethod
    def from_draft(cls, draft: InvestorDraft) -> "Investor":
        return cls(
            id=draft.id,
            prospect_id=draft.prospect_id,
            fund_id=draft.fund_id,
            email=draft.email,
            first_name=draft.first_name,
            last_name=draft.last_name,
            phone=draft.phone,
            entity_type=draft.entity_type,
            entity_name=draft.entity_name,
            commitment_amount=draft.commitment_amount,
            joined_at=draft.joined_at,
            status=draft.status,
        )
