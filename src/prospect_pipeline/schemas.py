"""
Pipeline Input Schemas

Pydantic models validating the inputs the orchestrator accepts from the
outer (HTTP/form) layer.
"""

from decimal import Decimal
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .states import DocumentType, InvestorCategory, ProspectStatus

M = TypeVar("M", bound=BaseModel)


class SendKYCInput(BaseModel):
    """Manager sends a KYC invitation to a prospect."""
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = None
    notes: Optional[str] = None


class InterestFormInput(BaseModel):
    """Public interest form: KYC link is sent automatically."""
    model_config = ConfigDict(str_strip_whitespace=True)

    fund_id: str = Field(min_length=1)
    email: EmailStr
    name: str = Field(min_length=1)
    phone: Optional[str] = None


class KYCSubmissionInput(BaseModel):
    """Answers collected by the KYC form."""
    model_config = ConfigDict(str_strip_whitespace=True)

    investor_category: InvestorCategory
    investor_type: Optional[str] = None

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None

    entity_legal_name: Optional[str] = None
    authorized_signer_first_name: Optional[str] = None
    authorized_signer_last_name: Optional[str] = None
    authorized_signer_title: Optional[str] = None

    accreditation_bases: List[str] = Field(default_factory=list)

    indicative_commitment: Optional[Decimal] = Field(default=None, ge=0)
    timeline: Optional[str] = None
    investment_goals: List[str] = Field(default_factory=list)

    @field_validator("entity_legal_name")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class WebsiteKYCInput(KYCSubmissionInput):
    """Public KYC form submitted without a prior invitation."""
    fund_id: str = Field(min_length=1)
    email: EmailStr


class DocumentUpload(BaseModel):
    """One validation document the investor uploaded."""
    document_type: DocumentType
    file_name: str = Field(min_length=1)


class UploadDocumentsInput(BaseModel):
    documents: List[DocumentUpload] = Field(min_length=1)


class RejectDocumentsInput(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Rejection reason is required")
        return value.strip()


class ConvertToInvestorInput(BaseModel):
    commitment_amount: Decimal = Field(gt=0)


class UpdateProspectStatusInput(BaseModel):
    """Manual status change by a manager."""
    status: ProspectStatus
    reason: Optional[str] = None


def parse_input(model: Type[M], data) -> M:
    """
    Validate ``data`` against ``model``.

    Raises:
        ValidationError: naming the first failing field
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(
            f"{location or 'input'}: {first.get('msg', 'invalid value')}",
            field=location or None,
        ) from e
