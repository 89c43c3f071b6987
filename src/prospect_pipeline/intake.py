"""
Prospect Intake

Builds new prospect records for the three ways a prospect enters the
pipeline, and merges KYC form answers into an existing prospect. Ids,
tokens and timestamps are passed in.
"""

from datetime import datetime
from typing import Optional, Tuple

from .models import Prospect
from .schemas import InterestFormInput, KYCSubmissionInput, SendKYCInput, WebsiteKYCInput
from .states import ProspectSource, ProspectStatus

# KYC form fields copied onto the prospect record
KYC_ANSWER_FIELDS = (
    "investor_category",
    "investor_type",
    "first_name",
    "last_name",
    "phone",
    "country",
    "state",
    "city",
    "entity_legal_name",
    "authorized_signer_first_name",
    "authorized_signer_last_name",
    "authorized_signer_title",
    "accreditation_bases",
    "indicative_commitment",
    "timeline",
    "investment_goals",
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def split_name(name: str) -> Tuple[Optional[str], Optional[str]]:
    """Split a full name on the first space: ``"Ada King Lovelace"`` -> ``("Ada", "King Lovelace")``."""
    parts = name.strip().split()
    if not parts:
        return None, None
    return parts[0], " ".join(parts[1:]) or None


def prepare_kyc_send(
    data: SendKYCInput,
    fund_id: str,
    sent_by: Optional[str],
    prospect_id: str,
    token: str,
    now: datetime,
) -> Prospect:
    """New prospect for a KYC invitation sent by a manager."""
    return Prospect(
        id=prospect_id,
        fund_id=fund_id,
        email=normalize_email(data.email),
        status=ProspectStatus.KYC_SENT,
        source=ProspectSource.MANUAL,
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone or None,
        sent_by=sent_by,
        kyc_link_token=token,
        notes=data.notes or None,
        kyc_sent_at=now,
        created_at=now,
        updated_at=now,
    )


def prepare_interest_form_prospect(
    data: InterestFormInput,
    prospect_id: str,
    token: str,
    now: datetime,
) -> Prospect:
    """New prospect from the public interest form; the KYC link is sent automatically."""
    first_name, last_name = split_name(data.name)
    return Prospect(
        id=prospect_id,
        fund_id=data.fund_id,
        email=normalize_email(data.email),
        status=ProspectStatus.KYC_SENT,
        source=ProspectSource.INTEREST_FORM,
        first_name=first_name,
        last_name=last_name,
        phone=data.phone or None,
        kyc_link_token=token,
        kyc_sent_at=now,
        created_at=now,
        updated_at=now,
    )


def apply_kyc_submission(prospect: Prospect, answers: KYCSubmissionInput) -> Prospect:
    """
    Copy KYC answers onto a copy of ``prospect``.

    Only answers that were actually given overwrite existing values, so a name
    captured at invitation time survives a form that left it blank. The status
    is not changed here.
    """
    changes = {}
    for name in KYC_ANSWER_FIELDS:
        value = getattr(answers, name)
        if value is None or value == []:
            continue
        changes[name] = list(value) if isinstance(value, list) else value
    return prospect.copy(**changes)


def prepare_website_prospect(data: WebsiteKYCInput, prospect_id: str, now: datetime) -> Prospect:
    """
    New prospect from a KYC form submitted on the fund website.

    Skips the invitation: the prospect starts at KYC_SUBMITTED with no KYC
    link token.
    """
    prospect = Prospect(
        id=prospect_id,
        fund_id=data.fund_id,
        email=normalize_email(data.email),
        status=ProspectStatus.KYC_SUBMITTED,
        source=ProspectSource.WEBSITE,
        kyc_submitted_at=now,
        created_at=now,
        updated_at=now,
    )
    return apply_kyc_submission(prospect, data)
