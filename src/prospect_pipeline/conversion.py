"""
Investor Conversion

Terminal step of the pipeline: a prospect who signed the subscription
documents becomes an Investor. These functions only compute; the store
writes the investor and the converted prospect in one transaction.
"""

from datetime import datetime

from .errors import InvalidState, Result
from .models import InvestorDraft, Prospect
from .schemas import ConvertToInvestorInput
from .states import InvestorCategory, ProspectStatus
from .transitions import apply_transition


def can_convert_to_investor(prospect: Prospect) -> Result[None]:
    """Conversion requires DOCUSIGN_SIGNED and no prior conversion."""
    if prospect.converted_to_investor or prospect.investor_id:
        return Result.fail(InvalidState(
            "convert to investor",
            prospect.status.value,
            ProspectStatus.DOCUSIGN_SIGNED.value,
            "Prospect has already been converted to an investor",
        ))

    if prospect.status != ProspectStatus.DOCUSIGN_SIGNED:
        return Result.fail(InvalidState(
            "convert to investor",
            prospect.status.value,
            ProspectStatus.DOCUSIGN_SIGNED.value,
            "Prospect must have signed DocuSign before conversion",
        ))

    return Result.ok()


def prepare_investor_conversion(
    prospect: Prospect,
    conversion: ConvertToInvestorInput,
    investor_id: str,
    now: datetime,
) -> InvestorDraft:
    """
    Map a prospect onto the fields of a new Investor.

    Entities keep their investor type and legal name; the authorized signer
    stands in for the name when the prospect has none. Deterministic for the
    same inputs.
    """
    if prospect.investor_category == InvestorCategory.ENTITY:
        entity_type = prospect.investor_type
        entity_name = prospect.entity_legal_name
    else:
        entity_type = InvestorCategory.INDIVIDUAL.value
        entity_name = None

    return InvestorDraft(
        id=investor_id,
        prospect_id=prospect.id,
        fund_id=prospect.fund_id,
        email=prospect.email,
        first_name=prospect.first_name or prospect.authorized_signer_first_name or "",
        last_name=prospect.last_name or prospect.authorized_signer_last_name or "",
        phone=prospect.phone,
        entity_type=entity_type,
        entity_name=entity_name,
        commitment_amount=conversion.commitment_amount,
        joined_at=now,
    )


def mark_converted(prospect: Prospect, investor_id: str, now: datetime) -> Result[Prospect]:
    """Seal the prospect as CONVERTED, linked to ``investor_id``."""
    check = can_convert_to_investor(prospect)
    if not check.is_ok:
        return Result.fail(check.error)

    return apply_transition(
        prospect,
        ProspectStatus.CONVERTED,
        now,
        converted_to_investor=True,
        investor_id=investor_id,
    )
